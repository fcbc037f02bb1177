# admissions_core/workflows/runtime.py
"""
Workflow automation runtime.

Responsibilities:
- Build the automation engine from settings
- Run one event against the latest persisted state
- Commit the resulting state with the same compare-and-set as user transitions

Automation never bypasses the registry: every move it makes is one SYSTEM
may request from the current row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from admissions_core.models import Application
from admissions_core.workflows.automation import DEFAULT_MAX_STEPS, AutomationEngine
from admissions_core.workflows.errors import AutomationLoopError, ConcurrencyConflict
from admissions_core.workflows.executor import commit_state
from admissions_core.workflows.interpreter import EffectInterpreter
from admissions_core.workflows.registry import StatusRegistry, get_registry

logger = logging.getLogger(__name__)


@dataclass
class AutomationResult:
    application: Application
    event: str
    applied: Tuple[str, ...] = ()
    truncated: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.applied)

    def to_dict(self):
        app = self.application
        return {
            "application_id": app.pk,
            "event": self.event,
            "applied": list(self.applied),
            "truncated": self.truncated,
            "stage": app.stage,
            "status": app.status,
            "version": app.version,
            "documents_received": list(app.documents_received or []),
        }


def build_engine(registry: Optional[StatusRegistry] = None) -> AutomationEngine:
    days = getattr(settings, "ADMISSIONS_REMINDER_AFTER_DAYS", 3)
    return AutomationEngine(
        registry or get_registry(),
        max_steps=int(getattr(settings, "ADMISSIONS_AUTOMATION_MAX_STEPS", DEFAULT_MAX_STEPS)),
        disabled=getattr(settings, "ADMISSIONS_DISABLED_AUTOMATION_RULES", ()) or (),
        reminder_after=timedelta(days=float(days)),
        strict=bool(getattr(settings, "ADMISSIONS_STRICT_REGISTRY", False)),
    )


def process_application_event(
    application: Application,
    event: str,
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    user=None,
    engine: Optional[AutomationEngine] = None,
    interpreter: Optional[EffectInterpreter] = None,
    now=None,
) -> AutomationResult:
    """
    Run the automation trigger for one event and persist what it changed.

    Raises ConcurrencyConflict when another writer commits in between;
    AutomationLoopError only in strict mode.
    """
    engine = engine or build_engine()
    now = now or timezone.now()
    event = (event or "").strip().lower()

    with transaction.atomic():
        latest = Application.objects.select_for_update().get(pk=application.pk)
        state = latest.to_state()
        outcome = engine.process_event(state, event, metadata, now=now)

        if outcome.state != state:
            new_state = outcome.state
            # Tag-only updates still count as a write.
            if new_state.version == state.version:
                new_state = new_state.evolve(version=state.version + 1)
            commit_state(
                latest,
                state,
                new_state,
                outcome.effects,
                user=user,
                interpreter=interpreter,
            )
        elif outcome.effects:
            (interpreter or EffectInterpreter()).run(latest, outcome.effects, user=user)

    application.refresh_from_db()

    if outcome.changed:
        logger.info(
            "Automation event %s on application %s applied %s (now %s:%s)",
            event, application.pk, ", ".join(outcome.applied),
            application.stage, application.status,
        )

    return AutomationResult(
        application=application,
        event=event,
        applied=outcome.applied,
        truncated=outcome.truncated,
    )


def run_scheduled_automation(*, now=None, engine: Optional[AutomationEngine] = None) -> int:
    """
    Fire the schedule event for every open application.

    Returns the number of applications for which at least one rule applied.
    """
    from admissions_core.workflows import is_terminal

    engine = engine or build_engine()
    now = now or timezone.now()
    touched = 0

    for app in Application.objects.all().iterator():
        if is_terminal(app.stage, app.status):
            continue
        try:
            result = process_application_event(app, "schedule", {}, engine=engine, now=now)
        except (ConcurrencyConflict, AutomationLoopError) as exc:
            logger.warning("Scheduled automation skipped application %s: %s", app.pk, exc)
            continue
        if result.changed:
            touched += 1

    return touched
