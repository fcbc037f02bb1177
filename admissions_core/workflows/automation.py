# admissions_core/workflows/automation.py
"""
Event-driven automation.

Rules are keyed by event name and applied in sequence; each rule sees the
state produced by the previous one. Status changes made here skip the rule
pipeline but still go through the stage composer, and are limited to the
moves the registry grants to SYSTEM.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .composer import StageComposer
from .effects import Effect, Notify
from .errors import AutomationLoopError
from .registry import PARTNER, SYSTEM, StatusRegistry, get_registry
from .state import ApplicationState

logger = logging.getLogger(__name__)


# ===============================================================
# Events
# ===============================================================

APPLICATION_SUBMITTED = "application_submitted"
DOCUMENTS_UPLOADED = "documents_uploaded"
STATUS_CHANGED = "status_changed"
SCHEDULE = "schedule"

EVENTS: Tuple[str, ...] = (APPLICATION_SUBMITTED, DOCUMENTS_UPLOADED, STATUS_CHANGED, SCHEDULE)

DEFAULT_MAX_STEPS = 10
DEFAULT_REMINDER_AFTER = timedelta(days=3)
DEFAULT_SCHEDULE_WINDOW = timedelta(hours=1)


# ===============================================================
# Values
# ===============================================================

@dataclass(frozen=True)
class AutomationContext:
    registry: StatusRegistry
    composer: StageComposer
    now: datetime
    reminder_after: timedelta


@dataclass(frozen=True)
class AutomationStep:
    state: ApplicationState
    effects: Tuple[Effect, ...] = ()
    status_changed: bool = False


@dataclass(frozen=True)
class AutomationRule:
    id: str
    event: str
    applies: Callable[[ApplicationState, Mapping[str, Any], AutomationContext], bool]
    apply: Callable[[ApplicationState, Mapping[str, Any], AutomationContext], AutomationStep]
    description: str = ""


@dataclass(frozen=True)
class AutomationOutcome:
    state: ApplicationState
    effects: Tuple[Effect, ...] = ()
    applied: Tuple[str, ...] = ()
    truncated: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.applied)


# ===============================================================
# Helpers
# ===============================================================

def _system_may(ctx: AutomationContext, state: ApplicationState, target: str) -> bool:
    row = ctx.registry.get(state.stage, state.status)
    return bool(row and target in row.targets_for(SYSTEM))


def _set_status(ctx, state, target, rule_id, aux=None) -> AutomationStep:
    aux = dict(aux or {})
    aux.setdefault("reason", f"Automation: {rule_id}")
    new_state, effects = ctx.composer.apply_status(
        state, target, actor=SYSTEM, now=ctx.now, aux_data=aux,
    )
    return AutomationStep(state=new_state, effects=effects, status_changed=True)


def _upload_complete(metadata: Mapping[str, Any]) -> Optional[bool]:
    value = metadata.get("upload_complete")
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _document_aux(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "document_types": list(metadata.get("document_types") or []),
        "documents": list(metadata.get("documents") or []),
    }


# ===============================================================
# Rule implementations
# ===============================================================

def _submitted_applies(state, metadata, ctx) -> bool:
    return not state.history and state.stage == 1


def _submitted_apply(state, metadata, ctx) -> AutomationStep:
    step = _set_status(ctx, state, ctx.registry.entry_status(1), "application-submitted")
    # Initial placement is not a status change for follow-up purposes.
    return AutomationStep(state=step.state, effects=step.effects, status_changed=False)


def _record_documents_applies(state, metadata, ctx) -> bool:
    new = [t for t in metadata.get("document_types") or [] if t not in state.documents_received]
    return bool(new)


def _record_documents_apply(state, metadata, ctx) -> AutomationStep:
    received = list(state.documents_received)
    for tag in metadata.get("document_types") or []:
        tag = str(tag).strip()
        if tag and tag not in received:
            received.append(tag)
    return AutomationStep(state=state.evolve(documents_received=tuple(received), updated_at=ctx.now))


def _complete_upload_applies(state, metadata, ctx) -> bool:
    return _upload_complete(metadata) is True and _system_may(ctx, state, "documents_submitted")


def _complete_upload_apply(state, metadata, ctx) -> AutomationStep:
    return _set_status(ctx, state, "documents_submitted", "documents-uploaded-complete", _document_aux(metadata))


def _partial_upload_applies(state, metadata, ctx) -> bool:
    return _upload_complete(metadata) is False and _system_may(ctx, state, "documents_partially_submitted")


def _partial_upload_apply(state, metadata, ctx) -> AutomationStep:
    return _set_status(
        ctx, state, "documents_partially_submitted", "documents-uploaded-partial", _document_aux(metadata)
    )


def _auto_progress_applies(state, metadata, ctx) -> bool:
    row = ctx.registry.get(state.stage, state.status)
    return bool(row and row.auto_progress_to and _system_may(ctx, state, row.auto_progress_to))


def _auto_progress_apply(state, metadata, ctx) -> AutomationStep:
    row = ctx.registry.lookup(state.stage, state.status)
    return _set_status(ctx, state, row.auto_progress_to, "auto-progress")


def _reminder_applies(state, metadata, ctx) -> bool:
    row = ctx.registry.get(state.stage, state.status)
    if row is None or not row.documents_required or state.status_entered_at is None:
        return False
    window = DEFAULT_SCHEDULE_WINDOW
    if metadata.get("window_seconds"):
        window = timedelta(seconds=int(metadata["window_seconds"]))
    age = ctx.now - state.status_entered_at
    return ctx.reminder_after <= age < ctx.reminder_after + window


def _reminder_apply(state, metadata, ctx) -> AutomationStep:
    row = ctx.registry.lookup(state.stage, state.status)
    notice = Notify(
        audience=row.waiting_for or PARTNER,
        template_key="document_reminder",
        payload={
            "application_id": state.id,
            "stage": state.stage,
            "status": state.status,
            "documents_required": list(row.documents_required),
        },
    )
    return AutomationStep(state=state, effects=(notice,))


DEFAULT_AUTOMATION_RULES: Tuple[AutomationRule, ...] = (
    AutomationRule(
        id="application-submitted",
        event=APPLICATION_SUBMITTED,
        applies=_submitted_applies,
        apply=_submitted_apply,
        description="Place a freshly submitted application at the stage 1 entry status.",
    ),
    AutomationRule(
        id="documents-recorded",
        event=DOCUMENTS_UPLOADED,
        applies=_record_documents_applies,
        apply=_record_documents_apply,
        description="Record uploaded document types on the application.",
    ),
    AutomationRule(
        id="documents-uploaded-complete",
        event=DOCUMENTS_UPLOADED,
        applies=_complete_upload_applies,
        apply=_complete_upload_apply,
        description="A complete upload moves the application to documents_submitted.",
    ),
    AutomationRule(
        id="documents-uploaded-partial",
        event=DOCUMENTS_UPLOADED,
        applies=_partial_upload_applies,
        apply=_partial_upload_apply,
        description="A partial upload moves the application to documents_partially_submitted.",
    ),
    AutomationRule(
        id="auto-progress",
        event=STATUS_CHANGED,
        applies=_auto_progress_applies,
        apply=_auto_progress_apply,
        description="Follow a status's auto_progress_to target when SYSTEM may.",
    ),
    AutomationRule(
        id="document-expiry-reminder",
        event=SCHEDULE,
        applies=_reminder_applies,
        apply=_reminder_apply,
        description="Remind the waiting actor about outstanding documents.",
    ),
)


# ===============================================================
# Engine
# ===============================================================

class AutomationEngine:
    def __init__(
        self,
        registry: Optional[StatusRegistry] = None,
        rules: Optional[Iterable[AutomationRule]] = None,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        disabled: Iterable[str] = (),
        reminder_after: timedelta = DEFAULT_REMINDER_AFTER,
        strict: bool = False,
    ):
        self.registry = registry or get_registry()
        self.composer = StageComposer(self.registry)
        self.rules: Tuple[AutomationRule, ...] = tuple(
            rules if rules is not None else DEFAULT_AUTOMATION_RULES
        )
        self.max_steps = max_steps
        self.disabled = frozenset(disabled or ())
        self.reminder_after = reminder_after
        self.strict = strict

    def rules_for(self, event: str) -> Tuple[AutomationRule, ...]:
        return tuple(
            r for r in self.rules
            if r.event == event and r.id not in self.disabled
        )

    def process_event(
        self,
        state: ApplicationState,
        event: str,
        metadata: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> AutomationOutcome:
        ctx = AutomationContext(
            registry=self.registry,
            composer=self.composer,
            now=now or datetime.now(timezone.utc),
            reminder_after=self.reminder_after,
        )

        effects: List[Effect] = []
        applied: List[str] = []
        queue = deque([(event, dict(metadata or {}))])
        steps = 0

        while queue:
            current_event, current_meta = queue.popleft()

            for rule in self.rules_for(current_event):
                if not rule.applies(state, current_meta, ctx):
                    continue

                if steps >= self.max_steps:
                    logger.warning(
                        "Automation for application %s stopped after %s steps (event %s, rule %s)",
                        state.id, steps, current_event, rule.id,
                    )
                    if self.strict:
                        raise AutomationLoopError(
                            f"Automation exceeded {self.max_steps} steps for application {state.id}"
                        )
                    return AutomationOutcome(state, tuple(effects), tuple(applied), truncated=True)

                steps += 1
                previous = state.key
                step = rule.apply(state, current_meta, ctx)
                state = step.state
                effects.extend(step.effects)
                applied.append(rule.id)

                logger.info(
                    "Automation rule %s applied to application %s (%s -> %s)",
                    rule.id, state.id, previous, state.key,
                )

                if step.status_changed:
                    queue.append((
                        STATUS_CHANGED,
                        {"previous_stage": previous[0], "previous_status": previous[1], "rule": rule.id},
                    ))

        return AutomationOutcome(state, tuple(effects), tuple(applied))
