# admissions_core/workflows/executor.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from admissions_core.models import Application, StageHistoryEntry
from admissions_core.workflows.composer import TransitionRequest, transition
from admissions_core.workflows.errors import (
    AUTHORITY_VIOLATION,
    CONCURRENCY_CONFLICT,
    CONFIGURATION_ERROR,
    ConcurrencyConflict,
    ConfigurationError,
    TransitionError,
)
from admissions_core.workflows.interpreter import EffectInterpreter
from admissions_core.workflows.registry import (
    StatusRegistry,
    get_registry,
    normalize_actor,
    normalize_status,
)
from admissions_core.workflows.rules import RulePipeline
from admissions_core.workflows.sla_scanner import resolve_open_alerts
from admissions_core.workflows.state import ApplicationState

logger = logging.getLogger(__name__)


# ============================================================
# Result
# ============================================================
@dataclass
class TransitionResult:
    success: bool
    application: Application
    errors: Tuple[TransitionError, ...] = ()
    warnings: Tuple[str, ...] = ()
    actions: Tuple[str, ...] = ()
    automation: Tuple[str, ...] = field(default_factory=tuple)

    def has_kind(self, kind: str) -> bool:
        return any(e.kind == kind for e in self.errors)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        if self.has_kind(CONFIGURATION_ERROR):
            return 500
        if self.has_kind(CONCURRENCY_CONFLICT):
            return 409
        if self.has_kind(AUTHORITY_VIOLATION):
            return 403
        return 400

    def to_dict(self) -> Dict[str, Any]:
        app = self.application
        return {
            "success": self.success,
            "application_id": app.pk,
            "stage": app.stage,
            "status": app.status,
            "version": app.version,
            "next_actor": app.next_actor or None,
            "next_action": app.next_action,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "actions": list(self.actions),
            "automation": list(self.automation),
        }


# ============================================================
# Helpers
# ============================================================
def build_pipeline(registry: Optional[StatusRegistry] = None) -> RulePipeline:
    disabled = getattr(settings, "ADMISSIONS_DISABLED_RULES", ()) or ()
    return RulePipeline(registry or get_registry(), disabled=disabled)


def _strict_registry() -> bool:
    return bool(settings.DEBUG or getattr(settings, "ADMISSIONS_STRICT_REGISTRY", False))


def _configuration_failure(application: Application, exc: ConfigurationError) -> TransitionResult:
    logger.exception(
        "Workflow configuration error for application %s (%s:%s)",
        application.pk, application.stage, application.status,
    )
    if _strict_registry():
        raise exc
    return TransitionResult(
        success=False,
        application=application,
        errors=(TransitionError(CONFIGURATION_ERROR, str(exc)),),
    )


def _conflict(application: Application, exc: ConcurrencyConflict) -> TransitionResult:
    logger.warning("%s", exc)
    application.refresh_from_db()
    return TransitionResult(
        success=False,
        application=application,
        errors=(TransitionError(CONCURRENCY_CONFLICT, str(exc)),),
    )


def commit_state(
    application: Application,
    old: ApplicationState,
    new: ApplicationState,
    effects,
    *,
    user=None,
    interpreter: Optional[EffectInterpreter] = None,
) -> None:
    """
    Persist a state produced by the workflow core.

    Must run inside transaction.atomic(). The update is a compare-and-set on
    (pk, version); a lost race raises ConcurrencyConflict and the caller's
    atomic block rolls everything back.
    """
    interpreter = interpreter or EffectInterpreter()

    updated = Application.objects.filter(pk=application.pk, version=old.version).update(
        **Application.values_from_state(new)
    )
    if updated != 1:
        actual = Application.objects.filter(pk=application.pk).values_list("version", flat=True).first()
        raise ConcurrencyConflict(application.pk, old.version, actual)

    performed_by = user if user is not None and user.is_authenticated else None
    for entry in new.history[len(old.history):]:
        StageHistoryEntry.objects.create(
            application_id=application.pk,
            stage=entry.stage,
            status=entry.status,
            actor=entry.actor,
            reason=entry.reason,
            notes=entry.notes,
            documents=list(entry.documents),
            performed_by=performed_by,
            timestamp=entry.timestamp,
        )

    if new.key != old.key:
        resolve_open_alerts(application_id=application.pk, stage=old.stage, status=old.status)

    application.refresh_from_db()
    interpreter.run(application, effects, user=user)


# ============================================================
# Entry point
# ============================================================
def attempt_transition(
    application: Application,
    actor: str,
    target_status: str,
    aux_data: Optional[Mapping[str, Any]] = None,
    *,
    user=None,
    expected_version: Optional[int] = None,
    registry: Optional[StatusRegistry] = None,
    pipeline: Optional[RulePipeline] = None,
    interpreter: Optional[EffectInterpreter] = None,
    now=None,
) -> TransitionResult:
    """
    Validate and persist one user-initiated transition.

    Expected failures (authority, validation, duplicates, lost races) come
    back as a failed TransitionResult. A ConfigurationError is raised only
    when DEBUG or ADMISSIONS_STRICT_REGISTRY is on.
    """
    registry = registry or get_registry()
    pipeline = pipeline or build_pipeline(registry)
    now = now or timezone.now()
    actor = normalize_actor(actor)
    target = normalize_status(target_status)
    aux = dict(aux_data or {})
    request = TransitionRequest(actor=actor, target_status=target, aux_data=aux)

    if expected_version is not None and int(expected_version) != application.version:
        return _conflict(
            application,
            ConcurrencyConflict(application.pk, int(expected_version), application.version),
        )

    state = application.to_state()
    try:
        outcome = transition(state, request, registry=registry, pipeline=pipeline, now=now)
    except ConfigurationError as exc:
        return _configuration_failure(application, exc)

    if not outcome.success:
        return TransitionResult(
            success=False,
            application=application,
            errors=outcome.errors,
            warnings=outcome.warnings,
            actions=outcome.actions,
        )

    try:
        with transaction.atomic():
            latest = Application.objects.select_for_update().get(pk=application.pk)
            latest_state = latest.to_state()

            # Another writer may have moved the record since we evaluated.
            if latest_state.version != state.version:
                recheck = pipeline.recheck(latest_state, actor, target, aux, now)
                if not recheck.can_proceed:
                    application.refresh_from_db()
                    return TransitionResult(
                        success=False,
                        application=application,
                        errors=recheck.errors,
                    )
                raise ConcurrencyConflict(application.pk, state.version, latest_state.version)

            commit_state(
                application,
                state,
                outcome.state,
                outcome.effects,
                user=user,
                interpreter=interpreter,
            )
    except ConcurrencyConflict as exc:
        return _conflict(application, exc)

    logger.info(
        "Application %s: %s:%s -> %s:%s by %s",
        application.pk, state.stage, state.status,
        application.stage, application.status, actor,
    )

    applied: Tuple[str, ...] = ()
    if getattr(settings, "ADMISSIONS_AUTOMATION_ON_TRANSITION", False):
        from admissions_core.workflows.runtime import process_application_event
        from admissions_core.workflows.automation import STATUS_CHANGED

        follow_up = process_application_event(
            application,
            STATUS_CHANGED,
            {"previous_stage": state.stage, "previous_status": state.status},
            user=user,
            interpreter=interpreter,
        )
        applied = follow_up.applied

    return TransitionResult(
        success=True,
        application=application,
        warnings=outcome.warnings,
        actions=outcome.actions,
        automation=applied,
    )
