# admissions_core/workflows/composer.py
"""
Stage composition and the pure transition function.

transition(state, request) -> TransitionOutcome(new_state, effects, ...)

Nothing here touches storage. The executor commits the new state and hands
the effects to the interpreter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from . import copy_catalog
from .authority import AuthorityChecker
from .definitions import COMMISSION_STAGE
from .effects import (
    CreateCommission,
    Effect,
    GenerateDocument,
    Notify,
    RecordAudit,
    RequestDocuments,
)
from .errors import AUTHORITY_VIOLATION, TransitionError
from .registry import PARTNER, StatusRegistry, get_registry, normalize_actor, normalize_status
from .rules import AUTO_ADVANCE_ACTION, URGENT_NOTIFICATION_ACTION, RulePipeline
from .state import ApplicationState, HistoryEntry

logger = logging.getLogger(__name__)

_DOCUMENT_FILE_STEMS = {
    "offer_letter": "University_Offer_Letter",
}


@dataclass(frozen=True)
class TransitionRequest:
    actor: str
    target_status: str
    aux_data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionOutcome:
    success: bool
    state: ApplicationState
    effects: Tuple[Effect, ...] = ()
    errors: Tuple[TransitionError, ...] = ()
    warnings: Tuple[str, ...] = ()
    actions: Tuple[str, ...] = ()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _file_stem(document_type: str) -> str:
    return _DOCUMENT_FILE_STEMS.get(
        document_type,
        "_".join(part.capitalize() for part in document_type.split("_")),
    )


def _parse_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        return None


def _document_names(aux: Mapping[str, Any]) -> Tuple[str, ...]:
    names: List[str] = []
    items = list(aux.get("documents") or [])
    if aux.get("receipt"):
        items.append(aux["receipt"])
    for item in items:
        if isinstance(item, Mapping):
            item = item.get("name") or item.get("file_name") or ""
        name = str(item).strip()
        if name and name not in names:
            names.append(name)
    return tuple(names)


# ===============================================================
# Stage composer
# ===============================================================

class StageComposer:
    def __init__(self, registry: Optional[StatusRegistry] = None):
        self.registry = registry or get_registry()
        self._completions = self.registry.completion_map()

    def resolve(self, stage: int, status: str) -> Tuple[int, str]:
        """
        Map a stage-completing status to the next stage's entry status.
        Any other status stays where it is.
        """
        status = normalize_status(status)
        return self._completions.get((int(stage), status), (int(stage), status))

    def apply_status(
        self,
        state: ApplicationState,
        target_status: str,
        *,
        actor: str,
        now: Optional[datetime] = None,
        aux_data: Optional[Mapping[str, Any]] = None,
        actions: Tuple[str, ...] = (),
        warnings: Tuple[str, ...] = (),
    ) -> Tuple[ApplicationState, Tuple[Effect, ...]]:
        now = now or _utcnow()
        aux = dict(aux_data or {})
        actor = normalize_actor(actor)
        target_status = normalize_status(target_status)

        reached = self.registry.lookup(state.stage, target_status)
        new_stage, new_status = self.resolve(state.stage, target_status)
        landed = self.registry.lookup(new_stage, new_status)
        jumped = new_stage != state.stage

        documents_received = list(state.documents_received)
        for tag in aux.get("document_types") or ():
            tag = str(tag).strip()
            if tag and tag not in documents_received:
                documents_received.append(tag)

        entry = HistoryEntry(
            stage=new_stage,
            status=new_status,
            timestamp=now,
            actor=actor,
            reason=str(aux.get("reason") or "").strip(),
            notes=str(aux.get("notes") or "").strip(),
            documents=_document_names(aux),
        )

        changes = dict(
            stage=new_stage,
            status=new_status,
            version=state.version + 1,
            next_actor=landed.waiting_for,
            next_action=copy_catalog.next_action(new_stage, new_status),
            documents_required=landed.documents_required,
            documents_received=tuple(documents_received),
            updated_at=now,
            status_entered_at=now,
            stage_entered_at=now if jumped else (state.stage_entered_at or now),
            history=state.history + (entry,),
        )
        tracking = str(aux.get("tracking_number") or "").strip()
        if tracking:
            changes["tracking_number"] = tracking
        arrival = _parse_date(aux.get("arrival_date") or aux.get("planned_arrival_date"))
        if arrival:
            changes["arrival_date"] = arrival

        new_state = state.evolve(**changes)
        effects = self._effects(state, new_state, reached, landed, actor, now, actions, warnings, aux)
        return new_state, effects

    def _effects(self, old, new, reached, landed, actor, now, actions, warnings, aux) -> Tuple[Effect, ...]:
        jumped = new.stage != old.stage
        effects: List[Effect] = []

        description = f"Status changed from {old.status} to {new.status}"
        if jumped:
            description += f" (moved to {self.registry.stage(new.stage).name})"

        effects.append(
            RecordAudit(
                event=f"status.{new.status}",
                actor=actor,
                from_stage=old.stage,
                from_status=old.status,
                to_stage=new.stage,
                to_status=new.status,
                description=description,
                metadata={
                    "auto_advanced": jumped,
                    "completed_status": reached.key if jumped else None,
                    "reason": str(aux.get("reason") or ""),
                    "warnings": list(warnings),
                    "actions": list(actions),
                },
            )
        )

        for document_type in reached.auto_generate:
            effects.append(
                GenerateDocument(
                    stage=reached.stage,
                    document_type=document_type,
                    file_name=f"{new.id}_{_file_stem(document_type)}.pdf",
                )
            )

        for spec in reached.document_requests:
            effects.append(
                RequestDocuments(
                    stage=spec.stage,
                    title=spec.title,
                    requested_documents=spec.requested_documents,
                    requested_by=spec.requested_by,
                )
            )

        if jumped and new.stage == COMMISSION_STAGE:
            effects.append(CreateCommission(effective_date=now))

        payload = {
            "application_id": new.id,
            "stage": new.stage,
            "status": new.status,
            "from_stage": old.stage,
            "from_status": old.status,
            "actor": actor,
        }

        triggers = list(reached.notification_triggers)
        if landed is not reached:
            triggers.extend(t for t in landed.notification_triggers if t not in triggers)
        for audience, template_key in triggers:
            effects.append(Notify(audience=audience, template_key=template_key, payload=payload))

        if URGENT_NOTIFICATION_ACTION in actions:
            effects.append(
                Notify(
                    audience=PARTNER,
                    template_key="urgent_status_change",
                    payload=payload,
                    urgent=True,
                )
            )

        return tuple(effects)


# ===============================================================
# Pure transition
# ===============================================================

def transition(
    state: ApplicationState,
    request: TransitionRequest,
    *,
    registry: Optional[StatusRegistry] = None,
    pipeline: Optional[RulePipeline] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """
    Evaluate and, when allowed, apply one user-initiated transition.

    Raises ConfigurationError when the current (stage, status) is not a
    registry key. Every other failure is returned in the outcome.
    """
    registry = registry or get_registry()
    pipeline = pipeline or RulePipeline(registry)
    now = now or _utcnow()
    actor = normalize_actor(request.actor)
    target = normalize_status(request.target_status)

    registry.lookup(state.stage, state.status)

    checker = AuthorityChecker(registry)
    if not checker.can_actor_transition(state.stage, state.status, actor):
        decision = checker.validate(state.stage, state.status, target, actor)
        logger.warning(
            "Denied %s on application %s: %s", actor, state.id, decision.message,
        )
        return TransitionOutcome(
            success=False,
            state=state,
            errors=(TransitionError(AUTHORITY_VIOLATION, decision.message, "authority-recheck"),),
        )

    outcome = pipeline.evaluate(state, actor, target, request.aux_data, now)
    if not outcome.can_proceed:
        logger.info(
            "Transition %s -> %s rejected for application %s: %s",
            state.status, target, state.id, "; ".join(outcome.error_messages),
        )
        return TransitionOutcome(
            success=False,
            state=state,
            errors=outcome.errors,
            warnings=outcome.warnings,
            actions=outcome.actions,
        )

    new_state, effects = StageComposer(registry).apply_status(
        state,
        target,
        actor=actor,
        now=now,
        aux_data=request.aux_data,
        actions=outcome.actions,
        warnings=outcome.warnings,
    )

    if AUTO_ADVANCE_ACTION in outcome.actions:
        logger.info(
            "Application %s advanced from stage %s to stage %s (%s)",
            state.id, state.stage, new_state.stage, new_state.status,
        )

    return TransitionOutcome(
        success=True,
        state=new_state,
        effects=effects,
        warnings=outcome.warnings,
        actions=outcome.actions,
    )
