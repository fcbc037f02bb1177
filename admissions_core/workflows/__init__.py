# admissions_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from . import copy_catalog
from .authority import AuthorityChecker, AuthorityDecision
from .composer import StageComposer, TransitionOutcome, TransitionRequest, transition
from .errors import ConfigurationError, TransitionError, UnknownStatusError
from .registry import (
    ACTORS,
    ADMIN,
    IMMIGRATION,
    PARTNER,
    SYSTEM,
    UNIVERSITY,
    StatusRegistry,
    get_registry,
    normalize_actor,
    normalize_status,
)
from .rules import RulePipeline


# ===============================================================
# Public workflow API
# ===============================================================

def get_available_transitions(
    stage: int,
    status: str,
    actor: str,
    registry: Optional[StatusRegistry] = None,
) -> List[Dict[str, Any]]:
    """
    Transitions the actor may request from (stage, status), with the flags a
    caller needs to build a form. Unknown or terminal rows yield [].
    """
    registry = registry or get_registry()
    composer = StageComposer(registry)
    out: List[Dict[str, Any]] = []

    for key in AuthorityChecker(registry).available_targets(stage, status, actor):
        row = registry.lookup(stage, key)
        target_stage, target_status = composer.resolve(stage, key)
        out.append(
            {
                "key": key,
                "display_name": copy_catalog.display_name(stage, key),
                "requires_reason": bool(
                    row.requires_reason or "rejected" in key or "disputed" in key
                ),
                "requires_documents": row.requires_documents,
                "required_documents": list(row.prerequisite_documents),
                "requires_confirmation": row.requires_confirmation,
                "target_stage": target_stage,
                "target_status": target_status,
            }
        )
    return out


def is_terminal(stage: int, status: str, registry: Optional[StatusRegistry] = None) -> bool:
    """
    True when no actor, SYSTEM included, may move the record any further.
    Unknown rows are treated as terminal: nothing can leave them.
    """
    registry = registry or get_registry()
    row = registry.get(stage, status)
    if row is None:
        return True
    return row.terminal or not row.all_targets()


def attempt_transition(*args, **kwargs):
    """
    Persisting entry point; see workflows.executor.attempt_transition.
    """
    from .executor import attempt_transition as _attempt

    return _attempt(*args, **kwargs)


def workflow_definition(registry: Optional[StatusRegistry] = None) -> Dict[str, Any]:
    registry = registry or get_registry()
    return {
        "actors": list(ACTORS),
        "completions": [
            {"stage": s, "status": k, "next_stage": ns, "next_status": nk}
            for (s, k), (ns, nk) in sorted(registry.completion_map().items())
        ],
        "stages": [
            {
                "stage": stage.number,
                "name": stage.name,
                "entry_status": stage.entry_status,
                "statuses": [status_definition(stage.number, row.key, registry) for row in stage.statuses],
            }
            for stage in registry.stages()
        ],
    }


def status_definition(stage: int, status: str, registry: Optional[StatusRegistry] = None) -> Dict[str, Any]:
    registry = registry or get_registry()
    row = registry.lookup(stage, status)
    return {
        "key": row.key,
        "display_name": copy_catalog.display_name(stage, row.key),
        "set_by": row.set_by,
        "transitions": {actor: list(row.targets_for(actor)) for actor in ACTORS if row.targets_for(actor)},
        "terminal": row.terminal,
        "completes_stage": row.completes_stage,
        "requires_confirmation": row.requires_confirmation,
        "is_upload_status": row.is_upload_status,
        "is_review_status": row.is_review_status,
        "is_payment_status": row.is_payment_status,
        "prerequisite_documents": list(row.prerequisite_documents),
        "documents_required": list(row.documents_required),
        "waiting_for": row.waiting_for,
        "auto_progress_to": row.auto_progress_to,
        "next_action": copy_catalog.next_action(stage, row.key),
    }


__all__ = [
    "ACTORS",
    "ADMIN",
    "IMMIGRATION",
    "PARTNER",
    "SYSTEM",
    "UNIVERSITY",
    "AuthorityChecker",
    "AuthorityDecision",
    "ConfigurationError",
    "RulePipeline",
    "StageComposer",
    "StatusRegistry",
    "TransitionError",
    "TransitionOutcome",
    "TransitionRequest",
    "UnknownStatusError",
    "attempt_transition",
    "get_available_transitions",
    "get_registry",
    "is_terminal",
    "normalize_actor",
    "normalize_status",
    "status_definition",
    "transition",
    "workflow_definition",
]
