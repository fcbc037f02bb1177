# admissions_core/workflows/authority.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .registry import StatusRegistry, get_registry, normalize_actor, normalize_status

NO_AUTHORITY = "no_authority"
TARGET_NOT_ALLOWED = "target_not_allowed"


@dataclass(frozen=True)
class AuthorityDecision:
    allowed: bool
    reason: Optional[str] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


class AuthorityChecker:
    """
    Pure lookups over the registry.

    Authority depends only on the current (stage, status) and the actor,
    never on history or on the data supplied with a request.
    """

    def __init__(self, registry: Optional[StatusRegistry] = None):
        self.registry = registry or get_registry()

    def available_targets(self, stage: int, status: str, actor: str) -> Tuple[str, ...]:
        row = self.registry.get(stage, status)
        if row is None or row.terminal:
            return ()
        return row.targets_for(actor)

    def can_actor_transition(self, stage: int, status: str, actor: str) -> bool:
        return bool(self.available_targets(stage, status, actor))

    def validate(self, stage: int, status: str, target: str, actor: str) -> AuthorityDecision:
        actor = normalize_actor(actor)
        status = normalize_status(status)
        target = normalize_status(target)

        targets = self.available_targets(stage, status, actor)
        if not targets:
            return AuthorityDecision(
                allowed=False,
                reason=NO_AUTHORITY,
                message=(
                    f"{actor} has no authority over status '{status}' "
                    f"in stage {stage}."
                ),
            )

        if target not in targets:
            return AuthorityDecision(
                allowed=False,
                reason=TARGET_NOT_ALLOWED,
                message=(
                    f"{actor} may not move stage {stage} from '{status}' "
                    f"to '{target}'. Allowed: {', '.join(targets)}."
                ),
            )

        return AuthorityDecision(allowed=True)
