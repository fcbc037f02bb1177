# admissions_core/workflows/registry.py
"""
Status registry: the single, read-only table of (stage, status) rows.

This module is PURE LOGIC + DATA.
- No Django imports
- Built once, then shared by reference
- Every other workflow component receives a registry instead of reaching
  for module globals
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigurationError, UnknownStatusError


# ===============================================================
# Actors
# ===============================================================

ADMIN = "ADMIN"
PARTNER = "PARTNER"
UNIVERSITY = "UNIVERSITY"
IMMIGRATION = "IMMIGRATION"
SYSTEM = "SYSTEM"

ACTORS: Tuple[str, ...] = (ADMIN, PARTNER, UNIVERSITY, IMMIGRATION, SYSTEM)

ACTOR_ALIASES: Dict[str, str] = {
    "ADMIN": ADMIN,
    "ADMINISTRATOR": ADMIN,
    "SUPERUSER": ADMIN,
    "PARTNER": PARTNER,
    "AGENT": PARTNER,
    "UNIVERSITY": UNIVERSITY,
    "UNI": UNIVERSITY,
    "IMMIGRATION": IMMIGRATION,
    "IMMIGRATION_OFFICE": IMMIGRATION,
    "SYSTEM": SYSTEM,
    "AUTOMATION": SYSTEM,
}


def normalize_actor(value) -> str:
    raw = str(value or "").strip().upper().replace(" ", "_").replace("-", "_")
    return ACTOR_ALIASES.get(raw, raw)


def normalize_status(value) -> str:
    return str(value or "").strip().lower()


# ===============================================================
# Row types
# ===============================================================

@dataclass(frozen=True)
class DocumentRequestSpec:
    stage: int
    title: str
    requested_documents: Tuple[str, ...]
    requested_by: str = SYSTEM


@dataclass(frozen=True)
class StatusDefinition:
    stage: int
    key: str
    set_by: str
    transitions: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    terminal: bool = False
    completes_stage: bool = False
    requires_confirmation: bool = False
    is_upload_status: bool = False
    is_review_status: bool = False
    is_payment_status: bool = False
    requires_reason: bool = False
    requires_date: bool = False
    requires_tracking_number: bool = False
    requires_receipt: bool = False

    prerequisite_documents: Tuple[str, ...] = ()
    documents_required: Tuple[str, ...] = ()
    waiting_for: Optional[str] = None
    auto_progress_to: Optional[str] = None
    notification_triggers: Tuple[Tuple[str, str], ...] = ()
    auto_generate: Tuple[str, ...] = ()
    document_requests: Tuple[DocumentRequestSpec, ...] = ()

    def targets_for(self, actor: str) -> Tuple[str, ...]:
        return tuple(self.transitions.get(normalize_actor(actor), ()))

    def all_targets(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for targets in self.transitions.values():
            for t in targets:
                if t not in seen:
                    seen.append(t)
        return tuple(seen)

    @property
    def requires_documents(self) -> bool:
        return bool(self.prerequisite_documents)


@dataclass(frozen=True)
class StageDefinition:
    number: int
    name: str
    entry_status: str
    statuses: Tuple[StatusDefinition, ...]


# ===============================================================
# Registry
# ===============================================================

class StatusRegistry:
    """
    Read-only lookup over the stage tables.

    Construction validates the table and raises ConfigurationError listing
    every problem found.
    """

    MIN_STATUSES_PER_STAGE = 6
    MAX_STATUSES_PER_STAGE = 12

    def __init__(self, stages: Iterable[StageDefinition], *, validate: bool = True):
        ordered = sorted(stages, key=lambda s: s.number)
        self._stages: Mapping[int, StageDefinition] = MappingProxyType(
            {s.number: s for s in ordered}
        )
        rows: Dict[Tuple[int, str], StatusDefinition] = {}
        for stage in ordered:
            for row in stage.statuses:
                rows[(stage.number, row.key)] = row
        self._rows: Mapping[Tuple[int, str], StatusDefinition] = MappingProxyType(rows)

        if validate:
            problems = self.problems()
            if problems:
                raise ConfigurationError("Workflow status registry is invalid", problems)

    # -----------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------

    def lookup(self, stage: int, status: str) -> StatusDefinition:
        row = self.get(stage, status)
        if row is None:
            raise UnknownStatusError(stage, status)
        return row

    def get(self, stage, status) -> Optional[StatusDefinition]:
        try:
            stage = int(stage)
        except (TypeError, ValueError):
            return None
        return self._rows.get((stage, normalize_status(status)))

    def contains(self, stage, status) -> bool:
        return self.get(stage, status) is not None

    def stage(self, number: int) -> StageDefinition:
        try:
            return self._stages[int(number)]
        except (KeyError, TypeError, ValueError):
            raise UnknownStatusError(number, "") from None

    def stages(self) -> Tuple[StageDefinition, ...]:
        return tuple(self._stages.values())

    def statuses(self, stage: int) -> Tuple[str, ...]:
        return tuple(row.key for row in self.stage(stage).statuses)

    def entry_status(self, stage: int) -> str:
        return self.stage(stage).entry_status

    def next_stage(self, stage: int) -> Optional[StageDefinition]:
        return self._stages.get(int(stage) + 1)

    def completion_map(self) -> Dict[Tuple[int, str], Tuple[int, str]]:
        """
        (stage, completing status) -> (next stage, entry status of next stage).

        The last stage's completing status ends the workflow and is not mapped.
        """
        out: Dict[Tuple[int, str], Tuple[int, str]] = {}
        for (stage, key), row in self._rows.items():
            if not row.completes_stage:
                continue
            nxt = self.next_stage(stage)
            if nxt is not None:
                out[(stage, key)] = (nxt.number, nxt.entry_status)
        return out

    def rows(self) -> Tuple[StatusDefinition, ...]:
        return tuple(self._rows.values())

    # -----------------------------------------------------------
    # Validation
    # -----------------------------------------------------------

    def problems(self) -> List[str]:
        problems: List[str] = []

        if not self._stages:
            return ["registry declares no stages"]

        numbers = sorted(self._stages)
        if numbers != list(range(1, len(numbers) + 1)):
            problems.append(f"stage numbers must be consecutive from 1, got {numbers}")

        for stage in self._stages.values():
            problems.extend(self._stage_problems(stage))

        return problems

    def _stage_problems(self, stage: StageDefinition) -> List[str]:
        problems: List[str] = []
        n = stage.number
        keys = [row.key for row in stage.statuses]
        key_set = set(keys)

        if len(keys) != len(key_set):
            problems.append(f"stage {n}: duplicate status keys")

        if not (self.MIN_STATUSES_PER_STAGE <= len(key_set) <= self.MAX_STATUSES_PER_STAGE):
            problems.append(
                f"stage {n}: expected {self.MIN_STATUSES_PER_STAGE}-"
                f"{self.MAX_STATUSES_PER_STAGE} statuses, got {len(key_set)}"
            )

        if stage.entry_status not in key_set:
            problems.append(f"stage {n}: entry status '{stage.entry_status}' is not declared")

        exits = [row.key for row in stage.statuses if row.completes_stage]
        if len(exits) != 1:
            problems.append(f"stage {n}: expected exactly one completing status, got {exits}")

        failures = [
            row.key for row in stage.statuses
            if row.terminal and not row.completes_stage
        ]
        if not failures:
            problems.append(f"stage {n}: no terminal failure status declared")

        for row in stage.statuses:
            label = f"stage {n} '{row.key}'"

            if row.stage != n:
                problems.append(f"{label}: row declares stage {row.stage}")

            for actor in row.transitions:
                if actor not in ACTORS:
                    problems.append(f"{label}: unknown actor '{actor}'")

            if row.terminal or row.completes_stage:
                if any(row.transitions.values()):
                    problems.append(f"{label}: terminal status must not declare transitions")
                if row.auto_progress_to:
                    problems.append(f"{label}: terminal status must not auto-progress")
            elif not row.all_targets():
                problems.append(f"{label}: non-terminal status declares no transitions")

            for target in row.all_targets():
                if target not in key_set:
                    problems.append(f"{label}: transition target '{target}' does not exist")
                if target == row.key:
                    problems.append(f"{label}: self-transition is not allowed")

            if row.auto_progress_to:
                if row.auto_progress_to not in key_set:
                    problems.append(
                        f"{label}: auto_progress_to '{row.auto_progress_to}' does not exist"
                    )
                elif row.auto_progress_to not in row.targets_for(SYSTEM):
                    problems.append(
                        f"{label}: auto_progress_to '{row.auto_progress_to}' "
                        "is not a SYSTEM transition"
                    )

            if row.waiting_for and row.waiting_for not in ACTORS:
                problems.append(f"{label}: waiting_for '{row.waiting_for}' is not an actor")

        unreachable = key_set - self._reachable(stage)
        if stage.entry_status in key_set and unreachable:
            problems.append(
                f"stage {n}: unreachable from '{stage.entry_status}': {sorted(unreachable)}"
            )

        return problems

    @staticmethod
    def _reachable(stage: StageDefinition) -> set:
        by_key = {row.key: row for row in stage.statuses}
        seen = {stage.entry_status}
        queue = deque([stage.entry_status])
        while queue:
            row = by_key.get(queue.popleft())
            if row is None:
                continue
            for target in row.all_targets():
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return seen


# ===============================================================
# Process-wide instance
# ===============================================================

@lru_cache(maxsize=1)
def get_registry() -> StatusRegistry:
    """
    Build the canonical registry on first use and reuse it afterwards.
    """
    from .definitions import STAGES

    return StatusRegistry(STAGES)
