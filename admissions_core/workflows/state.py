# admissions_core/workflows/state.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class HistoryEntry:
    """One stage-history record. Entries are only ever appended."""

    stage: int
    status: str
    timestamp: datetime
    actor: str
    reason: str = ""
    notes: str = ""
    documents: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "status": self.status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "actor": self.actor,
            "reason": self.reason,
            "notes": self.notes,
            "documents": list(self.documents),
        }


@dataclass(frozen=True)
class ApplicationState:
    """
    Immutable snapshot of an application as the workflow core sees it.

    The persistence layer converts model rows to and from this shape.
    """

    id: Any
    stage: int
    status: str
    version: int = 1

    next_actor: Optional[str] = None
    next_action: str = ""
    documents_required: Tuple[str, ...] = ()
    documents_received: Tuple[str, ...] = ()

    program: str = ""
    university: str = ""
    intake: str = ""
    tracking_number: str = ""
    tuition_fee: Optional[Decimal] = None
    priority: str = "normal"
    arrival_date: Optional[date] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    stage_entered_at: Optional[datetime] = None
    status_entered_at: Optional[datetime] = None

    history: Tuple[HistoryEntry, ...] = field(default_factory=tuple)

    def evolve(self, **changes) -> "ApplicationState":
        return replace(self, **changes)

    @property
    def key(self) -> Tuple[int, str]:
        return (self.stage, self.status)
