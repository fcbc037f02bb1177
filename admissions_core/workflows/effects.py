# admissions_core/workflows/effects.py
"""
Side effects requested by the pure workflow core.

The core only describes them; workflows/interpreter.py carries them out
against the database, the notification dispatcher and the commission
calculator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Effect:
    pass


@dataclass(frozen=True)
class RecordAudit(Effect):
    event: str
    actor: str
    from_stage: int
    from_status: str
    to_stage: int
    to_status: str
    description: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerateDocument(Effect):
    stage: int
    document_type: str
    file_name: str
    status: str = "approved"


@dataclass(frozen=True)
class RequestDocuments(Effect):
    stage: int
    title: str
    requested_documents: Tuple[str, ...]
    requested_by: str


@dataclass(frozen=True)
class CreateCommission(Effect):
    effective_date: datetime


@dataclass(frozen=True)
class Notify(Effect):
    audience: str
    template_key: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    urgent: bool = False


def of_type(effects, kind) -> Tuple[Any, ...]:
    return tuple(e for e in effects if isinstance(e, kind))


def first(effects, kind) -> Optional[Any]:
    found = of_type(effects, kind)
    return found[0] if found else None
