# admissions_core/workflows/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


# ===============================================================
# Error kinds (structured, returned to callers)
# ===============================================================

AUTHORITY_VIOLATION = "authority_violation"
VALIDATION_FAILURE = "validation_failure"
DUPLICATE_TRANSITION = "duplicate_transition"
RULE_INTERNAL_ERROR = "rule_internal_error"
CONFIGURATION_ERROR = "configuration_error"
CONCURRENCY_CONFLICT = "concurrency_conflict"


@dataclass(frozen=True)
class TransitionError:
    """
    A single reason a transition could not proceed.

    Expected failures travel as values, never as exceptions.
    """

    kind: str
    message: str
    rule: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "rule": self.rule}


# ===============================================================
# Exceptions (system faults only)
# ===============================================================

class WorkflowError(Exception):
    """Base class for workflow faults that are not user errors."""


class ConfigurationError(WorkflowError):
    """
    The status registry is inconsistent or was asked for a key it does not hold.
    """

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems = list(problems or [])
        if self.problems:
            message = message + "\n  - " + "\n  - ".join(self.problems)
        super().__init__(message)


class UnknownStatusError(ConfigurationError):
    def __init__(self, stage: int, status: str):
        self.stage = stage
        self.status = status
        super().__init__(f"Unknown workflow status: stage {stage}, '{status}'")


class ConcurrencyConflict(WorkflowError):
    """Raised inside a commit when the application version moved underneath us."""

    def __init__(self, application_id, expected_version: int, actual_version: Optional[int]):
        self.application_id = application_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Application {application_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})."
        )


class AutomationLoopError(WorkflowError):
    """Raised by strict automation runs that exceed their step budget."""
