# admissions_core/workflows/health.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .registry import StatusRegistry, get_registry
from .state import ApplicationState

IDLE_WARNING_AFTER = timedelta(days=14)


def validate_application_state(
    state: ApplicationState,
    now: datetime,
    registry: Optional[StatusRegistry] = None,
) -> Dict[str, object]:
    """
    Whole-record sanity check, independent of any pending transition.

    Returns {"valid": bool, "errors": [...], "warnings": [...]}.
    """
    registry = registry or get_registry()
    errors: List[str] = []
    warnings: List[str] = []

    if not registry.contains(state.stage, state.status):
        errors.append(f"Status '{state.status}' is not defined for stage {state.stage}.")

    if not (state.program or "").strip():
        errors.append("Program is missing.")
    if not (state.university or "").strip():
        errors.append("University is missing.")
    if not (state.intake or "").strip():
        errors.append("Intake is missing.")

    last_change = state.updated_at or state.created_at
    if last_change and now - last_change > IDLE_WARNING_AFTER:
        days = (now - last_change).days
        warnings.append(f"Application has not changed for {days} days.")

    if not state.history:
        warnings.append("Application has no stage history.")

    return {"valid": not errors, "errors": errors, "warnings": warnings}
