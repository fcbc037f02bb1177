# admissions_core/workflows/sla.py
"""
Authoritative SLA definitions and helpers.

Pure timing data plus the helpers that read it. No Django imports, so it
can be loaded by the registry check at startup. Every key here must name a
row of the status registry.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

# ===============================================================
# SLA DEFINITIONS
# ===============================================================
# Semantics:
# - warn_after   : time in status after which the SLA is WARNING
# - breach_after : time in status after which the SLA is BREACHED
# - severity     : weight used by alerts
#
# A status absent from its stage table has no SLA.
# ===============================================================

SLA_DEFINITIONS: Dict[int, Dict[str, Dict[str, Any]]] = {
    1: {
        "new_application": {
            "warn_after": timedelta(days=1),
            "breach_after": timedelta(days=2),
            "severity": "warning",
        },
        "documents_submitted": {
            "warn_after": timedelta(days=2),
            "breach_after": timedelta(days=3),
            "severity": "warning",
        },
        "documents_under_review": {
            "warn_after": timedelta(days=2),
            "breach_after": timedelta(days=4),
            "severity": "warning",
        },
        "correction_requested_admin": {
            "warn_after": timedelta(days=5),
            "breach_after": timedelta(days=10),
            "severity": "warning",
        },
    },
    2: {
        "sent_to_university": {
            "warn_after": timedelta(days=14),
            "breach_after": timedelta(days=21),
            "severity": "critical",
        },
        "program_change_suggested": {
            "warn_after": timedelta(days=3),
            "breach_after": timedelta(days=7),
            "severity": "warning",
        },
    },
    3: {
        "waiting_visa_payment": {
            "warn_after": timedelta(days=7),
            "breach_after": timedelta(days=14),
            "severity": "warning",
        },
        "submitted_to_immigration": {
            "warn_after": timedelta(days=21),
            "breach_after": timedelta(days=30),
            "severity": "critical",
        },
    },
    4: {
        "arrival_confirmed": {
            "warn_after": timedelta(days=7),
            "breach_after": timedelta(days=14),
            "severity": "warning",
        },
    },
    5: {
        "commission_pending": {
            "warn_after": timedelta(days=14),
            "breach_after": timedelta(days=30),
            "severity": "warning",
        },
        "commission_disputed": {
            "warn_after": timedelta(days=7),
            "breach_after": timedelta(days=14),
            "severity": "critical",
        },
    },
}


# ===============================================================
# PUBLIC API
# ===============================================================

def get_sla(stage, status: str) -> Optional[Dict[str, Any]]:
    """
    Return the SLA definition for a (stage, status) pair, or None.
    Status matching is case-insensitive.
    """
    if not stage or not status:
        return None
    try:
        stage = int(stage)
    except (TypeError, ValueError):
        return None
    return SLA_DEFINITIONS.get(stage, {}).get(status.strip().lower())


def td_seconds(value: Optional[timedelta]) -> Optional[int]:
    if value is None:
        return None
    return int(value.total_seconds())


def compute_sla(*, stage, status: str, entered_at: Optional[datetime], now: datetime) -> Dict[str, Any]:
    sla = get_sla(stage, status)
    if not sla or entered_at is None:
        return {
            "applies": False,
            "status": "none",
            "severity": None,
            "entered_at": entered_at,
            "age_seconds": None,
            "warn_after_seconds": None,
            "breach_after_seconds": None,
            "remaining_seconds": None,
        }

    age_seconds = td_seconds(now - entered_at)
    warn_s = td_seconds(sla.get("warn_after"))
    breach_s = td_seconds(sla.get("breach_after"))

    sla_state = "ok"
    if breach_s is not None and age_seconds >= breach_s:
        sla_state = "breached"
    elif warn_s is not None and age_seconds >= warn_s:
        sla_state = "warning"

    return {
        "applies": True,
        "status": sla_state,
        "severity": sla.get("severity"),
        "entered_at": entered_at,
        "age_seconds": age_seconds,
        "warn_after_seconds": warn_s,
        "breach_after_seconds": breach_s,
        "remaining_seconds": None if breach_s is None else breach_s - age_seconds,
    }
