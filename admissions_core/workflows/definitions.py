# admissions_core/workflows/definitions.py
"""
Canonical stage tables.

This is the only authority table in the project. Presentation copy lives in
copy_catalog.py; nothing here is user-facing text except stage names.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Tuple

from .registry import (
    ADMIN,
    IMMIGRATION,
    PARTNER,
    SYSTEM,
    UNIVERSITY,
    DocumentRequestSpec,
    StageDefinition,
    StatusDefinition,
)


def _row(stage: int, key: str, set_by: str, transitions: Dict[str, Iterable[str]] = None, **flags) -> StatusDefinition:
    frozen = MappingProxyType(
        {actor: tuple(targets) for actor, targets in (transitions or {}).items()}
    )
    for name in (
        "prerequisite_documents",
        "documents_required",
        "notification_triggers",
        "auto_generate",
        "document_requests",
    ):
        if name in flags:
            flags[name] = tuple(flags[name])
    return StatusDefinition(stage=stage, key=key, set_by=set_by, transitions=frozen, **flags)


def _terminal(stage: int, key: str, set_by: str, **flags) -> StatusDefinition:
    return _row(stage, key, set_by, terminal=True, **flags)


# ===============================================================
# STAGE 1: intake review
# ===============================================================

_UPLOAD_TARGETS = ("documents_partially_submitted", "documents_submitted")
_DOCUMENT_DECISIONS = (
    "documents_approved",
    "documents_rejected",
    "documents_resubmission_required",
)

STAGE_1 = StageDefinition(
    number=1,
    name="Partner Application Submission (Pre-University Review)",
    entry_status="new_application",
    statuses=(
        _row(
            1, "new_application", SYSTEM,
            {ADMIN: (
                "under_review_admin",
                "approved_stage1",
                "rejected_stage1",
                "correction_requested_admin",
                "application_cancelled",
            ),
             SYSTEM: _UPLOAD_TARGETS},
            waiting_for=ADMIN,
            notification_triggers=[(ADMIN, "new_application_received")],
        ),
        _row(
            1, "under_review_admin", ADMIN,
            {ADMIN: (
                "approved_stage1",
                "rejected_stage1",
                "correction_requested_admin",
                "application_cancelled",
            )},
            is_review_status=True,
            waiting_for=ADMIN,
        ),
        _row(
            1, "correction_requested_admin", ADMIN,
            {PARTNER: _UPLOAD_TARGETS, SYSTEM: _UPLOAD_TARGETS},
            is_upload_status=True,
            waiting_for=PARTNER,
            documents_required=["corrections_list"],
            notification_triggers=[(PARTNER, "corrections_requested")],
        ),
        _row(
            1, "documents_partially_submitted", SYSTEM,
            {PARTNER: ("documents_submitted",), SYSTEM: ("documents_submitted",)},
            is_upload_status=True,
            waiting_for=PARTNER,
        ),
        _row(
            1, "documents_submitted", SYSTEM,
            {ADMIN: ("documents_under_review",) + _DOCUMENT_DECISIONS},
            is_review_status=True,
            waiting_for=ADMIN,
            notification_triggers=[(ADMIN, "documents_ready_for_review")],
        ),
        _row(
            1, "documents_under_review", ADMIN,
            {ADMIN: _DOCUMENT_DECISIONS},
            is_review_status=True,
            waiting_for=ADMIN,
        ),
        _row(
            1, "documents_approved", ADMIN,
            {ADMIN: ("approved_stage1", "correction_requested_admin"), SYSTEM: ("approved_stage1",)},
            waiting_for=ADMIN,
            auto_progress_to="approved_stage1",
        ),
        _row(
            1, "documents_rejected", ADMIN,
            {ADMIN: ("documents_resubmission_required", "rejected_stage1")},
            is_review_status=True,
            requires_reason=True,
            waiting_for=ADMIN,
            notification_triggers=[(PARTNER, "documents_rejected")],
        ),
        _row(
            1, "documents_resubmission_required", ADMIN,
            {PARTNER: _UPLOAD_TARGETS, SYSTEM: _UPLOAD_TARGETS},
            is_upload_status=True,
            waiting_for=PARTNER,
            documents_required=["corrected_documents"],
            notification_triggers=[(PARTNER, "documents_resubmission_required")],
        ),
        _terminal(
            1, "approved_stage1", ADMIN,
            completes_stage=True,
            auto_generate=["university_submission_package"],
            notification_triggers=[(PARTNER, "stage1_complete"), (ADMIN, "ready_for_university")],
        ),
        _terminal(
            1, "rejected_stage1", ADMIN,
            requires_reason=True,
            notification_triggers=[(PARTNER, "application_rejected")],
        ),
        _terminal(1, "application_cancelled", ADMIN),
    ),
)


# ===============================================================
# STAGE 2: university decision
# ===============================================================

_UNIVERSITY_DECISIONS = (
    "university_approved",
    "rejected_university",
    "university_requested_corrections",
    "program_change_suggested",
)

STAGE_2 = StageDefinition(
    number=2,
    name="Offer Letter Stage",
    entry_status="sent_to_university",
    statuses=(
        _row(
            2, "sent_to_university", SYSTEM,
            {ADMIN: _UNIVERSITY_DECISIONS, UNIVERSITY: _UNIVERSITY_DECISIONS},
            waiting_for=UNIVERSITY,
            notification_triggers=[(UNIVERSITY, "application_received")],
        ),
        _row(
            2, "university_requested_corrections", UNIVERSITY,
            {PARTNER: ("sent_to_university",)},
            is_upload_status=True,
            waiting_for=PARTNER,
            documents_required=["university_corrections"],
            notification_triggers=[(PARTNER, "university_corrections_requested")],
        ),
        _row(
            2, "program_change_suggested", UNIVERSITY,
            {PARTNER: ("program_change_accepted", "program_change_rejected")},
            requires_confirmation=True,
            waiting_for=PARTNER,
            notification_triggers=[(PARTNER, "program_change_suggested")],
        ),
        _row(
            2, "program_change_accepted", PARTNER,
            {ADMIN: ("sent_to_university",), SYSTEM: ("sent_to_university",)},
            waiting_for=ADMIN,
            auto_progress_to="sent_to_university",
        ),
        _row(
            2, "program_change_rejected", PARTNER,
            {PARTNER: ("sent_to_university", "rejected_university")},
            waiting_for=PARTNER,
        ),
        _row(
            2, "university_approved", UNIVERSITY,
            {
                ADMIN: ("offer_letter_issued",),
                UNIVERSITY: ("offer_letter_issued",),
                SYSTEM: ("offer_letter_issued",),
            },
            waiting_for=ADMIN,
            auto_progress_to="offer_letter_issued",
        ),
        _terminal(
            2, "offer_letter_issued", ADMIN,
            completes_stage=True,
            auto_generate=["offer_letter"],
            document_requests=[
                DocumentRequestSpec(
                    stage=3,
                    title="Visa Payment Proof Required",
                    requested_documents=("visa_payment_proof",),
                ),
            ],
            notification_triggers=[(PARTNER, "offer_letter_issued")],
        ),
        _terminal(
            2, "rejected_university", UNIVERSITY,
            requires_reason=True,
            notification_triggers=[(PARTNER, "university_rejected")],
        ),
    ),
)


# ===============================================================
# STAGE 3: visa processing
# ===============================================================

_IMMIGRATION_DECISIONS = ("visa_approved", "visa_rejected", "additional_documents_required")

STAGE_3 = StageDefinition(
    number=3,
    name="Visa Processing",
    entry_status="waiting_visa_payment",
    statuses=(
        _row(
            3, "waiting_visa_payment", SYSTEM,
            {PARTNER: ("payment_received",)},
            is_payment_status=True,
            is_upload_status=True,
            waiting_for=PARTNER,
            documents_required=["visa_payment_proof"],
        ),
        _row(
            3, "payment_received", PARTNER,
            {ADMIN: ("submitted_to_immigration", "waiting_visa_payment")},
            is_payment_status=True,
            requires_receipt=True,
            waiting_for=ADMIN,
            notification_triggers=[(ADMIN, "visa_payment_received")],
        ),
        _row(
            3, "submitted_to_immigration", ADMIN,
            {ADMIN: _IMMIGRATION_DECISIONS, IMMIGRATION: _IMMIGRATION_DECISIONS},
            requires_tracking_number=True,
            waiting_for=IMMIGRATION,
        ),
        _row(
            3, "additional_documents_required", IMMIGRATION,
            {PARTNER: ("submitted_to_immigration",)},
            is_upload_status=True,
            waiting_for=PARTNER,
            documents_required=["immigration_documents"],
            notification_triggers=[(PARTNER, "immigration_documents_requested")],
        ),
        _row(
            3, "visa_approved", IMMIGRATION,
            {ADMIN: ("visa_issued",), IMMIGRATION: ("visa_issued",)},
            waiting_for=ADMIN,
        ),
        _terminal(
            3, "visa_issued", ADMIN,
            completes_stage=True,
            requires_date=True,
            requires_tracking_number=True,
            notification_triggers=[(PARTNER, "visa_issued")],
        ),
        _terminal(
            3, "visa_rejected", IMMIGRATION,
            requires_reason=True,
            notification_triggers=[(PARTNER, "visa_rejected")],
        ),
    ),
)


# ===============================================================
# STAGE 4: arrival and enrollment
# ===============================================================

STAGE_4 = StageDefinition(
    number=4,
    name="Student Arrival & Enrollment",
    entry_status="arrival_date_planned",
    statuses=(
        _row(
            4, "arrival_date_planned", SYSTEM,
            {
                ADMIN: ("travel_documents_verified", "arrival_delayed"),
                PARTNER: ("travel_documents_verified", "arrival_delayed"),
            },
            waiting_for=PARTNER,
            documents_required=["passport_copy", "visa_copy", "flight_ticket"],
        ),
        _row(
            4, "travel_documents_verified", ADMIN,
            {
                ADMIN: ("arrival_confirmed", "arrival_delayed"),
                PARTNER: ("arrival_confirmed", "arrival_delayed"),
            },
            prerequisite_documents=["passport_copy", "visa_copy", "flight_ticket"],
            waiting_for=PARTNER,
        ),
        _row(
            4, "arrival_confirmed", PARTNER,
            {ADMIN: ("arrival_verified", "arrival_delayed")},
            requires_date=True,
            waiting_for=ADMIN,
            notification_triggers=[(ADMIN, "arrival_confirmed")],
        ),
        _row(
            4, "arrival_delayed", PARTNER,
            {
                ADMIN: ("travel_documents_verified", "arrival_confirmed", "arrival_cancelled"),
                PARTNER: ("travel_documents_verified", "arrival_confirmed"),
            },
            waiting_for=PARTNER,
        ),
        _row(
            4, "arrival_verified", ADMIN,
            {ADMIN: ("enrollment_confirmed",)},
            waiting_for=ADMIN,
        ),
        _terminal(
            4, "enrollment_confirmed", ADMIN,
            completes_stage=True,
            auto_generate=["commission_calculation_report"],
            notification_triggers=[(PARTNER, "enrollment_confirmed")],
        ),
        _terminal(4, "arrival_cancelled", ADMIN),
    ),
)


# ===============================================================
# STAGE 5: partner commission
# ===============================================================

STAGE_5 = StageDefinition(
    number=5,
    name="Partner Commission",
    entry_status="commission_pending",
    statuses=(
        _row(
            5, "commission_pending", SYSTEM,
            {ADMIN: ("commission_approved", "commission_disputed")},
            is_payment_status=True,
            waiting_for=ADMIN,
        ),
        _row(
            5, "commission_approved", ADMIN,
            {ADMIN: ("commission_released", "commission_disputed"), PARTNER: ("commission_disputed",)},
            is_payment_status=True,
            waiting_for=ADMIN,
            notification_triggers=[(PARTNER, "commission_approved")],
        ),
        _row(
            5, "commission_released", ADMIN,
            {ADMIN: ("commission_paid",), PARTNER: ("commission_paid", "commission_disputed")},
            is_payment_status=True,
            requires_receipt=True,
            waiting_for=PARTNER,
            notification_triggers=[(PARTNER, "commission_released")],
        ),
        _row(
            5, "commission_disputed", PARTNER,
            {ADMIN: ("commission_approved", "commission_rejected"), PARTNER: ("commission_approved",)},
            requires_reason=True,
            waiting_for=ADMIN,
            notification_triggers=[(ADMIN, "commission_disputed")],
        ),
        _terminal(
            5, "commission_paid", PARTNER,
            completes_stage=True,
            is_payment_status=True,
            notification_triggers=[(PARTNER, "commission_paid")],
        ),
        _terminal(
            5, "commission_rejected", ADMIN,
            requires_reason=True,
            notification_triggers=[(PARTNER, "commission_rejected")],
        ),
    ),
)


STAGES: Tuple[StageDefinition, ...] = (STAGE_1, STAGE_2, STAGE_3, STAGE_4, STAGE_5)

COMMISSION_STAGE = 5
