# admissions_core/workflows/copy_catalog.py
"""
Presentation copy for workflow statuses, keyed by (stage, status, role, field).

Kept apart from the state-machine tables so the core can be exercised without
any text fixtures.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .registry import ADMIN, PARTNER, normalize_actor, normalize_status

# (stage, status) -> field -> text
_STATUS_COPY: Dict[Tuple[int, str], Dict[str, str]] = {
    (1, "new_application"): {
        "display_name": "New Application",
        "next_action": "Review the new application",
    },
    (1, "under_review_admin"): {
        "display_name": "Under Admin Review",
        "next_action": "Complete the admin review",
    },
    (1, "correction_requested_admin"): {
        "display_name": "Corrections Requested",
        "next_action": "Upload the requested corrections",
    },
    (1, "documents_partially_submitted"): {
        "display_name": "Documents Partially Submitted",
        "next_action": "Upload the remaining documents",
    },
    (1, "documents_submitted"): {
        "display_name": "Documents Submitted",
        "next_action": "Review the submitted documents",
    },
    (1, "documents_under_review"): {
        "display_name": "Documents Under Review",
        "next_action": "Approve, reject or request resubmission",
    },
    (1, "documents_approved"): {
        "display_name": "Documents Approved",
        "next_action": "Approve the application for university submission",
    },
    (1, "documents_rejected"): {
        "display_name": "Documents Rejected",
        "next_action": "Request resubmission or reject the application",
    },
    (1, "documents_resubmission_required"): {
        "display_name": "Resubmission Required",
        "next_action": "Upload corrected documents",
    },
    (1, "approved_stage1"): {"display_name": "Approved for University Submission"},
    (1, "rejected_stage1"): {"display_name": "Application Rejected"},
    (1, "application_cancelled"): {"display_name": "Application Cancelled"},

    (2, "sent_to_university"): {
        "display_name": "Sent to University",
        "next_action": "Await the university decision",
    },
    (2, "university_requested_corrections"): {
        "display_name": "University Requested Corrections",
        "next_action": "Upload the corrections requested by the university",
    },
    (2, "program_change_suggested"): {
        "display_name": "Program Change Suggested",
        "next_action": "Accept or decline the suggested program",
    },
    (2, "program_change_accepted"): {
        "display_name": "Program Change Accepted",
        "next_action": "Resubmit to the university",
    },
    (2, "program_change_rejected"): {
        "display_name": "Program Change Declined",
        "next_action": "Resubmit or withdraw the application",
    },
    (2, "university_approved"): {
        "display_name": "University Approved",
        "next_action": "Issue the offer letter",
    },
    (2, "offer_letter_issued"): {"display_name": "Offer Letter Issued"},
    (2, "rejected_university"): {"display_name": "Rejected by University"},

    (3, "waiting_visa_payment"): {
        "display_name": "Waiting for Visa Payment",
        "next_action": "Upload the visa payment receipt",
    },
    (3, "payment_received"): {
        "display_name": "Payment Received",
        "next_action": "Submit the visa application to immigration",
    },
    (3, "submitted_to_immigration"): {
        "display_name": "Submitted to Immigration",
        "next_action": "Await the immigration decision",
    },
    (3, "additional_documents_required"): {
        "display_name": "Additional Documents Required",
        "next_action": "Upload the documents requested by immigration",
    },
    (3, "visa_approved"): {
        "display_name": "Visa Approved",
        "next_action": "Record the issued visa",
    },
    (3, "visa_issued"): {"display_name": "Visa Issued"},
    (3, "visa_rejected"): {"display_name": "Visa Rejected"},

    (4, "arrival_date_planned"): {
        "display_name": "Arrival Date Planned",
        "next_action": "Upload travel documents",
    },
    (4, "travel_documents_verified"): {
        "display_name": "Travel Documents Verified",
        "next_action": "Confirm the arrival date",
    },
    (4, "arrival_confirmed"): {
        "display_name": "Arrival Confirmed",
        "next_action": "Verify the student's arrival",
    },
    (4, "arrival_delayed"): {
        "display_name": "Arrival Delayed",
        "next_action": "Provide a new arrival plan",
    },
    (4, "arrival_verified"): {
        "display_name": "Arrival Verified",
        "next_action": "Confirm enrollment",
    },
    (4, "enrollment_confirmed"): {"display_name": "Enrollment Confirmed"},
    (4, "arrival_cancelled"): {"display_name": "Arrival Cancelled"},

    (5, "commission_pending"): {
        "display_name": "Commission Pending",
        "next_action": "Approve or dispute the commission",
    },
    (5, "commission_approved"): {
        "display_name": "Commission Approved",
        "next_action": "Release the commission payment",
    },
    (5, "commission_released"): {
        "display_name": "Commission Released",
        "next_action": "Confirm receipt of the commission",
    },
    (5, "commission_disputed"): {
        "display_name": "Commission Disputed",
        "next_action": "Resolve the commission dispute",
    },
    (5, "commission_paid"): {"display_name": "Commission Paid"},
    (5, "commission_rejected"): {"display_name": "Commission Rejected"},
}

# (stage, status, role) -> field -> text
_ROLE_COPY: Dict[Tuple[int, str, str], Dict[str, str]] = {
    (1, "new_application", PARTNER): {"next_action": "Wait for the admin review"},
    (1, "documents_submitted", PARTNER): {"next_action": "Wait for document review"},
    (2, "sent_to_university", PARTNER): {"next_action": "Wait for the university decision"},
    (3, "submitted_to_immigration", PARTNER): {"next_action": "Wait for the visa decision"},
    (5, "commission_released", ADMIN): {"next_action": "Wait for the partner to confirm receipt"},
}


def _humanize(status: str) -> str:
    return normalize_status(status).replace("_", " ").title()


def lookup(stage: int, status: str, field: str, role: Optional[str] = None) -> Optional[str]:
    status = normalize_status(status)
    if role:
        text = _ROLE_COPY.get((int(stage), status, normalize_actor(role)), {}).get(field)
        if text:
            return text
    return _STATUS_COPY.get((int(stage), status), {}).get(field)


def display_name(stage: int, status: str) -> str:
    return lookup(stage, status, "display_name") or _humanize(status)


def next_action(stage: int, status: str, role: Optional[str] = None) -> str:
    return lookup(stage, status, "next_action", role=role) or ""
