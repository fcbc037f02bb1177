from datetime import timedelta

import pytest

from admissions_core.workflows.errors import (
    AUTHORITY_VIOLATION,
    DUPLICATE_TRANSITION,
    RULE_INTERNAL_ERROR,
    VALIDATION_FAILURE,
)
from admissions_core.workflows.rules import (
    AUTO_ADVANCE_ACTION,
    DEFAULT_RULES,
    URGENT_NOTIFICATION_ACTION,
    VALIDATION,
    Rule,
    RulePipeline,
)
from admissions_core.workflows.state import HistoryEntry


@pytest.fixture
def pipeline():
    return RulePipeline()


def _rule_ids(outcome):
    return {e.rule for e in outcome.errors}


# ===============================================================
# Duplicate guard
# ===============================================================

def test_same_status_is_always_rejected(pipeline, make_state, now):
    state = make_state(1, "new_application")
    outcome = pipeline.evaluate(state, "ADMIN", "new_application", {}, now)

    assert outcome.can_proceed is False
    assert outcome.stopped_by == "duplicate-status-guard"
    assert outcome.evaluated == ("duplicate-status-guard",)
    assert outcome.has_kind(DUPLICATE_TRANSITION)
    assert outcome.error_messages == ["Cannot set the same status - no change would occur."]


def test_same_status_recently_applied_has_its_own_message(pipeline, make_state, now):
    recent = HistoryEntry(stage=1, status="new_application", timestamp=now - timedelta(minutes=10), actor="SYSTEM")
    state = make_state(1, "new_application", history=(recent,))

    outcome = pipeline.evaluate(state, "ADMIN", "new_application", {}, now)

    assert outcome.can_proceed is False
    assert outcome.error_messages == [
        "This status was recently applied. Please verify this change is necessary."
    ]


def test_same_status_applied_long_ago_is_still_rejected(pipeline, make_state, now):
    old = HistoryEntry(stage=1, status="new_application", timestamp=now - timedelta(hours=2), actor="SYSTEM")
    state = make_state(1, "new_application", history=(old,))

    outcome = pipeline.evaluate(state, "ADMIN", "new_application", {}, now)

    assert outcome.error_messages == ["Cannot set the same status - no change would occur."]


# ===============================================================
# Authority and sequence
# ===============================================================

def test_authority_rule_blocks_wrong_actor(pipeline, make_state, now):
    outcome = pipeline.evaluate(make_state(1, "new_application"), "PARTNER", "approved_stage1", {}, now)

    assert outcome.can_proceed is False
    assert outcome.has_kind(AUTHORITY_VIOLATION)
    assert outcome.stopped_by == "authority-recheck"


def test_sequential_rule_applies_to_early_stages(make_state, now):
    pipeline = RulePipeline(disabled={"authority-recheck"})
    outcome = pipeline.evaluate(make_state(1, "new_application"), "ADMIN", "documents_approved", {}, now)

    assert outcome.stopped_by == "sequential-status"
    assert "'documents_approved' is not a valid next status after 'new_application'." in outcome.error_messages


def test_sequential_rule_skipped_after_stage_two(make_state, now):
    pipeline = RulePipeline(disabled={"authority-recheck"})
    outcome = pipeline.evaluate(make_state(5, "commission_pending"), "ADMIN", "commission_paid", {}, now)

    assert "sequential-status" not in outcome.evaluated


# ===============================================================
# Field validation
# ===============================================================

def test_rejection_needs_a_reason(pipeline, make_state, now):
    state = make_state(1, "new_application")

    missing = pipeline.evaluate(state, "ADMIN", "rejected_stage1", {}, now)
    short = pipeline.evaluate(state, "ADMIN", "rejected_stage1", {"reason": "too short"}, now)
    ok = pipeline.evaluate(state, "ADMIN", "rejected_stage1", {"reason": "Transcripts are incomplete"}, now)

    assert missing.stopped_by == "required-reason"
    assert short.can_proceed is False
    assert ok.can_proceed is True


def test_rejection_raises_urgent_action(pipeline, make_state, now):
    outcome = pipeline.evaluate(
        make_state(1, "new_application"), "ADMIN", "rejected_stage1", {"reason": "Transcripts are incomplete"}, now
    )
    assert URGENT_NOTIFICATION_ACTION in outcome.actions


def test_completion_raises_auto_advance_action(pipeline, make_state, now):
    outcome = pipeline.evaluate(make_state(1, "documents_approved"), "ADMIN", "approved_stage1", {}, now)
    assert outcome.can_proceed is True
    assert AUTO_ADVANCE_ACTION in outcome.actions


@pytest.mark.parametrize(
    "receipt, ok",
    [
        (None, False),
        ("receipt.docx", False),
        ("receipt", False),
        ("receipt.pdf", True),
        ({"name": "scan.JPG"}, True),
        ({"file_name": "proof.png"}, True),
    ],
)
def test_payment_needs_a_receipt(pipeline, make_state, now, receipt, ok):
    aux = {} if receipt is None else {"receipt": receipt}
    outcome = pipeline.evaluate(make_state(3, "waiting_visa_payment"), "PARTNER", "payment_received", aux, now)

    assert outcome.can_proceed is ok
    if not ok:
        assert _rule_ids(outcome) == {"receipt-schema"}
        assert outcome.has_kind(VALIDATION_FAILURE)


@pytest.mark.parametrize(
    "value, message",
    [
        (None, "An arrival date in YYYY-MM-DD format is required."),
        ("01/09/2026", "Arrival date must use the YYYY-MM-DD format."),
        ("2026-13-01", "Arrival date '2026-13-01' is not a valid calendar date."),
    ],
)
def test_arrival_confirmation_needs_a_valid_date(pipeline, make_state, now, value, message):
    aux = {} if value is None else {"arrival_date": value}
    outcome = pipeline.evaluate(make_state(4, "travel_documents_verified"), "PARTNER", "arrival_confirmed", aux, now)

    assert outcome.can_proceed is False
    assert outcome.error_messages == [message]


def test_arrival_confirmation_accepts_planned_date(pipeline, make_state, now):
    outcome = pipeline.evaluate(
        make_state(4, "travel_documents_verified"),
        "PARTNER",
        "arrival_confirmed",
        {"planned_arrival_date": "2026-09-01"},
        now,
    )
    assert outcome.can_proceed is True


def test_immigration_submission_needs_tracking_number(pipeline, make_state, now):
    short = pipeline.evaluate(
        make_state(3, "payment_received"), "ADMIN", "submitted_to_immigration", {"tracking_number": "AB1"}, now
    )
    stored = pipeline.evaluate(
        make_state(3, "payment_received", tracking_number="VISA-2026-001"), "ADMIN", "submitted_to_immigration", {}, now
    )

    assert _rule_ids(short) == {"tracking-number"}
    assert stored.can_proceed is True


def test_visa_issue_needs_date_and_tracking_number(pipeline, make_state, now):
    outcome = pipeline.evaluate(make_state(3, "visa_approved"), "ADMIN", "visa_issued", {}, now)

    assert _rule_ids(outcome) == {"date-format", "tracking-number"}
    assert outcome.stopped_by is None
    assert "Visa tracking number should be recorded before issuing the visa." in outcome.warnings

    ok = pipeline.evaluate(
        make_state(3, "visa_approved"),
        "ADMIN",
        "visa_issued",
        {"arrival_date": "2026-08-20", "tracking_number": "VISA-2026-001"},
        now,
    )
    assert ok.can_proceed is True


def test_prerequisite_documents_must_be_recorded(pipeline, make_state, now):
    state = make_state(4, "arrival_date_planned", documents_received=("passport_copy",))

    missing = pipeline.evaluate(state, "PARTNER", "travel_documents_verified", {}, now)
    supplied = pipeline.evaluate(
        state, "PARTNER", "travel_documents_verified", {"document_types": ["visa_copy", "flight_ticket"]}, now
    )

    assert missing.stopped_by == "required-documents"
    assert missing.error_messages == ["Missing required documents: visa_copy, flight_ticket."]
    assert supplied.can_proceed is True


def test_bad_document_names_are_rejected(pipeline, make_state, now):
    outcome = pipeline.evaluate(
        make_state(3, "waiting_visa_payment"),
        "PARTNER",
        "payment_received",
        {"receipt": "receipt.pdf", "documents": ["ok.pdf", "a", "bad|name.pdf"]},
        now,
    )
    assert _rule_ids(outcome) == {"filename-requirements"}
    assert len(outcome.errors) == 2


# ===============================================================
# Warnings
# ===============================================================

def test_university_approval_without_university_warns(pipeline, make_state, now):
    outcome = pipeline.evaluate(
        make_state(2, "sent_to_university", university=""), "UNIVERSITY", "university_approved", {}, now
    )
    assert outcome.can_proceed is True
    assert "University name should be recorded before marking university approval." in outcome.warnings


def test_high_priority_age_warnings(pipeline, make_state, now):
    old = now - timedelta(days=10)
    state = make_state(1, "new_application", priority="urgent", created_at=old, stage_entered_at=old)

    outcome = pipeline.evaluate(state, "ADMIN", "under_review_admin", {}, now)

    assert outcome.can_proceed is True
    assert len(outcome.warnings) == 2


# ===============================================================
# Pipeline mechanics
# ===============================================================

def test_raising_rule_becomes_internal_error(make_state, now):
    def _boom(ctx):
        raise RuntimeError("boom")

    exploding = Rule(
        id="exploding",
        name="Exploding Rule",
        type=VALIDATION,
        priority=60,
        applies_to=lambda ctx: True,
        evaluate=_boom,
    )
    pipeline = RulePipeline(rules=DEFAULT_RULES + (exploding,))

    outcome = pipeline.evaluate(make_state(1, "new_application"), "ADMIN", "under_review_admin", {}, now)

    assert outcome.can_proceed is False
    assert outcome.has_kind(RULE_INTERNAL_ERROR)
    assert outcome.error_messages == ["Internal validation error: Exploding Rule"]


def test_disabled_rules_are_skipped(make_state, now):
    pipeline = RulePipeline(disabled={"receipt-schema"})
    outcome = pipeline.evaluate(make_state(3, "waiting_visa_payment"), "PARTNER", "payment_received", {}, now)

    assert outcome.can_proceed is True
    assert "receipt-schema" not in outcome.evaluated
    assert {r["id"]: r["enabled"] for r in pipeline.summary()}["receipt-schema"] is False


def test_recheck_runs_only_authority_and_duplicate(pipeline, make_state, now):
    outcome = pipeline.recheck(make_state(3, "waiting_visa_payment"), "PARTNER", "payment_received", {}, now)

    assert outcome.can_proceed is True
    assert set(outcome.evaluated) == {"authority-recheck"}


def test_summary_is_ordered_by_priority(pipeline):
    priorities = [r["priority"] for r in pipeline.summary()]
    assert priorities == sorted(priorities, reverse=True)
    assert pipeline.summary()[0]["id"] == "duplicate-status-guard"
