from datetime import timedelta

import pytest

from admissions_core.workflows.automation import (
    APPLICATION_SUBMITTED,
    DOCUMENTS_UPLOADED,
    SCHEDULE,
    STATUS_CHANGED,
    AutomationEngine,
    AutomationRule,
    AutomationStep,
)
from admissions_core.workflows.effects import Notify, of_type
from admissions_core.workflows.errors import AutomationLoopError


@pytest.fixture
def engine():
    return AutomationEngine()


def test_submission_places_application_at_entry_status(engine, make_state, now):
    state = make_state(1, "new_application", version=1)

    outcome = engine.process_event(state, APPLICATION_SUBMITTED, now=now)

    assert outcome.applied == ("application-submitted",)
    assert outcome.state.key == (1, "new_application")
    assert outcome.state.version == 2
    assert len(outcome.state.history) == 1
    assert outcome.state.history[0].actor == "SYSTEM"
    assert outcome.state.next_actor == "ADMIN"


def test_submission_is_ignored_once_history_exists(engine, make_state, now):
    first = engine.process_event(make_state(1, "new_application"), APPLICATION_SUBMITTED, now=now)

    again = engine.process_event(first.state, APPLICATION_SUBMITTED, now=now)

    assert again.changed is False
    assert again.state == first.state


def test_complete_upload_moves_to_documents_submitted(engine, make_state, now):
    state = make_state(1, "correction_requested_admin")

    outcome = engine.process_event(
        state,
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript", "passport_copy"], "documents": ["transcript.pdf"], "upload_complete": True},
        now=now,
    )

    assert outcome.applied == ("documents-recorded", "documents-uploaded-complete")
    assert outcome.state.key == (1, "documents_submitted")
    assert set(outcome.state.documents_received) == {"transcript", "passport_copy"}
    assert outcome.state.history[-1].documents == ("transcript.pdf",)


def test_partial_upload_moves_to_partially_submitted(engine, make_state, now):
    outcome = engine.process_event(
        make_state(1, "correction_requested_admin"),
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript"], "upload_complete": "false"},
        now=now,
    )

    assert outcome.state.key == (1, "documents_partially_submitted")
    assert "documents-uploaded-partial" in outcome.applied


def test_upload_without_completion_flag_only_records(engine, make_state, now):
    outcome = engine.process_event(
        make_state(1, "correction_requested_admin"),
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript"]},
        now=now,
    )

    assert outcome.applied == ("documents-recorded",)
    assert outcome.state.key == (1, "correction_requested_admin")
    assert outcome.state.documents_received == ("transcript",)


def test_complete_upload_on_fresh_application_submits_documents(engine, make_state, now):
    outcome = engine.process_event(
        make_state(1, "new_application"),
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript"], "upload_complete": True},
        now=now,
    )

    assert outcome.applied == ("documents-recorded", "documents-uploaded-complete")
    assert outcome.state.key == (1, "documents_submitted")
    assert outcome.state.documents_received == ("transcript",)


def test_partial_upload_on_fresh_application(engine, make_state, now):
    outcome = engine.process_event(
        make_state(1, "new_application"), DOCUMENTS_UPLOADED, {"upload_complete": False}, now=now
    )
    assert outcome.state.key == (1, "documents_partially_submitted")


def test_upload_where_system_has_no_authority_does_not_move(engine, make_state, now):
    outcome = engine.process_event(
        make_state(1, "under_review_admin"),
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript"], "upload_complete": True},
        now=now,
    )
    assert outcome.applied == ("documents-recorded",)
    assert outcome.state.key == (1, "under_review_admin")


def test_auto_progress_chains_across_stage_boundary(engine, make_state, now):
    outcome = engine.process_event(make_state(1, "documents_approved"), STATUS_CHANGED, now=now)

    assert outcome.state.key == (2, "sent_to_university")
    assert outcome.applied == ("auto-progress",)
    assert [h.status for h in outcome.state.history] == ["sent_to_university"]

    notices = of_type(outcome.effects, Notify)
    assert ("UNIVERSITY", "application_received") in {(n.audience, n.template_key) for n in notices}


def test_disabled_automation_rule_is_skipped(make_state, now):
    engine = AutomationEngine(disabled={"auto-progress"})
    outcome = engine.process_event(make_state(1, "documents_approved"), STATUS_CHANGED, now=now)
    assert outcome.changed is False


def _ping_pong_rules():
    def _flip(state, meta, ctx):
        target = "under_review_admin" if state.status == "new_application" else "new_application"
        return AutomationStep(state=state.evolve(status=target), status_changed=True)

    return (
        AutomationRule(
            id="ping-pong",
            event=STATUS_CHANGED,
            applies=lambda state, meta, ctx: True,
            apply=_flip,
        ),
    )


def test_automation_loop_is_bounded(make_state, now):
    engine = AutomationEngine(rules=_ping_pong_rules(), max_steps=4)

    outcome = engine.process_event(make_state(1, "new_application"), STATUS_CHANGED, now=now)

    assert outcome.truncated is True
    assert len(outcome.applied) == 4


def test_automation_loop_raises_in_strict_mode(make_state, now):
    engine = AutomationEngine(rules=_ping_pong_rules(), max_steps=3, strict=True)

    with pytest.raises(AutomationLoopError):
        engine.process_event(make_state(1, "new_application"), STATUS_CHANGED, now=now)


@pytest.mark.parametrize(
    "age, expected",
    [
        (timedelta(days=2), False),
        (timedelta(days=3, minutes=30), True),
        (timedelta(days=3, hours=2), False),
    ],
)
def test_document_reminder_fires_once_per_window(engine, make_state, now, age, expected):
    state = make_state(3, "waiting_visa_payment", status_entered_at=now - age)

    outcome = engine.process_event(state, SCHEDULE, now=now)

    reminders = [n for n in of_type(outcome.effects, Notify) if n.template_key == "document_reminder"]
    assert bool(reminders) is expected
    assert outcome.state == state
    if expected:
        assert reminders[0].audience == "PARTNER"
        assert reminders[0].payload["documents_required"] == ["visa_payment_proof"]


def test_reminder_window_can_be_widened(engine, make_state, now):
    state = make_state(3, "waiting_visa_payment", status_entered_at=now - timedelta(days=3, hours=5))

    outcome = engine.process_event(state, SCHEDULE, {"window_seconds": 6 * 3600}, now=now)

    assert outcome.applied == ("document-expiry-reminder",)


def test_reminder_skips_rows_without_required_documents(engine, make_state, now):
    state = make_state(1, "under_review_admin", status_entered_at=now - timedelta(days=3, minutes=5))
    assert engine.process_event(state, SCHEDULE, now=now).changed is False
