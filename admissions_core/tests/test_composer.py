from datetime import timedelta

import pytest

from admissions_core.workflows.composer import StageComposer, TransitionRequest, transition
from admissions_core.workflows.effects import (
    CreateCommission,
    GenerateDocument,
    Notify,
    RecordAudit,
    RequestDocuments,
    of_type,
)
from admissions_core.workflows.errors import AUTHORITY_VIOLATION, VALIDATION_FAILURE, ConfigurationError
from admissions_core.workflows.registry import get_registry


@pytest.fixture
def composer():
    return StageComposer(get_registry())


# ===============================================================
# Stage composition
# ===============================================================

def test_resolve_maps_completions_and_leaves_others(composer):
    assert composer.resolve(1, "approved_stage1") == (2, "sent_to_university")
    assert composer.resolve(4, "enrollment_confirmed") == (5, "commission_pending")
    assert composer.resolve(5, "commission_paid") == (5, "commission_paid")
    assert composer.resolve(1, "rejected_stage1") == (1, "rejected_stage1")


def test_apply_status_records_one_history_entry(composer, make_state, now):
    state = make_state(3, "waiting_visa_payment", version=4)

    new, effects = composer.apply_status(
        state,
        "payment_received",
        actor="partner",
        now=now,
        aux_data={"receipt": {"name": "receipt.pdf"}, "notes": "paid at counter"},
    )

    assert new.version == 5
    assert new.key == (3, "payment_received")
    assert new.next_actor == "ADMIN"
    assert new.status_entered_at == now
    assert new.stage_entered_at == state.stage_entered_at
    assert len(new.history) == 1
    entry = new.history[0]
    assert (entry.stage, entry.status, entry.actor) == (3, "payment_received", "PARTNER")
    assert entry.documents == ("receipt.pdf",)
    assert entry.notes == "paid at counter"

    audit = of_type(effects, RecordAudit)
    assert len(audit) == 1
    assert audit[0].event == "status.payment_received"


def test_apply_status_absorbs_tracking_and_arrival(composer, make_state, now):
    new, _ = composer.apply_status(
        make_state(3, "visa_approved"),
        "visa_issued",
        actor="ADMIN",
        now=now,
        aux_data={"tracking_number": "VISA-2026-001", "arrival_date": "2026-08-20"},
    )
    assert new.tracking_number == "VISA-2026-001"
    assert new.arrival_date.isoformat() == "2026-08-20"
    assert new.key == (4, "arrival_date_planned")
    assert new.stage_entered_at == now
    assert new.documents_required == ("passport_copy", "visa_copy", "flight_ticket")


# ===============================================================
# End-to-end scenarios
# ===============================================================

def test_scenario_stage_one_approval_jumps_to_stage_two(make_state, now):
    state = make_state(1, "documents_submitted")

    first = transition(state, TransitionRequest("ADMIN", "documents_approved"), now=now)
    assert first.success is True
    assert first.state.key == (1, "documents_approved")

    second = transition(first.state, TransitionRequest("ADMIN", "approved_stage1"), now=now + timedelta(minutes=5))
    assert second.success is True
    assert second.state.key == (2, "sent_to_university")

    new_entries = second.state.history[len(first.state.history):]
    assert [(h.stage, h.status) for h in new_entries] == [(2, "sent_to_university")]

    generated = of_type(second.effects, GenerateDocument)
    assert [g.document_type for g in generated] == ["university_submission_package"]
    audiences = {(n.audience, n.template_key) for n in of_type(second.effects, Notify)}
    assert ("PARTNER", "stage1_complete") in audiences
    assert ("UNIVERSITY", "application_received") in audiences


def test_scenario_offer_letter_opens_visa_stage(make_state, now):
    outcome = transition(
        make_state(2, "university_approved"), TransitionRequest("ADMIN", "offer_letter_issued"), now=now
    )

    assert outcome.success is True
    assert outcome.state.key == (3, "waiting_visa_payment")

    documents = of_type(outcome.effects, GenerateDocument)
    assert len(documents) == 1
    assert documents[0].document_type == "offer_letter"
    assert documents[0].file_name == "42_University_Offer_Letter.pdf"
    assert documents[0].stage == 2

    requests = of_type(outcome.effects, RequestDocuments)
    assert len(requests) == 1
    assert requests[0].stage == 3
    assert requests[0].title == "Visa Payment Proof Required"
    assert requests[0].requested_documents == ("visa_payment_proof",)


def test_scenario_payment_without_receipt_is_rejected(make_state, now):
    state = make_state(3, "waiting_visa_payment")

    outcome = transition(state, TransitionRequest("PARTNER", "payment_received", {}), now=now)

    assert outcome.success is False
    assert outcome.state is state
    assert outcome.effects == ()
    assert [e.kind for e in outcome.errors] == [VALIDATION_FAILURE]
    assert outcome.errors[0].rule == "receipt-schema"


def test_scenario_enrollment_opens_commission_stage(make_state, now):
    outcome = transition(
        make_state(4, "arrival_verified"), TransitionRequest("ADMIN", "enrollment_confirmed"), now=now
    )

    assert outcome.success is True
    assert outcome.state.key == (5, "commission_pending")

    commissions = of_type(outcome.effects, CreateCommission)
    assert len(commissions) == 1
    assert commissions[0].effective_date == now
    assert [g.document_type for g in of_type(outcome.effects, GenerateDocument)] == [
        "commission_calculation_report"
    ]


# ===============================================================
# Failures
# ===============================================================

def test_actor_without_authority_fails_before_rules(make_state, now):
    outcome = transition(
        make_state(1, "new_application"), TransitionRequest("IMMIGRATION", "approved_stage1"), now=now
    )
    assert outcome.success is False
    assert [e.kind for e in outcome.errors] == [AUTHORITY_VIOLATION]
    assert outcome.errors[0].rule == "authority-recheck"
    assert "IMMIGRATION" in outcome.errors[0].message


def test_unknown_current_row_is_a_configuration_error(make_state, now):
    with pytest.raises(ConfigurationError):
        transition(make_state(1, "legacy_status"), TransitionRequest("ADMIN", "approved_stage1"), now=now)


def test_urgent_target_adds_urgent_partner_notice(make_state, now):
    outcome = transition(
        make_state(1, "under_review_admin"),
        TransitionRequest("ADMIN", "correction_requested_admin", {"notes": "Scan the transcript again"}),
        now=now,
    )

    urgent = [n for n in of_type(outcome.effects, Notify) if n.urgent]
    assert len(urgent) == 1
    assert (urgent[0].audience, urgent[0].template_key) == ("PARTNER", "urgent_status_change")
    assert outcome.state.documents_required == ("corrections_list",)
