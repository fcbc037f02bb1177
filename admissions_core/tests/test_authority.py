import pytest

from admissions_core.workflows import get_available_transitions
from admissions_core.workflows.authority import NO_AUTHORITY, TARGET_NOT_ALLOWED, AuthorityChecker
from admissions_core.workflows.registry import ACTORS, get_registry


@pytest.fixture
def checker():
    return AuthorityChecker(get_registry())


def test_available_targets_match_the_row_for_every_actor(checker):
    for row in get_registry().rows():
        for actor in ACTORS:
            targets = checker.available_targets(row.stage, row.key, actor)
            if row.terminal:
                assert targets == ()
            else:
                assert targets == row.targets_for(actor)
            assert checker.can_actor_transition(row.stage, row.key, actor) == bool(targets)


def test_validate_agrees_with_available_targets(checker):
    for row in get_registry().rows():
        for actor in ACTORS:
            allowed = set(checker.available_targets(row.stage, row.key, actor))
            for target in get_registry().statuses(row.stage):
                assert bool(checker.validate(row.stage, row.key, target, actor)) == (target in allowed)


def test_unknown_rows_have_no_targets(checker):
    assert checker.available_targets(1, "made_up", "ADMIN") == ()
    assert checker.available_targets(7, "new_application", "ADMIN") == ()


def test_actor_without_authority_gets_no_authority_reason(checker):
    decision = checker.validate(1, "new_application", "approved_stage1", "PARTNER")
    assert not decision.allowed
    assert decision.reason == NO_AUTHORITY


def test_disallowed_target_gets_target_not_allowed_reason(checker):
    decision = checker.validate(1, "new_application", "documents_approved", "ADMIN")
    assert not decision.allowed
    assert decision.reason == TARGET_NOT_ALLOWED
    assert "Allowed:" in decision.message


def test_actor_aliases_are_normalized(checker):
    assert checker.validate(3, "waiting_visa_payment", "payment_received", "agent").allowed
    assert checker.validate(2, "sent_to_university", "university_approved", "uni").allowed


def test_available_transitions_shape():
    transitions = get_available_transitions(1, "new_application", "ADMIN")
    keys = [t["key"] for t in transitions]
    assert "approved_stage1" in keys
    assert "rejected_stage1" in keys

    approved = next(t for t in transitions if t["key"] == "approved_stage1")
    assert (approved["target_stage"], approved["target_status"]) == (2, "sent_to_university")

    rejected = next(t for t in transitions if t["key"] == "rejected_stage1")
    assert rejected["requires_reason"] is True
    assert (rejected["target_stage"], rejected["target_status"]) == (1, "rejected_stage1")


def test_available_transitions_for_terminal_row_is_empty():
    assert get_available_transitions(5, "commission_paid", "ADMIN") == []
    assert get_available_transitions(1, "new_application", "IMMIGRATION") == []


def test_prerequisite_documents_are_exposed():
    transitions = get_available_transitions(4, "arrival_date_planned", "ADMIN")
    verified = next(t for t in transitions if t["key"] == "travel_documents_verified")
    assert verified["requires_documents"] is True
    assert set(verified["required_documents"]) == {"passport_copy", "visa_copy", "flight_ticket"}
