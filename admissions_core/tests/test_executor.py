from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied
from django.utils import timezone

from admissions_core.models import (
    Application,
    AuditEntry,
    Commission,
    DocumentRequest,
    GeneratedDocument,
    StageHistoryEntry,
)
from admissions_core.services.commission import CommissionCalculator, TierRateCommissionCalculator
from admissions_core.workflows.effects import CreateCommission
from admissions_core.workflows.errors import (
    AUTHORITY_VIOLATION,
    CONCURRENCY_CONFLICT,
    CONFIGURATION_ERROR,
    DUPLICATE_TRANSITION,
    ConfigurationError,
)
from admissions_core.workflows.executor import attempt_transition
from admissions_core.workflows.interpreter import EffectInterpreter

pytestmark = pytest.mark.django_db


class RecordingCalculator(CommissionCalculator):
    def __init__(self):
        self.calls = []

    def calculate(self, application, effective_date):
        self.calls.append((application.pk, application.stage, application.status))
        return TierRateCommissionCalculator().calculate(application, effective_date)


# ===============================================================
# Scenarios
# ===============================================================

def test_offer_letter_writes_document_and_request_once(application_factory):
    app = application_factory(stage=2, status="university_approved")

    result = attempt_transition(app, "ADMIN", "offer_letter_issued")

    assert result.success is True
    assert result.http_status == 200
    app.refresh_from_db()
    assert (app.stage, app.status, app.version) == (3, "waiting_visa_payment", 2)
    assert app.next_actor == "PARTNER"
    assert app.documents_required == ["visa_payment_proof"]

    docs = GeneratedDocument.objects.filter(application=app)
    assert docs.count() == 1
    assert docs.get().file_name == f"{app.pk}_University_Offer_Letter.pdf"

    requests = DocumentRequest.objects.filter(application=app)
    assert requests.count() == 1
    assert requests.get().requested_documents == ["visa_payment_proof"]

    history = StageHistoryEntry.objects.filter(application=app)
    assert [(h.stage, h.status, h.actor) for h in history] == [(3, "waiting_visa_payment", "ADMIN")]
    assert AuditEntry.objects.filter(application_ref=app.pk, event="status.waiting_visa_payment").count() == 1


def test_enrollment_calls_commission_calculator_once(application_factory):
    app = application_factory(stage=4, status="arrival_verified")
    calculator = RecordingCalculator()

    result = attempt_transition(
        app, "ADMIN", "enrollment_confirmed", interpreter=EffectInterpreter(commission_calculator=calculator)
    )

    assert result.success is True
    assert calculator.calls == [(app.pk, 5, "commission_pending")]
    assert Commission.objects.filter(application=app).count() == 1
    assert GeneratedDocument.objects.filter(application=app, document_type="commission_calculation_report").exists()


def test_default_calculator_uses_partner_tier(application_factory):
    app = application_factory(stage=4, status="arrival_verified", partner_tier="gold", tuition_fee=Decimal("10000.00"))

    attempt_transition(app, "ADMIN", "enrollment_confirmed")

    commission = Commission.objects.get(application=app)
    assert commission.commission_rate == Decimal("0.1500")
    assert commission.commission_amount == Decimal("1470.00")
    assert commission.partner_code == "P-001"
    assert commission.breakdown[-1] == "Net commission: MYR 1470.00"


def test_commission_is_created_only_once(application_factory):
    app = application_factory(stage=5, status="commission_pending")
    interpreter = EffectInterpreter()
    effect = CreateCommission(effective_date=timezone.now())

    interpreter.run(app, [effect])
    interpreter.run(app, [effect])

    assert Commission.objects.filter(application=app).count() == 1


# ===============================================================
# Failures
# ===============================================================

def test_validation_failure_writes_nothing(application_factory):
    app = application_factory(stage=3, status="waiting_visa_payment")

    result = attempt_transition(app, "PARTNER", "payment_received", {})

    assert result.success is False
    assert result.http_status == 400
    app.refresh_from_db()
    assert (app.status, app.version) == ("waiting_visa_payment", 1)
    assert not StageHistoryEntry.objects.filter(application=app).exists()


def test_wrong_actor_is_forbidden(application_factory):
    app = application_factory()

    result = attempt_transition(app, "PARTNER", "approved_stage1")

    assert result.has_kind(AUTHORITY_VIOLATION)
    assert result.http_status == 403


def test_stale_instance_loses_the_race(application_factory):
    app = application_factory()
    stale = Application.objects.get(pk=app.pk)

    first = attempt_transition(app, "ADMIN", "under_review_admin")
    assert first.success is True

    second = attempt_transition(stale, "ADMIN", "approved_stage1")

    assert second.success is False
    assert second.has_kind(CONCURRENCY_CONFLICT)
    assert second.http_status == 409
    assert stale.version == 2

    app.refresh_from_db()
    assert (app.stage, app.status, app.version) == (1, "under_review_admin", 2)
    assert StageHistoryEntry.objects.filter(application=app).count() == 1
    assert not GeneratedDocument.objects.filter(application=app).exists()


def test_stale_instance_rechecks_against_latest_state(application_factory):
    app = application_factory()
    stale = Application.objects.get(pk=app.pk)

    attempt_transition(app, "ADMIN", "under_review_admin")
    second = attempt_transition(stale, "ADMIN", "under_review_admin")

    assert second.success is False
    assert second.has_kind(DUPLICATE_TRANSITION)
    assert second.http_status == 400


def test_expected_version_mismatch_is_a_conflict(application_factory):
    app = application_factory()

    result = attempt_transition(app, "ADMIN", "under_review_admin", expected_version=7)

    assert result.http_status == 409
    app.refresh_from_db()
    assert app.status == "new_application"


def test_unknown_status_is_a_configuration_error(application_factory):
    app = application_factory(status="legacy_status")

    result = attempt_transition(app, "ADMIN", "approved_stage1")

    assert result.has_kind(CONFIGURATION_ERROR)
    assert result.http_status == 500


def test_unknown_status_raises_in_strict_mode(application_factory, settings):
    settings.ADMISSIONS_STRICT_REGISTRY = True
    app = application_factory(status="legacy_status")

    with pytest.raises(ConfigurationError):
        attempt_transition(app, "ADMIN", "approved_stage1")


def test_direct_workflow_field_writes_are_blocked(application_factory):
    app = application_factory()
    app.status = "approved_stage1"

    with pytest.raises(PermissionDenied):
        app.save()

    app.save(_workflow_bypass=True)
    app.refresh_from_db()
    assert app.status == "approved_stage1"


def test_business_field_edits_are_allowed(application_factory):
    app = application_factory()
    app.program = "MSc Data Science"
    app.save()
    app.refresh_from_db()
    assert app.program == "MSc Data Science"


# ===============================================================
# Follow-ups
# ===============================================================

def test_notifications_are_sent_after_commit(application_factory, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(
        "admissions_core.tasks.dispatch_notification",
        lambda audience, template_key, payload, urgent=False: sent.append((audience, template_key)) or True,
    )
    app = application_factory(status="documents_approved")

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        attempt_transition(app, "ADMIN", "approved_stage1")

    assert len(callbacks) == 3
    assert set(sent) == {
        ("PARTNER", "stage1_complete"),
        ("ADMIN", "ready_for_university"),
        ("UNIVERSITY", "application_received"),
    }


def test_failed_transition_queues_no_notifications(application_factory, django_capture_on_commit_callbacks):
    app = application_factory()

    with django_capture_on_commit_callbacks() as callbacks:
        attempt_transition(app, "ADMIN", "rejected_stage1", {"reason": "short"})

    assert callbacks == []


def test_automation_follows_transition_when_enabled(application_factory, settings):
    settings.ADMISSIONS_AUTOMATION_ON_TRANSITION = True
    app = application_factory(status="documents_submitted")

    result = attempt_transition(app, "ADMIN", "documents_approved")

    assert result.success is True
    assert result.automation == ("auto-progress",)
    app.refresh_from_db()
    assert (app.stage, app.status, app.version) == (2, "sent_to_university", 3)
    assert [h.status for h in app.stage_history.all()] == ["documents_approved", "sent_to_university"]


def test_leaving_a_status_resolves_its_alerts(application_factory):
    app = application_factory(status_entered_at=timezone.now() - timedelta(days=5))
    alert = app.workflow_alerts.create(
        stage=1, status="new_application", sla_seconds=172800, duration_seconds=432000
    )

    attempt_transition(app, "ADMIN", "under_review_admin")

    alert.refresh_from_db()
    assert alert.resolved_at is not None
