from datetime import timedelta

import pytest
from django.utils import timezone

from admissions_core.models import AuditEntry, StageHistoryEntry
from admissions_core.workflows.automation import APPLICATION_SUBMITTED, DOCUMENTS_UPLOADED, AutomationEngine
from admissions_core.workflows.errors import AutomationLoopError
from admissions_core.workflows.runtime import process_application_event, run_scheduled_automation

pytestmark = pytest.mark.django_db


def test_submission_event_records_initial_history(application_factory):
    app = application_factory()

    result = process_application_event(app, APPLICATION_SUBMITTED)

    assert result.applied == ("application-submitted",)
    app.refresh_from_db()
    assert (app.stage, app.status, app.version) == (1, "new_application", 2)
    assert app.next_actor == "ADMIN"
    assert StageHistoryEntry.objects.filter(application=app).count() == 1
    assert AuditEntry.objects.filter(application_ref=app.pk, event="status.new_application").exists()


def test_complete_upload_event_moves_application(application_factory):
    app = application_factory(status="correction_requested_admin")

    result = process_application_event(
        app,
        DOCUMENTS_UPLOADED,
        {"document_types": ["transcript"], "documents": ["transcript.pdf"], "upload_complete": True},
    )

    assert result.changed is True
    app.refresh_from_db()
    assert app.status == "documents_submitted"
    assert app.documents_received == ["transcript"]
    assert app.stage_history.get().documents == ["transcript.pdf"]


def test_tag_only_upload_bumps_version_without_history(application_factory):
    app = application_factory()

    process_application_event(app, DOCUMENTS_UPLOADED, {"document_types": ["passport_copy"]})

    app.refresh_from_db()
    assert app.status == "new_application"
    assert app.version == 2
    assert app.documents_received == ["passport_copy"]
    assert not StageHistoryEntry.objects.filter(application=app).exists()


def test_reminder_does_not_touch_the_record(application_factory, django_capture_on_commit_callbacks):
    now = timezone.now()
    app = application_factory(
        stage=3, status="waiting_visa_payment", status_entered_at=now - timedelta(days=3, minutes=20)
    )

    with django_capture_on_commit_callbacks() as callbacks:
        result = process_application_event(app, "schedule", now=now)

    assert result.applied == ("document-expiry-reminder",)
    assert len(callbacks) == 1
    app.refresh_from_db()
    assert app.version == 1


def test_scheduled_run_skips_terminal_applications(application_factory):
    now = timezone.now()
    entered = now - timedelta(days=3, minutes=20)
    application_factory(stage=3, status="waiting_visa_payment", status_entered_at=entered)
    application_factory(stage=3, status="visa_rejected", status_entered_at=entered)
    application_factory(stage=1, status="new_application", status_entered_at=entered)

    assert run_scheduled_automation(now=now) == 1


def test_scheduled_run_continues_past_a_failing_application(application_factory):
    now = timezone.now()
    entered = now - timedelta(days=3, minutes=20)
    broken = application_factory(stage=3, status="waiting_visa_payment", status_entered_at=entered)
    healthy = application_factory(stage=3, status="waiting_visa_payment", status_entered_at=entered)

    class LoopingEngine(AutomationEngine):
        def process_event(self, state, event, metadata=None, now=None):
            if state.id == broken.pk:
                raise AutomationLoopError("schedule did not settle")
            return super().process_event(state, event, metadata, now=now)

    assert run_scheduled_automation(now=now, engine=LoopingEngine()) == 1
    healthy.refresh_from_db()
    assert healthy.version == 1
