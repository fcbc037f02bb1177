import pytest
from django.urls import reverse

from admissions_core.models import Application
from admissions_core.services.bulk import bulk_transition

pytestmark = pytest.mark.django_db


def test_bulk_transition_reports_each_application(application_factory):
    ready = application_factory(status="documents_submitted")
    also_ready = application_factory(status="documents_under_review")
    wrong_status = application_factory(status="new_application")

    outcome = bulk_transition(
        applications=[ready.pk, also_ready.pk, wrong_status.pk, 999999],
        actor="ADMIN",
        target_status="documents_approved",
    )

    assert outcome["success"] == [ready.pk, also_ready.pk]
    failed = {f["id"]: f["errors"] for f in outcome["failed"]}
    assert set(failed) == {wrong_status.pk, 999999}
    assert failed[999999][0]["message"] == "Application not found."
    assert failed[wrong_status.pk][0]["kind"] == "authority_violation"

    assert Application.objects.get(pk=ready.pk).status == "documents_approved"
    assert Application.objects.get(pk=wrong_status.pk).status == "new_application"


def test_bulk_transition_accepts_instances(application_factory):
    app = application_factory()

    outcome = bulk_transition(applications=[app], actor="ADMIN", target_status="under_review_admin")

    assert outcome == {"success": [app.pk], "failed": []}


def test_bulk_endpoint_hides_other_partners_applications(api_client, user_partner, application_factory):
    mine = application_factory(stage=3, status="waiting_visa_payment", partner_code="P-001")
    theirs = application_factory(stage=3, status="waiting_visa_payment", partner_code="P-999")
    assert api_client.login(username=user_partner.username, password="pass123")

    res = api_client.post(
        reverse("admissions_core:application-bulk-transition"),
        {
            "target_status": "payment_received",
            "application_ids": [mine.pk, theirs.pk],
            "aux_data": {"receipt": "bank-transfer.pdf"},
        },
        format="json",
    )

    assert res.status_code == 200, res.content
    body = res.json()
    assert body["success"] == [mine.pk]
    assert [f["id"] for f in body["failed"]] == [theirs.pk]
    assert Application.objects.get(pk=theirs.pk).status == "waiting_visa_payment"
