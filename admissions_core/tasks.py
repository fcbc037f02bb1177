# admissions_core/tasks.py
from __future__ import annotations

from celery import shared_task
from django.contrib.auth import get_user_model

from admissions_core.services.notifications import dispatch_notification


@shared_task
def send_workflow_notification(audience: str, template_key: str, payload: dict, urgent: bool = False) -> bool:
    return dispatch_notification(audience, template_key, payload, urgent=urgent)


@shared_task
def scan_application_sla() -> int:
    from admissions_core.workflows.sla_scanner import check_sla_breaches

    return check_sla_breaches()


@shared_task
def run_scheduled_automation() -> int:
    from admissions_core.workflows.runtime import run_scheduled_automation as _run

    return _run()


@shared_task
def process_application_event_task(
    application_id: int,
    event: str,
    metadata: dict | None = None,
    performed_by_user_id: int | None = None,
) -> dict | None:
    from admissions_core.models import Application
    from admissions_core.workflows.runtime import process_application_event

    app = Application.objects.filter(pk=application_id).first()
    if app is None:
        return None

    user = None
    if performed_by_user_id:
        User = get_user_model()
        user = User.objects.filter(id=performed_by_user_id).first()

    return process_application_event(app, event, metadata or {}, user=user).to_dict()
