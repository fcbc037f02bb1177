# admissions_core/workflows/sla_scanner.py
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from admissions_core.models import Application, WorkflowAlert
from admissions_core.workflows.sla import get_sla, td_seconds

logger = logging.getLogger(__name__)


def resolve_open_alerts(*, application_id: int, stage: int, status: str, now=None) -> int:
    """
    Close alerts raised for a status the application has just left.
    """
    now = now or timezone.now()
    updated = 0

    qs = WorkflowAlert.objects.filter(
        application_id=application_id,
        stage=stage,
        status=status,
        resolved_at__isnull=True,
    )
    for alert in qs.iterator():
        alert.resolved_at = now
        if alert.triggered_at:
            alert.duration_seconds = max(0, int((now - alert.triggered_at).total_seconds()))
        alert.save(update_fields=["resolved_at", "duration_seconds"])
        updated += 1

    return updated


def check_sla_breaches(*, now=None) -> int:
    """
    Scan open applications and raise SLA alerts where the breach threshold
    is exceeded.

    Returns:
        int: number of newly created alerts
    """
    now = now or timezone.now()
    created_count = 0

    for app in Application.objects.all().iterator():
        sla = get_sla(app.stage, app.status)
        if not sla:
            continue

        entered_at = app.status_entered_at or app.created_at
        if entered_at is None:
            continue

        breach_after = sla["breach_after"]
        age = now - entered_at
        if age < breach_after:
            continue

        # One open alert per application and status
        with transaction.atomic():
            exists = WorkflowAlert.objects.filter(
                application=app,
                stage=app.stage,
                status=app.status,
                resolved_at__isnull=True,
            ).exists()
            if exists:
                continue

            WorkflowAlert.objects.create(
                application=app,
                stage=app.stage,
                status=app.status,
                severity=sla.get("severity", "warning"),
                sla_seconds=td_seconds(breach_after),
                duration_seconds=td_seconds(age),
                message=(
                    f"SLA breached for application {app.pk} "
                    f"in {app.stage}:{app.status} (>{breach_after})"
                ),
            )
            created_count += 1

        logger.info("SLA breach on application %s (%s:%s)", app.pk, app.stage, app.status)

    return created_count
