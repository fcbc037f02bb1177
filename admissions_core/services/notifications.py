# admissions_core/services/notifications.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _recipients(audience: str) -> List[str]:
    mapping = getattr(settings, "WORKFLOW_NOTIFY_EMAILS", None) or {}
    if isinstance(mapping, (list, tuple)):
        return list(mapping)
    return list(mapping.get(audience) or mapping.get("*") or [])


def dispatch_notification(audience: str, template_key: str, payload: Dict[str, Any], urgent: bool = False) -> bool:
    """
    Deliver one workflow notification.

    Email is sent only when WORKFLOW_EMAIL_NOTIFICATIONS is enabled and the
    audience has recipients; otherwise the notification is only logged.
    Returns True when an email was handed to the mail backend.
    """
    logger.info(
        "Notification %s for %s: application %s (%s:%s)",
        template_key,
        audience,
        payload.get("application_id"),
        payload.get("stage"),
        payload.get("status"),
    )

    if not getattr(settings, "WORKFLOW_EMAIL_NOTIFICATIONS", False):
        return False

    recipients = _recipients(audience)
    if not recipients:
        return False

    prefix = "[AdmitFlow][URGENT]" if urgent else "[AdmitFlow]"
    subject = (
        f"{prefix} Application {payload.get('application_id')}: "
        f"{template_key.replace('_', ' ')}"
    )
    body = "\n".join(
        [
            "Workflow notification.",
            "",
            f"Audience: {audience}",
            f"Application: {payload.get('application_id')}",
            f"Stage: {payload.get('stage')}",
            f"Status: {payload.get('status')}",
            f"Previous: {payload.get('from_stage')}:{payload.get('from_status')}",
            f"Actor: {payload.get('actor', 'SYSTEM')}",
        ]
    )

    send_mail(
        subject=subject,
        message=body,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipient_list=recipients,
        fail_silently=False,
    )
    return True
