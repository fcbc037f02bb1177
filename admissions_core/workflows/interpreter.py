# admissions_core/workflows/interpreter.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from django.db import transaction

from admissions_core.models import (
    Application,
    AuditEntry,
    Commission,
    DocumentRequest,
    GeneratedDocument,
)
from admissions_core.services.commission import CommissionCalculator, get_commission_calculator
from admissions_core.workflows.effects import (
    CreateCommission,
    Effect,
    GenerateDocument,
    Notify,
    RecordAudit,
    RequestDocuments,
)

logger = logging.getLogger(__name__)


def _enqueue_notification(effect: Notify) -> None:
    from admissions_core.tasks import send_workflow_notification

    send_workflow_notification.delay(
        effect.audience,
        effect.template_key,
        dict(effect.payload),
        effect.urgent,
    )


class EffectInterpreter:
    """
    Carries out effects described by the workflow core.

    Must be called inside the same transaction that committed the new
    application state. Notifications are deferred to transaction.on_commit
    so a rolled-back transition never sends anything.
    """

    def __init__(self, *, commission_calculator: Optional[CommissionCalculator] = None):
        self._calculator = commission_calculator

    @property
    def calculator(self) -> CommissionCalculator:
        if self._calculator is None:
            self._calculator = get_commission_calculator()
        return self._calculator

    def run(self, application: Application, effects: Iterable[Effect], *, user=None) -> List[object]:
        created: List[object] = []
        for effect in effects:
            handler = getattr(self, f"_handle_{type(effect).__name__}", None)
            if handler is None:
                raise TypeError(f"No handler for effect {type(effect).__name__}")
            result = handler(application, effect, user)
            if result is not None:
                created.append(result)
        return created

    # ------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------
    def _handle_RecordAudit(self, application, effect: RecordAudit, user):
        return AuditEntry.objects.create(
            application=application,
            application_ref=application.pk,
            event=effect.event,
            actor=effect.actor,
            user=user if user is not None and user.is_authenticated else None,
            from_stage=effect.from_stage,
            from_status=effect.from_status,
            to_stage=effect.to_stage,
            to_status=effect.to_status,
            description=effect.description,
            metadata=dict(effect.metadata),
        )

    def _handle_GenerateDocument(self, application, effect: GenerateDocument, user):
        doc = GeneratedDocument.objects.create(
            application=application,
            stage=effect.stage,
            document_type=effect.document_type,
            file_name=effect.file_name,
            status=effect.status,
        )
        logger.info("Generated %s for application %s", effect.file_name, application.pk)
        return doc

    def _handle_RequestDocuments(self, application, effect: RequestDocuments, user):
        return DocumentRequest.objects.create(
            application=application,
            stage=effect.stage,
            title=effect.title,
            requested_documents=list(effect.requested_documents),
            requested_by=effect.requested_by,
        )

    def _handle_CreateCommission(self, application, effect: CreateCommission, user):
        # One commission per application, even if stage 5 is re-entered.
        if Commission.objects.filter(application=application).exists():
            logger.info("Commission for application %s already exists; skipping", application.pk)
            return None

        commission = self.calculator.calculate(application, effect.effective_date)
        commission.save()
        logger.info(
            "Commission %s %s created for application %s",
            commission.commission_amount, commission.currency, application.pk,
        )
        return commission

    def _handle_Notify(self, application, effect: Notify, user):
        transaction.on_commit(lambda: _enqueue_notification(effect))
        return None
