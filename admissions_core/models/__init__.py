from .core import ActorMembership, Application, TimeStampedModel
from .commission import Commission
from .documents import DocumentRequest, GeneratedDocument
from .workflow_alert import WorkflowAlert
from .workflow_event import AuditEntry, StageHistoryEntry

__all__ = [
    "ActorMembership",
    "Application",
    "AuditEntry",
    "Commission",
    "DocumentRequest",
    "GeneratedDocument",
    "StageHistoryEntry",
    "TimeStampedModel",
    "WorkflowAlert",
]
