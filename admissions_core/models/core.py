# admissions_core/models/core.py

from django.conf import settings
from django.db import models

from admissions_core.workflows import ADMIN, IMMIGRATION, PARTNER, UNIVERSITY
from admissions_core.workflows.guards import WorkflowWriteGuardMixin
from admissions_core.workflows.state import ApplicationState, HistoryEntry


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Actor membership (who may act as which workflow actor)
# ============================================================
class ActorMembership(TimeStampedModel):
    ACTOR_CHOICES = (
        (ADMIN, "Admin"),
        (PARTNER, "Partner"),
        (UNIVERSITY, "University"),
        (IMMIGRATION, "Immigration"),
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="actor_memberships",
    )
    actor = models.CharField(max_length=32, choices=ACTOR_CHOICES)
    partner_code = models.CharField(
        max_length=64,
        blank=True,
        help_text="Restricts a PARTNER member to applications with this partner code.",
    )

    class Meta:
        unique_together = ("user", "actor")

    def __str__(self):
        return f"{self.user} - {self.actor}"


# ============================================================
# Application
# ============================================================
class Application(WorkflowWriteGuardMixin, TimeStampedModel):
    """A student application tracked through the five admission stages."""

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        NORMAL = "normal", "Normal"
        HIGH = "high", "High"
        URGENT = "urgent", "Urgent"

    class PartnerTier(models.TextChoices):
        BRONZE = "bronze", "Bronze"
        SILVER = "silver", "Silver"
        GOLD = "gold", "Gold"
        PLATINUM = "platinum", "Platinum"

    student_name = models.CharField(max_length=255)
    student_nationality = models.CharField(max_length=64, blank=True)
    partner_code = models.CharField(max_length=64, blank=True, db_index=True)
    partner_tier = models.CharField(
        max_length=16,
        choices=PartnerTier.choices,
        default=PartnerTier.BRONZE,
    )

    program = models.CharField(max_length=255, blank=True)
    university = models.CharField(max_length=255, blank=True)
    intake = models.CharField(max_length=64, blank=True)
    tracking_number = models.CharField(max_length=128, blank=True)
    tuition_fee = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=8, default="MYR")
    priority = models.CharField(
        max_length=16,
        choices=Priority.choices,
        default=Priority.NORMAL,
        db_index=True,
    )
    arrival_date = models.DateField(null=True, blank=True)

    # Workflow-controlled
    stage = models.PositiveSmallIntegerField(default=1, db_index=True)
    status = models.CharField(max_length=64, default="new_application", db_index=True)
    version = models.PositiveIntegerField(default=1)
    next_actor = models.CharField(max_length=32, blank=True)
    next_action = models.CharField(max_length=255, blank=True)
    documents_required = models.JSONField(default=list, blank=True)
    documents_received = models.JSONField(default=list, blank=True)
    stage_entered_at = models.DateTimeField(null=True, blank=True)
    status_entered_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="applications_created",
    )

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["stage", "status"], name="application_stage_status_idx"),
        ]

    def __str__(self):
        return f"{self.student_name} ({self.stage}:{self.status})"

    # --------------------------------------------------------
    # Conversion to and from the workflow core
    # --------------------------------------------------------
    def to_state(self) -> ApplicationState:
        history = tuple(
            HistoryEntry(
                stage=h.stage,
                status=h.status,
                timestamp=h.timestamp,
                actor=h.actor,
                reason=h.reason,
                notes=h.notes,
                documents=tuple(h.documents or ()),
            )
            for h in self.stage_history.order_by("timestamp", "id")
        ) if self.pk else ()

        return ApplicationState(
            id=self.pk,
            stage=self.stage,
            status=self.status,
            version=self.version,
            next_actor=self.next_actor or None,
            next_action=self.next_action or "",
            documents_required=tuple(self.documents_required or ()),
            documents_received=tuple(self.documents_received or ()),
            program=self.program,
            university=self.university,
            intake=self.intake,
            tracking_number=self.tracking_number,
            tuition_fee=self.tuition_fee,
            priority=self.priority,
            arrival_date=self.arrival_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            stage_entered_at=self.stage_entered_at,
            status_entered_at=self.status_entered_at,
            history=history,
        )

    @staticmethod
    def values_from_state(state: ApplicationState) -> dict:
        return {
            "stage": state.stage,
            "status": state.status,
            "version": state.version,
            "next_actor": state.next_actor or "",
            "next_action": state.next_action or "",
            "documents_required": list(state.documents_required),
            "documents_received": list(state.documents_received),
            "tracking_number": state.tracking_number or "",
            "arrival_date": state.arrival_date,
            "stage_entered_at": state.stage_entered_at,
            "status_entered_at": state.status_entered_at,
            "updated_at": state.updated_at,
        }
