from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import models
from django.utils import timezone


class StageHistoryEntry(models.Model):
    """
    Append-only stage history for an application.

    Rows are written once by the workflow engine and never updated.
    """

    application = models.ForeignKey(
        "admissions_core.Application",
        on_delete=models.CASCADE,
        related_name="stage_history",
    )
    stage = models.PositiveSmallIntegerField()
    status = models.CharField(max_length=64)
    actor = models.CharField(max_length=32)
    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    documents = models.JSONField(default=list, blank=True)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stage_history_entries",
    )

    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(fields=["application", "timestamp"], name="history_app_timestamp_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise PermissionDenied("Stage history entries are append-only.")
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"#{self.application_id} {self.stage}:{self.status} by {self.actor}"


class AuditEntry(models.Model):
    """
    Immutable audit log for workflow transitions and record lifecycle events.
    """

    application = models.ForeignKey(
        "admissions_core.Application",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    application_ref = models.PositiveIntegerField(null=True, blank=True, db_index=True)

    event = models.CharField(max_length=128)
    actor = models.CharField(max_length=32, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="admission_audit_entries",
    )

    from_stage = models.PositiveSmallIntegerField(null=True, blank=True)
    from_status = models.CharField(max_length=64, blank=True)
    to_stage = models.PositiveSmallIntegerField(null=True, blank=True)
    to_status = models.CharField(max_length=64, blank=True)

    description = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["application_ref", "created_at"], name="audit_app_created_idx"),
        ]

    def __str__(self):
        return f"{self.event} #{self.application_ref}"
