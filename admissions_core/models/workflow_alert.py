from django.db import models


class WorkflowAlert(models.Model):
    application = models.ForeignKey(
        "admissions_core.Application",
        on_delete=models.CASCADE,
        related_name="workflow_alerts",
    )

    stage = models.PositiveSmallIntegerField()
    status = models.CharField(max_length=64)
    severity = models.CharField(max_length=16, default="warning")
    sla_seconds = models.PositiveIntegerField()
    duration_seconds = models.PositiveIntegerField()
    message = models.CharField(max_length=255, blank=True)

    triggered_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-triggered_at",)
        indexes = [
            models.Index(fields=["application", "stage", "status"], name="alert_app_stage_status_idx"),
        ]

    def __str__(self):
        return f"#{self.application_id} {self.stage}:{self.status} SLA BREACH"
