from django.db import models


class GeneratedDocument(models.Model):
    """Document records produced by the workflow (offer letters, packages, reports)."""

    application = models.ForeignKey(
        "admissions_core.Application",
        on_delete=models.CASCADE,
        related_name="generated_documents",
    )
    stage = models.PositiveSmallIntegerField()
    document_type = models.CharField(max_length=64, db_index=True)
    file_name = models.CharField(max_length=255)
    status = models.CharField(max_length=32, default="approved")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return self.file_name


class DocumentRequest(models.Model):
    class Status(models.TextChoices):
        OPEN = "open", "Open"
        FULFILLED = "fulfilled", "Fulfilled"
        CANCELLED = "cancelled", "Cancelled"

    application = models.ForeignKey(
        "admissions_core.Application",
        on_delete=models.CASCADE,
        related_name="document_requests",
    )
    stage = models.PositiveSmallIntegerField()
    title = models.CharField(max_length=255)
    requested_documents = models.JSONField(default=list)
    requested_by = models.CharField(max_length=32)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.OPEN)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return self.title
