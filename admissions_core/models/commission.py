from django.db import models


class Commission(models.Model):
    """Partner commission, created once when an application enters stage 5."""

    application = models.OneToOneField(
        "admissions_core.Application",
        on_delete=models.CASCADE,
        related_name="commission",
    )
    partner_code = models.CharField(max_length=64, blank=True, db_index=True)
    partner_tier = models.CharField(max_length=16, blank=True)

    tuition_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    commission_rate = models.DecimalField(max_digits=6, decimal_places=4, default=0)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    currency = models.CharField(max_length=8, default="MYR")

    status = models.CharField(max_length=32, default="commission_pending")
    enrollment_date = models.DateTimeField()
    breakdown = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Commission #{self.application_id} {self.commission_amount} {self.currency}"
