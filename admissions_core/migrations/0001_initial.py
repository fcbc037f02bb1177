import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("student_name", models.CharField(max_length=255)),
                ("student_nationality", models.CharField(blank=True, max_length=64)),
                ("partner_code", models.CharField(blank=True, db_index=True, max_length=64)),
                (
                    "partner_tier",
                    models.CharField(
                        choices=[("bronze", "Bronze"), ("silver", "Silver"), ("gold", "Gold"), ("platinum", "Platinum")],
                        default="bronze",
                        max_length=16,
                    ),
                ),
                ("program", models.CharField(blank=True, max_length=255)),
                ("university", models.CharField(blank=True, max_length=255)),
                ("intake", models.CharField(blank=True, max_length=64)),
                ("tracking_number", models.CharField(blank=True, max_length=128)),
                ("tuition_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("currency", models.CharField(default="MYR", max_length=8)),
                (
                    "priority",
                    models.CharField(
                        choices=[("low", "Low"), ("normal", "Normal"), ("high", "High"), ("urgent", "Urgent")],
                        db_index=True,
                        default="normal",
                        max_length=16,
                    ),
                ),
                ("arrival_date", models.DateField(blank=True, null=True)),
                ("stage", models.PositiveSmallIntegerField(db_index=True, default=1)),
                ("status", models.CharField(db_index=True, default="new_application", max_length=64)),
                ("version", models.PositiveIntegerField(default=1)),
                ("next_actor", models.CharField(blank=True, max_length=32)),
                ("next_action", models.CharField(blank=True, max_length=255)),
                ("documents_required", models.JSONField(blank=True, default=list)),
                ("documents_received", models.JSONField(blank=True, default=list)),
                ("stage_entered_at", models.DateTimeField(blank=True, null=True)),
                ("status_entered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="applications_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["stage", "status"], name="application_stage_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="ActorMembership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "actor",
                    models.CharField(
                        choices=[
                            ("ADMIN", "Admin"),
                            ("PARTNER", "Partner"),
                            ("UNIVERSITY", "University"),
                            ("IMMIGRATION", "Immigration"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "partner_code",
                    models.CharField(
                        blank=True,
                        help_text="Restricts a PARTNER member to applications with this partner code.",
                        max_length=64,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="actor_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "unique_together": {("user", "actor")},
            },
        ),
        migrations.CreateModel(
            name="StageHistoryEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.PositiveSmallIntegerField()),
                ("status", models.CharField(max_length=64)),
                ("actor", models.CharField(max_length=32)),
                ("reason", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                ("documents", models.JSONField(blank=True, default=list)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stage_history",
                        to="admissions_core.application",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stage_history_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp", "id"],
                "indexes": [models.Index(fields=["application", "timestamp"], name="history_app_timestamp_idx")],
            },
        ),
        migrations.CreateModel(
            name="AuditEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("application_ref", models.PositiveIntegerField(blank=True, db_index=True, null=True)),
                ("event", models.CharField(max_length=128)),
                ("actor", models.CharField(blank=True, max_length=32)),
                ("from_stage", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("from_status", models.CharField(blank=True, max_length=64)),
                ("to_stage", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("to_status", models.CharField(blank=True, max_length=64)),
                ("description", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "application",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_entries",
                        to="admissions_core.application",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="admission_audit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["application_ref", "created_at"], name="audit_app_created_idx")],
            },
        ),
        migrations.CreateModel(
            name="GeneratedDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.PositiveSmallIntegerField()),
                ("document_type", models.CharField(db_index=True, max_length=64)),
                ("file_name", models.CharField(max_length=255)),
                ("status", models.CharField(default="approved", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="generated_documents",
                        to="admissions_core.application",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="DocumentRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.PositiveSmallIntegerField()),
                ("title", models.CharField(max_length=255)),
                ("requested_documents", models.JSONField(default=list)),
                ("requested_by", models.CharField(max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("fulfilled", "Fulfilled"), ("cancelled", "Cancelled")],
                        default="open",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="document_requests",
                        to="admissions_core.application",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Commission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("partner_code", models.CharField(blank=True, db_index=True, max_length=64)),
                ("partner_tier", models.CharField(blank=True, max_length=16)),
                ("tuition_fee", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("commission_rate", models.DecimalField(decimal_places=4, default=0, max_digits=6)),
                ("commission_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("currency", models.CharField(default="MYR", max_length=8)),
                ("status", models.CharField(default="commission_pending", max_length=32)),
                ("enrollment_date", models.DateTimeField()),
                ("breakdown", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "application",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="commission",
                        to="admissions_core.application",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WorkflowAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.PositiveSmallIntegerField()),
                ("status", models.CharField(max_length=64)),
                ("severity", models.CharField(default="warning", max_length=16)),
                ("sla_seconds", models.PositiveIntegerField()),
                ("duration_seconds", models.PositiveIntegerField()),
                ("message", models.CharField(blank=True, max_length=255)),
                ("triggered_at", models.DateTimeField(auto_now_add=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="workflow_alerts",
                        to="admissions_core.application",
                    ),
                ),
            ],
            options={
                "ordering": ("-triggered_at",),
                "indexes": [
                    models.Index(fields=["application", "stage", "status"], name="alert_app_stage_status_idx"),
                ],
            },
        ),
    ]
