# admissions_core/admin.py

from django.contrib import admin

from .models import (
    ActorMembership,
    Application,
    AuditEntry,
    Commission,
    DocumentRequest,
    GeneratedDocument,
    StageHistoryEntry,
    WorkflowAlert,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Applications
# =============================================================

class StageHistoryInline(admin.TabularInline):
    model = StageHistoryEntry
    extra = 0
    can_delete = False
    fields = ("timestamp", "stage", "status", "actor", "reason", "performed_by")
    readonly_fields = fields
    ordering = ("timestamp", "id")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "student_name",
        "partner_code",
        "university",
        "stage",
        "status",
        "next_actor",
        "priority",
        "created_at",
    )
    list_filter = ("stage", "status", "priority", "partner_tier")
    search_fields = ("student_name", "partner_code", "university", "program")
    ordering = ("-created_at",)
    inlines = [StageHistoryInline]

    # Workflow fields change only through the workflow engine.
    readonly_fields = (
        "stage",
        "status",
        "version",
        "next_actor",
        "next_action",
        "documents_required",
        "documents_received",
        "stage_entered_at",
        "status_entered_at",
        "created_at",
        "updated_at",
    )


@admin.register(ActorMembership)
class ActorMembershipAdmin(admin.ModelAdmin):
    list_display = ("user", "actor", "partner_code", "created_at")
    list_filter = ("actor",)
    search_fields = ("user__username", "partner_code")


# =============================================================
# Workflow records (READ-ONLY)
# =============================================================

@admin.register(StageHistoryEntry)
class StageHistoryEntryAdmin(ReadOnlyAdmin):
    list_display = ("application", "stage", "status", "actor", "performed_by", "timestamp")
    list_filter = ("stage", "status", "actor")
    search_fields = ("application__id", "performed_by__username")
    ordering = ("-timestamp",)


@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdmin):
    list_display = ("event", "application_ref", "actor", "user", "from_status", "to_status", "created_at")
    list_filter = ("actor",)
    search_fields = ("event", "application_ref", "user__username")
    ordering = ("-created_at",)


@admin.register(WorkflowAlert)
class WorkflowAlertAdmin(ReadOnlyAdmin):
    list_display = ("application", "stage", "status", "severity", "triggered_at", "resolved_at")
    list_filter = ("severity", "stage", "status")
    ordering = ("-triggered_at",)


@admin.register(Commission)
class CommissionAdmin(ReadOnlyAdmin):
    list_display = ("application", "partner_code", "partner_tier", "commission_amount", "currency", "status")
    list_filter = ("partner_tier", "status")
    search_fields = ("partner_code",)


@admin.register(GeneratedDocument)
class GeneratedDocumentAdmin(ReadOnlyAdmin):
    list_display = ("file_name", "application", "stage", "document_type", "status", "created_at")
    list_filter = ("document_type",)


@admin.register(DocumentRequest)
class DocumentRequestAdmin(admin.ModelAdmin):
    list_display = ("title", "application", "stage", "requested_by", "status", "created_at")
    list_filter = ("status", "stage")
