from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth.models import User
from rest_framework import serializers

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
from .workflows import copy_catalog, is_terminal


# ===============================================================
# Helpers
# ===============================================================

class ImmutableFieldsMixin:
    """
    Blocks updates to selected fields if they appear in incoming validated data.
    """
    immutable_fields: tuple[str, ...] = ()

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if self.instance is not None and self.immutable_fields:
            for field in self.immutable_fields:
                if field in attrs:
                    raise serializers.ValidationError(
                        {field: "This field is immutable."}
                    )
        return super().validate(attrs)


class UserSlimSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ("id", "username", "email")
        read_only_fields = fields


# ===============================================================
# Memberships
# ===============================================================

class ActorMembershipSerializer(serializers.ModelSerializer):
    user = UserSlimSerializer(read_only=True)

    class Meta:
        model = ActorMembership
        fields = ("id", "user", "actor", "partner_code", "created_at")
        read_only_fields = fields


# ===============================================================
# Applications
# ===============================================================

WORKFLOW_READ_ONLY = (
    "stage",
    "status",
    "version",
    "next_actor",
    "next_action",
    "documents_required",
    "documents_received",
    "stage_entered_at",
    "status_entered_at",
)


class ApplicationSerializer(ImmutableFieldsMixin, serializers.ModelSerializer):
    immutable_fields = ("partner_code",)

    status_display = serializers.SerializerMethodField()
    is_terminal = serializers.SerializerMethodField()
    created_by = UserSlimSerializer(read_only=True)

    class Meta:
        model = Application
        fields = (
            "id",
            "student_name",
            "student_nationality",
            "partner_code",
            "partner_tier",
            "program",
            "university",
            "intake",
            "tracking_number",
            "tuition_fee",
            "currency",
            "priority",
            "arrival_date",
            *WORKFLOW_READ_ONLY,
            "status_display",
            "is_terminal",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = (
            "id",
            *WORKFLOW_READ_ONLY,
            "tracking_number",
            "arrival_date",
            "created_by",
            "created_at",
            "updated_at",
        )

    def get_status_display(self, obj: Application) -> str:
        return copy_catalog.display_name(obj.stage, obj.status)

    def get_is_terminal(self, obj: Application) -> bool:
        return is_terminal(obj.stage, obj.status)


class StageHistoryEntrySerializer(serializers.ModelSerializer):
    performed_by = UserSlimSerializer(read_only=True)
    status_display = serializers.SerializerMethodField()

    class Meta:
        model = StageHistoryEntry
        fields = (
            "id",
            "stage",
            "status",
            "status_display",
            "actor",
            "reason",
            "notes",
            "documents",
            "performed_by",
            "timestamp",
        )
        read_only_fields = fields

    def get_status_display(self, obj: StageHistoryEntry) -> str:
        return copy_catalog.display_name(obj.stage, obj.status)


# ===============================================================
# Workflow requests
# ===============================================================

class TransitionRequestSerializer(serializers.Serializer):
    target_status = serializers.CharField()
    actor = serializers.CharField(required=False, allow_blank=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)
    aux_data = serializers.DictField(required=False, default=dict)


class BulkTransitionRequestSerializer(serializers.Serializer):
    target_status = serializers.CharField()
    actor = serializers.CharField(required=False, allow_blank=True)
    application_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
    )
    aux_data = serializers.DictField(required=False, default=dict)


class AutomationEventSerializer(serializers.Serializer):
    EVENT_CHOICES = ("documents_uploaded",)

    event = serializers.ChoiceField(choices=EVENT_CHOICES, default="documents_uploaded")
    document_types = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    documents = serializers.ListField(required=False, default=list)
    upload_complete = serializers.BooleanField(required=False, allow_null=True, default=None)


# ===============================================================
# Read-only records
# ===============================================================

class AuditEntrySerializer(serializers.ModelSerializer):
    user = UserSlimSerializer(read_only=True)

    class Meta:
        model = AuditEntry
        fields = (
            "id",
            "application",
            "application_ref",
            "event",
            "actor",
            "user",
            "from_stage",
            "from_status",
            "to_stage",
            "to_status",
            "description",
            "metadata",
            "created_at",
        )
        read_only_fields = fields


class CommissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Commission
        fields = (
            "id",
            "application",
            "partner_code",
            "partner_tier",
            "tuition_fee",
            "commission_rate",
            "commission_amount",
            "currency",
            "status",
            "enrollment_date",
            "breakdown",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class GeneratedDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = GeneratedDocument
        fields = ("id", "application", "stage", "document_type", "file_name", "status", "created_at")
        read_only_fields = fields


class DocumentRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentRequest
        fields = (
            "id",
            "application",
            "stage",
            "title",
            "requested_documents",
            "requested_by",
            "status",
            "created_at",
        )
        read_only_fields = fields


class WorkflowAlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = WorkflowAlert
        fields = (
            "id",
            "application",
            "stage",
            "status",
            "severity",
            "sla_seconds",
            "duration_seconds",
            "message",
            "triggered_at",
            "resolved_at",
        )
        read_only_fields = fields
