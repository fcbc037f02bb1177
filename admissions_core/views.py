# admissions_core/views.py
from __future__ import annotations

from django.db.models import QuerySet
from django_filters.rest_framework import DjangoFilterBackend

from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import NotAuthenticated, PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import (
    ApplicationFilter,
    AuditEntryFilter,
    CommissionFilter,
    GeneratedDocumentFilter,
)
from .models import ActorMembership, AuditEntry, Commission, GeneratedDocument
from .permissions import IsWorkflowMember, user_actors, visible_applications
from .serializers import (
    ApplicationSerializer,
    AuditEntrySerializer,
    CommissionSerializer,
    GeneratedDocumentSerializer,
)
from .signals import set_current_user
from .workflows import ADMIN, PARTNER
from .workflows.automation import APPLICATION_SUBMITTED
from .tasks import process_application_event_task


# ===============================================================
# Utilities
# ===============================================================
def _require_auth(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication credentials were not provided.")
    return user


def _scoped_to_applications(qs: QuerySet, user, field: str = "application") -> QuerySet:
    if user.is_superuser:
        return qs
    return qs.filter(**{f"{field}__in": visible_applications(user)})


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["System"])
    def get(self, request):
        return Response({"status": "ok", "service": "AdmitFlow"})


# ===============================================================
# Applications
# ===============================================================
class ApplicationViewSet(viewsets.ModelViewSet):
    """
    CRUD for application business fields.

    Workflow fields are read-only here; they change only through the
    transition and events endpoints.
    """

    serializer_class = ApplicationSerializer
    permission_classes = [IsAuthenticated, IsWorkflowMember]
    filter_backends = [DjangoFilterBackend]
    filterset_class = ApplicationFilter
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        return visible_applications(self.request.user).select_related("created_by").order_by("-created_at", "-id")

    def perform_create(self, serializer):
        user = _require_auth(self.request)
        set_current_user(user)

        extra = {"created_by": user}
        codes = set(
            ActorMembership.objects.filter(user=user, actor=PARTNER)
            .exclude(partner_code="")
            .values_list("partner_code", flat=True)
        )
        # Partner-scoped users can only file under their own code.
        if len(codes) == 1 and not user.is_superuser:
            extra["partner_code"] = next(iter(codes))

        application = serializer.save(**extra)
        process_application_event_task.delay(application.pk, APPLICATION_SUBMITTED, {}, user.pk)

    def perform_update(self, serializer):
        set_current_user(self.request.user)
        serializer.save()

    def perform_destroy(self, instance):
        if ADMIN not in user_actors(self.request.user, instance):
            raise PermissionDenied("Only ADMIN can delete applications.")
        set_current_user(self.request.user)
        instance.delete()


# ===============================================================
# Read-only records
# ===============================================================
class AuditEntryViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AuditEntrySerializer
    permission_classes = [IsAuthenticated, IsWorkflowMember]
    filter_backends = [DjangoFilterBackend]
    filterset_class = AuditEntryFilter

    def get_queryset(self):
        qs = AuditEntry.objects.select_related("user").order_by("-created_at", "-id")
        return _scoped_to_applications(qs, self.request.user)


class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CommissionSerializer
    permission_classes = [IsAuthenticated, IsWorkflowMember]
    filter_backends = [DjangoFilterBackend]
    filterset_class = CommissionFilter

    def get_queryset(self):
        qs = Commission.objects.select_related("application").order_by("-created_at", "-id")
        return _scoped_to_applications(qs, self.request.user)


class GeneratedDocumentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = GeneratedDocumentSerializer
    permission_classes = [IsAuthenticated, IsWorkflowMember]
    filter_backends = [DjangoFilterBackend]
    filterset_class = GeneratedDocumentFilter

    def get_queryset(self):
        qs = GeneratedDocument.objects.order_by("created_at", "id")
        return _scoped_to_applications(qs, self.request.user)
