# admissions_core/views_workflow_api.py

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone

from drf_spectacular.utils import extend_schema
from rest_framework.exceptions import NotAuthenticated, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from admissions_core.permissions import resolve_actor, visible_applications
from admissions_core.serializers import (
    ApplicationSerializer,
    AutomationEventSerializer,
    BulkTransitionRequestSerializer,
    StageHistoryEntrySerializer,
    TransitionRequestSerializer,
)
from admissions_core.services.bulk import bulk_transition
from admissions_core.signals import set_current_user
from admissions_core.workflows import (
    ADMIN,
    PARTNER,
    ConfigurationError,
    get_available_transitions,
    get_registry,
    is_terminal,
    normalize_actor,
    status_definition,
    workflow_definition,
)
from admissions_core.workflows.errors import CONCURRENCY_CONFLICT, ConcurrencyConflict
from admissions_core.workflows.executor import attempt_transition, build_pipeline
from admissions_core.workflows.health import validate_application_state
from admissions_core.workflows.runtime import process_application_event
from admissions_core.workflows.sla import compute_sla

logger = logging.getLogger(__name__)

EVENT_ACTORS = (PARTNER, ADMIN)


# =============================================================
# Helpers
# =============================================================

def _require_auth(user) -> None:
    """
    Enforce authentication in a way that returns DRF's normal 401/403
    instead of Django login redirects (302) under session-based setups.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated("Authentication credentials were not provided.")


def _get_application(request, pk: int):
    _require_auth(request.user)
    return get_object_or_404(visible_applications(request.user), pk=pk)


def _parse_stage(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({"stage": "Stage must be an integer."})


# =============================================================
# API: Available transitions
# =============================================================

class ApplicationTransitionsView(APIView):
    """
    GET /api/admissions/applications/<pk>/transitions/

    Transitions the caller's actor may request from the current status.
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request, pk: int):
        application = _get_application(request, pk)
        actor = resolve_actor(request, application)

        return Response(
            {
                "application_id": application.pk,
                "stage": application.stage,
                "status": application.status,
                "version": application.version,
                "actor": actor,
                "terminal": is_terminal(application.stage, application.status),
                "transitions": get_available_transitions(application.stage, application.status, actor),
            }
        )


# =============================================================
# API: Execute transition (AUTHORITATIVE)
# =============================================================

class ApplicationTransitionView(APIView):
    """
    POST /api/admissions/applications/<pk>/transition/

    Body:
        {"target_status": "documents_approved", "expected_version": 3,
         "aux_data": {"reason": "..."}}

    This endpoint is the only API-level entry point for user transitions.
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"], request=TransitionRequestSerializer)
    def post(self, request, pk: int):
        application = _get_application(request, pk)

        serializer = TransitionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = resolve_actor(request, application)
        set_current_user(request.user)

        result = attempt_transition(
            application,
            actor,
            data["target_status"],
            data.get("aux_data") or {},
            user=request.user,
            expected_version=data.get("expected_version"),
        )

        body = result.to_dict()
        body["application"] = ApplicationSerializer(result.application).data
        return Response(body, status=result.http_status)


# =============================================================
# API: Automation events
# =============================================================

class ApplicationEventView(APIView):
    """
    POST /api/admissions/applications/<pk>/events/

    Body:
        {"event": "documents_uploaded", "document_types": ["passport"],
         "upload_complete": true}
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"], request=AutomationEventSerializer)
    def post(self, request, pk: int):
        application = _get_application(request, pk)
        actor = resolve_actor(request, application)
        # Uploads come from the partner that owns the file, or from admin staff.
        if actor not in EVENT_ACTORS:
            raise PermissionDenied(f"{actor} cannot submit automation events.")

        serializer = AutomationEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        event = data.pop("event")
        if data.get("upload_complete") is None:
            data.pop("upload_complete", None)

        set_current_user(request.user)
        try:
            result = process_application_event(application, event, data, user=request.user)
        except ConcurrencyConflict as exc:
            application.refresh_from_db()
            return Response(
                {
                    "success": False,
                    "errors": [{"kind": CONCURRENCY_CONFLICT, "message": str(exc), "rule": None}],
                    "application": ApplicationSerializer(application).data,
                },
                status=409,
            )

        body = result.to_dict()
        body["success"] = True
        body["application"] = ApplicationSerializer(result.application).data
        return Response(body)


# =============================================================
# API: History / health / SLA
# =============================================================

class ApplicationHistoryView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request, pk: int):
        application = _get_application(request, pk)
        entries = application.stage_history.select_related("performed_by").order_by("timestamp", "id")
        return Response(
            {
                "application_id": application.pk,
                "history": StageHistoryEntrySerializer(entries, many=True).data,
            }
        )


class ApplicationHealthView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request, pk: int):
        application = _get_application(request, pk)
        report = validate_application_state(application.to_state(), timezone.now())
        return Response({"application_id": application.pk, **report})


class ApplicationSlaView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request, pk: int):
        application = _get_application(request, pk)
        sla = compute_sla(
            stage=application.stage,
            status=application.status,
            entered_at=application.status_entered_at or application.created_at,
            now=timezone.now(),
        )
        return Response(
            {
                "application_id": application.pk,
                "stage": application.stage,
                "status": application.status,
                "sla": sla,
                "open_alerts": application.workflow_alerts.filter(resolved_at__isnull=True).count(),
            }
        )


# =============================================================
# API: Bulk transition
# =============================================================

class BulkTransitionView(APIView):
    """
    POST /api/admissions/applications/bulk-transition/

    Body:
        {"target_status": "...", "application_ids": [1, 2, 3], "aux_data": {...}}

    Per-application failures never fail the request.
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"], request=BulkTransitionRequestSerializer)
    def post(self, request):
        _require_auth(request.user)

        serializer = BulkTransitionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = resolve_actor(request)
        set_current_user(request.user)

        visible = set(
            visible_applications(request.user)
            .filter(pk__in=data["application_ids"])
            .values_list("pk", flat=True)
        )
        ids = [pk for pk in data["application_ids"] if pk in visible]
        hidden = [pk for pk in data["application_ids"] if pk not in visible]

        outcome = bulk_transition(
            applications=ids,
            actor=actor,
            target_status=data["target_status"],
            aux_data=data.get("aux_data") or {},
            user=request.user,
        )
        for pk in hidden:
            outcome["failed"].append(
                {"id": pk, "errors": [{"kind": "validation_failure", "message": "Application not found.", "rule": None}]}
            )
        return Response(outcome)


# =============================================================
# API: Registry introspection
# =============================================================

class WorkflowDefinitionView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request):
        _require_auth(request.user)
        return Response(workflow_definition())


class WorkflowStatusView(APIView):
    """
    GET /api/admissions/workflows/stages/<stage>/<status>/?actor=PARTNER
    """
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request, stage, status: str):
        _require_auth(request.user)
        stage = _parse_stage(stage)

        try:
            payload = status_definition(stage, status)
        except ConfigurationError:
            raise ValidationError({"status": f"Unknown status '{status}' in stage {stage}."})

        actor = request.query_params.get("actor")
        if actor:
            actor = normalize_actor(actor)
            payload["actor"] = actor
            payload["available_transitions"] = get_available_transitions(stage, status, actor)
        payload["is_terminal"] = is_terminal(stage, status)
        return Response(payload)


class WorkflowRulesView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Workflows"])
    def get(self, request):
        _require_auth(request.user)
        return Response({"rules": build_pipeline(get_registry()).summary()})
