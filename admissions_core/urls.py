# admissions_core/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API ViewSets
# -------------------------------------------------
from .views import (
    ApplicationViewSet,
    AuditEntryViewSet,
    CommissionViewSet,
    GeneratedDocumentViewSet,
    HealthCheckView,
)

# -------------------------------------------------
# Workflow APIs
# -------------------------------------------------
from .views_workflow_api import (
    ApplicationEventView,
    ApplicationHealthView,
    ApplicationHistoryView,
    ApplicationSlaView,
    ApplicationTransitionView,
    ApplicationTransitionsView,
    BulkTransitionView,
    WorkflowDefinitionView,
    WorkflowRulesView,
    WorkflowStatusView,
)


app_name = "admissions_core"

# -------------------------------------------------
# Router (CRUD APIs)
# -------------------------------------------------
router = DefaultRouter()
router.register(r"applications", ApplicationViewSet, basename="application")
router.register(r"audit-entries", AuditEntryViewSet, basename="auditentry")
router.register(r"commissions", CommissionViewSet, basename="commission")
router.register(r"documents", GeneratedDocumentViewSet, basename="document")


urlpatterns = [
    # ============================================================
    # Bulk (before the router so it is not read as a pk)
    # ============================================================
    path("applications/bulk-transition/", BulkTransitionView.as_view(), name="application-bulk-transition"),

    # ============================================================
    # Core CRUD API
    # ============================================================
    path("", include(router.urls)),

    # ============================================================
    # System
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health_check"),

    # ============================================================
    # Per-application workflow
    # ============================================================
    path("applications/<int:pk>/transitions/", ApplicationTransitionsView.as_view(), name="application-transitions"),
    path("applications/<int:pk>/transition/", ApplicationTransitionView.as_view(), name="application-transition"),
    path("applications/<int:pk>/events/", ApplicationEventView.as_view(), name="application-events"),
    path("applications/<int:pk>/history/", ApplicationHistoryView.as_view(), name="application-history"),
    path("applications/<int:pk>/health/", ApplicationHealthView.as_view(), name="application-health"),
    path("applications/<int:pk>/sla/", ApplicationSlaView.as_view(), name="application-sla"),

    # ============================================================
    # Registry introspection (read-only)
    # ============================================================
    path("workflows/definition/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
    path("workflows/stages/<int:stage>/<str:status>/", WorkflowStatusView.as_view(), name="workflow-status"),
    path("workflows/rules/", WorkflowRulesView.as_view(), name="workflow-rules"),
]
