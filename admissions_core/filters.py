# admissions_core/filters.py
import django_filters as df

from .models import Application, AuditEntry, Commission, GeneratedDocument


class ApplicationFilter(df.FilterSet):
    student_name = df.CharFilter(field_name="student_name", lookup_expr="icontains")
    university = df.CharFilter(field_name="university", lookup_expr="icontains")
    program = df.CharFilter(field_name="program", lookup_expr="icontains")
    status = df.CharFilter(field_name="status", lookup_expr="iexact")
    next_actor = df.CharFilter(field_name="next_actor", lookup_expr="iexact")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = Application
        fields = [
            "student_name",
            "partner_code",
            "partner_tier",
            "university",
            "program",
            "intake",
            "stage",
            "status",
            "priority",
            "next_actor",
            "created_at",
        ]


class AuditEntryFilter(df.FilterSet):
    application = df.NumberFilter(field_name="application_ref")
    event = df.CharFilter(field_name="event", lookup_expr="istartswith")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = AuditEntry
        fields = ["application", "event", "actor", "created_at"]


class CommissionFilter(df.FilterSet):
    enrollment_date = df.DateFromToRangeFilter()

    class Meta:
        model = Commission
        fields = ["partner_code", "partner_tier", "status", "enrollment_date"]


class GeneratedDocumentFilter(df.FilterSet):
    application = df.NumberFilter(field_name="application_id")

    class Meta:
        model = GeneratedDocument
        fields = ["application", "stage", "document_type"]
