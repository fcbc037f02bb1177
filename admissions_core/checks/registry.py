# admissions_core/checks/registry.py

from django.core.checks import Error, register

from admissions_core.workflows import copy_catalog
from admissions_core.workflows.definitions import STAGES
from admissions_core.workflows.registry import StatusRegistry
from admissions_core.workflows.sla import SLA_DEFINITIONS


@register()
def check_status_registry(app_configs, **kwargs):
    """
    Django system check for status registry consistency.
    """
    errors = []

    registry = StatusRegistry(STAGES, validate=False)
    for problem in registry.problems():
        errors.append(
            Error(
                "Status registry is inconsistent",
                hint=problem,
                id="admissions_core.E001",
            )
        )

    # SLA keys must name real rows
    for stage, table in SLA_DEFINITIONS.items():
        for status in table:
            if not registry.contains(stage, status):
                errors.append(
                    Error(
                        f"SLA defined for unknown status {stage}:{status}",
                        id="admissions_core.E002",
                    )
                )

    for row in registry.rows():
        if copy_catalog.lookup(row.stage, row.key, "display_name") is None:
            errors.append(
                Error(
                    f"No display name for status {row.stage}:{row.key}",
                    id="admissions_core.E003",
                )
            )

    return errors
