# admissions_core/services/bulk.py

from typing import Any, Dict, Iterable, List, Mapping, Optional

from admissions_core.models import Application
from admissions_core.workflows.errors import VALIDATION_FAILURE
from admissions_core.workflows.executor import attempt_transition, build_pipeline
from admissions_core.workflows.registry import get_registry, normalize_status


# ---------------------------------------------------------------------
# BULK WORKFLOW TRANSITION
# ---------------------------------------------------------------------

def bulk_transition(
    *,
    applications: Iterable,
    actor: str,
    target_status: str,
    aux_data: Optional[Mapping[str, Any]] = None,
    user=None,
) -> Dict[str, Any]:
    """
    Apply one transition to many applications.

    - Never raises for user input errors
    - Each application goes through the full executor (authority, rules,
      compare-and-set) independently; one failure does not roll back others
    - Items may be Application instances or primary keys
    """
    target_status = normalize_status(target_status)
    registry = get_registry()
    pipeline = build_pipeline(registry)

    success: List[int] = []
    failed: List[Dict[str, Any]] = []

    for item in applications:
        if isinstance(item, Application):
            app = item
        else:
            app = Application.objects.filter(pk=item).first()
            if app is None:
                failed.append(
                    {
                        "id": item,
                        "errors": [
                            {"kind": VALIDATION_FAILURE, "message": "Application not found.", "rule": None}
                        ],
                    }
                )
                continue

        result = attempt_transition(
            app,
            actor,
            target_status,
            aux_data,
            user=user,
            registry=registry,
            pipeline=pipeline,
        )
        if result.success:
            success.append(app.pk)
        else:
            failed.append({"id": app.pk, "errors": [e.to_dict() for e in result.errors]})

    return {"success": success, "failed": failed}
