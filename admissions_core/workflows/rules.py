# admissions_core/workflows/rules.py
"""
Rule evaluation pipeline.

Rules are immutable values built once at import. Each one decides whether it
applies to a candidate transition and, if so, returns a RuleResult. The
pipeline merges results in descending priority order and stops early when a
high-priority validation rule fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .authority import AuthorityChecker
from .errors import (
    AUTHORITY_VIOLATION,
    DUPLICATE_TRANSITION,
    RULE_INTERNAL_ERROR,
    VALIDATION_FAILURE,
    TransitionError,
)
from .registry import StatusDefinition, StatusRegistry, get_registry, normalize_actor, normalize_status
from .state import ApplicationState

logger = logging.getLogger(__name__)


# ===============================================================
# Rule types and thresholds
# ===============================================================

VALIDATION = "validation"
PERMISSION = "permission"
AUTOMATION = "automation"
NOTIFICATION = "notification"

FAIL_FAST_PRIORITY = 90

AUTO_ADVANCE_ACTION = "auto-advance-stage"
URGENT_NOTIFICATION_ACTION = "send-urgent-notification"

ALLOWED_RECEIPT_EXTENSIONS = ("pdf", "jpg", "jpeg", "png")
MIN_REASON_LENGTH = 10
MIN_TRACKING_NUMBER_LENGTH = 5
MIN_FILENAME_LENGTH = 3

URGENT_TARGETS: FrozenSet[str] = frozenset({
    "rejected_stage1",
    "rejected_university",
    "visa_rejected",
    "correction_requested_admin",
    "university_requested_corrections",
})

_REASON_MARKERS = ("rejected", "disputed")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_BAD_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_RECENT_DUPLICATE_WINDOW = timedelta(hours=1)


# ===============================================================
# Values
# ===============================================================

@dataclass(frozen=True)
class RuleContext:
    state: ApplicationState
    actor: str
    target_status: str
    aux_data: Mapping[str, Any]
    now: datetime
    registry: StatusRegistry

    @property
    def stage(self) -> int:
        return self.state.stage

    @property
    def current_status(self) -> str:
        return self.state.status

    @property
    def target_definition(self) -> Optional[StatusDefinition]:
        return self.registry.get(self.state.stage, self.target_status)

    def aux(self, key: str, default=None):
        value = self.aux_data.get(key, default)
        return default if value is None else value


@dataclass(frozen=True)
class RuleResult:
    success: bool = True
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    actions: Tuple[str, ...] = ()
    data: Optional[Mapping[str, Any]] = None

    @classmethod
    def ok(cls, *, warnings: Iterable[str] = (), actions: Iterable[str] = ()) -> "RuleResult":
        return cls(success=True, warnings=tuple(warnings), actions=tuple(actions))

    @classmethod
    def fail(cls, *errors: str, data: Optional[Mapping[str, Any]] = None) -> "RuleResult":
        return cls(success=False, errors=tuple(errors), data=data)


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    type: str
    priority: int
    applies_to: Callable[[RuleContext], bool]
    evaluate: Callable[[RuleContext], RuleResult]
    error_kind: str = VALIDATION_FAILURE
    description: str = ""


@dataclass(frozen=True)
class EvaluationOutcome:
    can_proceed: bool
    errors: Tuple[TransitionError, ...] = ()
    warnings: Tuple[str, ...] = ()
    actions: Tuple[str, ...] = ()
    evaluated: Tuple[str, ...] = ()
    stopped_by: Optional[str] = None

    @property
    def error_messages(self) -> List[str]:
        return [e.message for e in self.errors]

    def has_kind(self, kind: str) -> bool:
        return any(e.kind == kind for e in self.errors)


# ===============================================================
# Helpers
# ===============================================================

def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _file_name(item) -> str:
    if isinstance(item, Mapping):
        return _text(item.get("name") or item.get("file_name") or item.get("fileName"))
    return _text(item)


def _as_aware(value: Optional[datetime], now: datetime) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None and now.tzinfo is not None:
        return value.replace(tzinfo=now.tzinfo)
    return value


def _always(ctx: RuleContext) -> bool:
    return True


# ===============================================================
# Rule implementations
# ===============================================================

def _duplicate_applies(ctx: RuleContext) -> bool:
    return ctx.target_status == ctx.current_status


def _duplicate_evaluate(ctx: RuleContext) -> RuleResult:
    # The success branch is intentionally unreachable: re-applying the current
    # status is always blocked.
    for entry in ctx.state.history:
        ts = _as_aware(entry.timestamp, ctx.now)
        if entry.status == ctx.target_status and ts and ctx.now - ts < _RECENT_DUPLICATE_WINDOW:
            return RuleResult.fail(
                "This status was recently applied. Please verify this change is necessary."
            )
    return RuleResult.fail("Cannot set the same status - no change would occur.")


def _authority_evaluate(ctx: RuleContext) -> RuleResult:
    decision = AuthorityChecker(ctx.registry).validate(
        ctx.stage, ctx.current_status, ctx.target_status, ctx.actor
    )
    if decision.allowed:
        return RuleResult.ok()
    return RuleResult.fail(
        f"Authority violation: {ctx.actor} cannot change '{ctx.current_status}' "
        f"to '{ctx.target_status}'. {decision.message}",
        data={"reason": decision.reason},
    )


def _sequential_applies(ctx: RuleContext) -> bool:
    return ctx.stage <= 2


def _sequential_evaluate(ctx: RuleContext) -> RuleResult:
    row = ctx.registry.get(ctx.stage, ctx.current_status)
    if row is not None and ctx.target_status in row.all_targets():
        return RuleResult.ok()
    return RuleResult.fail(
        f"'{ctx.target_status}' is not a valid next status after '{ctx.current_status}'."
    )


def _reason_applies(ctx: RuleContext) -> bool:
    if any(marker in ctx.target_status for marker in _REASON_MARKERS):
        return True
    row = ctx.target_definition
    return bool(row and row.requires_reason)


def _reason_evaluate(ctx: RuleContext) -> RuleResult:
    reason = _text(ctx.aux("reason"))
    if len(reason) >= MIN_REASON_LENGTH:
        return RuleResult.ok()
    return RuleResult.fail(
        f"A reason of at least {MIN_REASON_LENGTH} characters is required "
        f"when moving to '{ctx.target_status}'."
    )


def _documents_applies(ctx: RuleContext) -> bool:
    row = ctx.target_definition
    return bool(row and row.prerequisite_documents)


def _documents_evaluate(ctx: RuleContext) -> RuleResult:
    have = set(ctx.state.documents_received) | {_text(d) for d in ctx.aux("document_types", ())}
    missing = [d for d in ctx.target_definition.prerequisite_documents if d not in have]
    if not missing:
        return RuleResult.ok()
    return RuleResult.fail(
        f"Missing required documents: {', '.join(missing)}.",
        data={"missing": missing},
    )


def _date_applies(ctx: RuleContext) -> bool:
    row = ctx.target_definition
    return bool(row and row.requires_date)


def _date_evaluate(ctx: RuleContext) -> RuleResult:
    value = ctx.aux("arrival_date") or ctx.aux("planned_arrival_date")
    if isinstance(value, date):
        value = value.isoformat()
    value = _text(value)

    if not value:
        return RuleResult.fail("An arrival date in YYYY-MM-DD format is required.")
    if not _ISO_DATE.match(value):
        return RuleResult.fail("Arrival date must use the YYYY-MM-DD format.")
    try:
        date.fromisoformat(value)
    except ValueError:
        return RuleResult.fail(f"Arrival date '{value}' is not a valid calendar date.")
    return RuleResult.ok()


def _receipt_applies(ctx: RuleContext) -> bool:
    row = ctx.target_definition
    return bool(row and row.requires_receipt)


def _receipt_evaluate(ctx: RuleContext) -> RuleResult:
    name = _file_name(ctx.aux("receipt"))
    allowed = ", ".join(ALLOWED_RECEIPT_EXTENSIONS)
    if not name:
        return RuleResult.fail(f"A payment receipt is required ({allowed}).")
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if ext not in ALLOWED_RECEIPT_EXTENSIONS:
        return RuleResult.fail(f"Receipt '{name}' must be one of: {allowed}.")
    return RuleResult.ok()


def _tracking_applies(ctx: RuleContext) -> bool:
    row = ctx.target_definition
    return bool(row and row.requires_tracking_number)


def _tracking_evaluate(ctx: RuleContext) -> RuleResult:
    value = _text(ctx.aux("tracking_number")) or _text(ctx.state.tracking_number)
    if len(value) >= MIN_TRACKING_NUMBER_LENGTH:
        return RuleResult.ok()
    return RuleResult.fail(
        f"A tracking number of at least {MIN_TRACKING_NUMBER_LENGTH} characters is required."
    )


def _filename_applies(ctx: RuleContext) -> bool:
    return bool(ctx.aux("documents"))


def _filename_evaluate(ctx: RuleContext) -> RuleResult:
    errors = []
    for item in ctx.aux("documents", ()):
        name = _file_name(item)
        if len(name) < MIN_FILENAME_LENGTH:
            errors.append(f"Document name '{name}' must be at least {MIN_FILENAME_LENGTH} characters.")
        elif _BAD_FILENAME.search(name):
            errors.append(f"Document name '{name}' contains invalid characters.")
    if errors:
        return RuleResult.fail(*errors)
    return RuleResult.ok()


def _consistency_evaluate(ctx: RuleContext) -> RuleResult:
    state = ctx.state
    target = ctx.target_status
    warnings = []

    if ctx.stage == 2 and target == "university_approved" and not _text(state.university):
        warnings.append("University name should be recorded before marking university approval.")

    if ctx.stage == 3 and target == "visa_issued":
        if not (_text(ctx.aux("tracking_number")) or _text(state.tracking_number)):
            warnings.append("Visa tracking number should be recorded before issuing the visa.")

    if ctx.stage == 4 and target == "arrival_verified":
        if not any("arrival" in entry.status for entry in state.history):
            warnings.append("No arrival activity is recorded in the stage history.")

    if ctx.stage == 5 and target == "commission_approved":
        if state.tuition_fee is None or state.tuition_fee <= 0:
            warnings.append("Tuition fee should be recorded before approving the commission.")

    return RuleResult.ok(warnings=warnings)


def _sla_applies(ctx: RuleContext) -> bool:
    return _text(ctx.state.priority).lower() in {"high", "urgent"}


def _sla_evaluate(ctx: RuleContext) -> RuleResult:
    state = ctx.state
    warnings = []

    entered = _as_aware(state.stage_entered_at or state.created_at, ctx.now)
    if state.stage == 1 and entered and ctx.now - entered > timedelta(days=3):
        warnings.append("High-priority application has been in stage 1 for more than 3 days.")

    created = _as_aware(state.created_at, ctx.now)
    if created and ctx.now - created > timedelta(days=7):
        warnings.append("High-priority application has been open for more than 7 days.")

    return RuleResult.ok(warnings=warnings)


def _auto_advance_applies(ctx: RuleContext) -> bool:
    row = ctx.target_definition
    return bool(row and row.completes_stage)


def _urgent_applies(ctx: RuleContext) -> bool:
    return ctx.target_status in URGENT_TARGETS


# ===============================================================
# Default catalog
# ===============================================================

DEFAULT_RULES: Tuple[Rule, ...] = (
    Rule(
        id="duplicate-status-guard",
        name="Prevent Duplicate Status Changes",
        type=VALIDATION,
        priority=115,
        applies_to=_duplicate_applies,
        evaluate=_duplicate_evaluate,
        error_kind=DUPLICATE_TRANSITION,
        description="Setting the current status again is always rejected.",
    ),
    Rule(
        id="authority-recheck",
        name="Status Authority Validation",
        type=VALIDATION,
        priority=110,
        applies_to=_always,
        evaluate=_authority_evaluate,
        error_kind=AUTHORITY_VIOLATION,
        description="Re-derives the authority decision for the acting role.",
    ),
    Rule(
        id="sequential-status",
        name="Sequential Status Validation",
        type=VALIDATION,
        priority=100,
        applies_to=_sequential_applies,
        evaluate=_sequential_evaluate,
        description="Stages 1-2: the target must follow the current status.",
    ),
    Rule(
        id="required-reason",
        name="Rejection Reason Required",
        type=VALIDATION,
        priority=95,
        applies_to=_reason_applies,
        evaluate=_reason_evaluate,
        description="Rejections and disputes need a reason of at least 10 characters.",
    ),
    Rule(
        id="required-documents",
        name="Required Documents",
        type=VALIDATION,
        priority=90,
        applies_to=_documents_applies,
        evaluate=_documents_evaluate,
        description="Prerequisite documents must be recorded before entering the target.",
    ),
    Rule(
        id="date-format",
        name="Date Format Validation",
        type=VALIDATION,
        priority=85,
        applies_to=_date_applies,
        evaluate=_date_evaluate,
        description="Date confirmations need an ISO YYYY-MM-DD arrival date.",
    ),
    Rule(
        id="receipt-schema",
        name="Receipt Schema Validation",
        type=VALIDATION,
        priority=85,
        applies_to=_receipt_applies,
        evaluate=_receipt_evaluate,
        description="Payment submissions need a pdf, jpg, jpeg or png receipt.",
    ),
    Rule(
        id="tracking-number",
        name="Tracking Number Validation",
        type=VALIDATION,
        priority=85,
        applies_to=_tracking_applies,
        evaluate=_tracking_evaluate,
        description="Immigration submission and visa issuance need a tracking number.",
    ),
    Rule(
        id="filename-requirements",
        name="File Name Requirements",
        type=VALIDATION,
        priority=80,
        applies_to=_filename_applies,
        evaluate=_filename_evaluate,
    ),
    Rule(
        id="stage-data-consistency",
        name="Stage Data Consistency Check",
        type=VALIDATION,
        priority=75,
        applies_to=_always,
        evaluate=_consistency_evaluate,
    ),
    Rule(
        id="sla-priority-warning",
        name="High Priority Fast Track",
        type=VALIDATION,
        priority=70,
        applies_to=_sla_applies,
        evaluate=_sla_evaluate,
    ),
    Rule(
        id="auto-advance-trigger",
        name="Auto-Advance Stage Trigger",
        type=AUTOMATION,
        priority=50,
        applies_to=_auto_advance_applies,
        evaluate=lambda ctx: RuleResult.ok(actions=[AUTO_ADVANCE_ACTION]),
    ),
    Rule(
        id="urgent-notification-trigger",
        name="Urgent Status Notification",
        type=NOTIFICATION,
        priority=40,
        applies_to=_urgent_applies,
        evaluate=lambda ctx: RuleResult.ok(actions=[URGENT_NOTIFICATION_ACTION]),
    ),
)

RECHECK_RULE_IDS: FrozenSet[str] = frozenset({"duplicate-status-guard", "authority-recheck"})


# ===============================================================
# Pipeline
# ===============================================================

class RulePipeline:
    def __init__(
        self,
        registry: Optional[StatusRegistry] = None,
        rules: Optional[Iterable[Rule]] = None,
        *,
        disabled: Iterable[str] = (),
        fail_fast_priority: int = FAIL_FAST_PRIORITY,
    ):
        self.registry = registry or get_registry()
        ordered = sorted(rules if rules is not None else DEFAULT_RULES, key=lambda r: -r.priority)
        self.rules: Tuple[Rule, ...] = tuple(ordered)
        self.disabled: FrozenSet[str] = frozenset(disabled or ())
        self.fail_fast_priority = fail_fast_priority

    def is_enabled(self, rule: Rule) -> bool:
        return rule.id not in self.disabled

    def evaluate(
        self,
        state: ApplicationState,
        actor: str,
        target_status: str,
        aux_data: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
        *,
        only: Optional[FrozenSet[str]] = None,
    ) -> EvaluationOutcome:
        ctx = RuleContext(
            state=state,
            actor=normalize_actor(actor),
            target_status=normalize_status(target_status),
            aux_data=dict(aux_data or {}),
            now=now or datetime.now(timezone.utc),
            registry=self.registry,
        )

        errors: List[TransitionError] = []
        warnings: List[str] = []
        actions: List[str] = []
        evaluated: List[str] = []
        stopped_by = None

        def _add(bucket: list, item) -> None:
            if item not in bucket:
                bucket.append(item)

        def _internal(rule: Rule) -> None:
            logger.exception(
                "Rule %s raised for application %s (%s -> %s)",
                rule.id, state.id, ctx.current_status, ctx.target_status,
            )
            _add(errors, TransitionError(RULE_INTERNAL_ERROR, f"Internal validation error: {rule.name}", rule.id))

        applicable: List[Rule] = []
        for rule in self.rules:
            if only is not None and rule.id not in only:
                continue
            if not self.is_enabled(rule):
                continue
            try:
                if rule.applies_to(ctx):
                    applicable.append(rule)
            except Exception:
                _internal(rule)

        for rule in applicable:
            evaluated.append(rule.id)
            try:
                result = rule.evaluate(ctx)
            except Exception:
                _internal(rule)
                continue

            for message in result.errors:
                _add(errors, TransitionError(rule.error_kind, message, rule.id))
            if not result.success and not result.errors:
                _add(errors, TransitionError(rule.error_kind, f"{rule.name} failed.", rule.id))
            for message in result.warnings:
                _add(warnings, message)
            for action in result.actions:
                _add(actions, action)

            if (
                not result.success
                and rule.type == VALIDATION
                and rule.priority >= self.fail_fast_priority
            ):
                stopped_by = rule.id
                break

        return EvaluationOutcome(
            can_proceed=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            actions=tuple(actions),
            evaluated=tuple(evaluated),
            stopped_by=stopped_by,
        )

    def recheck(
        self,
        state: ApplicationState,
        actor: str,
        target_status: str,
        aux_data: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> EvaluationOutcome:
        """
        Authority and duplicate checks only, run against the latest persisted
        state right before a commit.
        """
        return self.evaluate(state, actor, target_status, aux_data, now, only=RECHECK_RULE_IDS)

    def summary(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": rule.id,
                "name": rule.name,
                "type": rule.type,
                "priority": rule.priority,
                "enabled": self.is_enabled(rule),
                "description": rule.description,
            }
            for rule in self.rules
        ]
