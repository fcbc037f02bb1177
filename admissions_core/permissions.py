# admissions_core/permissions.py
from __future__ import annotations

from typing import Optional, Set

from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission

from admissions_core.models import ActorMembership, Application
from admissions_core.workflows import ADMIN, PARTNER, SYSTEM, get_registry, normalize_actor


# ------------------------------------------------------------------
# Utilities
# ------------------------------------------------------------------
def user_actors(user, application: Optional[Application] = None) -> Set[str]:
    """
    Workflow actors the user may act as, optionally scoped to one application.

    Superusers act as ADMIN. A PARTNER membership carrying a partner_code
    only counts for applications with that code.
    """
    if not user or not user.is_authenticated:
        return set()
    if user.is_superuser:
        return {ADMIN}

    actors: Set[str] = set()
    for actor, partner_code in ActorMembership.objects.filter(user=user).values_list("actor", "partner_code"):
        actor = normalize_actor(actor)
        if (
            actor == PARTNER
            and partner_code
            and application is not None
            and application.partner_code != partner_code
        ):
            continue
        actors.add(actor)
    actors.discard(SYSTEM)
    return actors


def _requested_actor(request) -> str:
    value = None
    data = getattr(request, "data", None)
    if isinstance(data, dict):
        value = data.get("actor")
    if not value:
        value = getattr(request, "query_params", {}).get("actor")
    if not value:
        value = getattr(request, "headers", {}).get("X-Actor")
    return normalize_actor(value) if value else ""


def resolve_actor(request, application: Optional[Application] = None) -> str:
    """
    Canonical actor resolver used by the workflow views.

    Priority:
      1) explicit actor (body "actor", ?actor=, or X-Actor header)
      2) the actor the application is waiting for, if the user holds it
      3) ADMIN, if held
      4) the only actor the user holds
    """
    requested = _requested_actor(request)
    if requested == SYSTEM:
        raise PermissionDenied("SYSTEM actions cannot be requested through the API.")

    actors = user_actors(request.user, application)
    if not actors:
        raise PermissionDenied("You are not a member of any workflow actor group for this application.")

    if requested:
        if requested not in actors:
            raise PermissionDenied(f"You cannot act as {requested}.")
        return requested

    if application is not None:
        row = get_registry().get(application.stage, application.status)
        if row is not None and row.waiting_for in actors:
            return row.waiting_for

    if ADMIN in actors:
        return ADMIN
    if len(actors) == 1:
        return next(iter(actors))

    raise PermissionDenied("Multiple actor memberships found. Specify ?actor=<ACTOR>.")


def visible_applications(user):
    qs = Application.objects.all()
    if not user or not user.is_authenticated:
        return qs.none()
    if user.is_superuser:
        return qs

    memberships = list(ActorMembership.objects.filter(user=user).values_list("actor", "partner_code"))
    if not memberships:
        return qs.none()

    # Non-partner actors and unscoped partners see everything.
    if any(actor != PARTNER or not code for actor, code in memberships):
        return qs

    codes = {code for _, code in memberships}
    return qs.filter(partner_code__in=codes)


# ------------------------------------------------------------------
# Permission class
# ------------------------------------------------------------------
class IsWorkflowMember(BasePermission):
    """
    Authenticated users holding at least one actor membership (or superusers).
    """

    message = "You are not a member of any workflow actor group."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return ActorMembership.objects.filter(user=user).exists()
