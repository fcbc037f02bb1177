# admissions_core/tests/conftest.py

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from admissions_core.models import ActorMembership, Application
from admissions_core.signals import set_current_user
from admissions_core.workflows.state import ApplicationState

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_current_user():
    set_current_user(None)
    yield
    set_current_user(None)


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


# ===============================================================
# Pure-core helpers
# ===============================================================

@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_state() -> Callable[..., ApplicationState]:
    def _factory(stage: int, status: str, **extra: Any) -> ApplicationState:
        kwargs = {
            "id": 42,
            "stage": stage,
            "status": status,
            "program": "BSc Computer Science",
            "university": "University of Malaya",
            "intake": "2026-09",
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
            "stage_entered_at": FIXED_NOW,
            "status_entered_at": FIXED_NOW,
        }
        kwargs.update(extra)
        return ApplicationState(**kwargs)

    return _factory


# ===============================================================
# Users and memberships
# ===============================================================

def _user(username: str, **defaults):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username=username, defaults=defaults)
    user.set_password("pass123")
    user.save(update_fields=["password"])
    return user


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


@pytest.fixture
def user_admin(db):
    user = _user("admin", is_staff=True)
    ActorMembership.objects.get_or_create(user=user, actor="ADMIN")
    return user


@pytest.fixture
def user_partner(db):
    user = _user("partner")
    ActorMembership.objects.get_or_create(user=user, actor="PARTNER", defaults={"partner_code": "P-001"})
    return user


@pytest.fixture
def user_other_partner(db):
    user = _user("other-partner")
    ActorMembership.objects.get_or_create(user=user, actor="PARTNER", defaults={"partner_code": "P-999"})
    return user


@pytest.fixture
def user_university(db):
    user = _user("university")
    ActorMembership.objects.get_or_create(user=user, actor="UNIVERSITY")
    return user


@pytest.fixture
def user_immigration(db):
    user = _user("immigration")
    ActorMembership.objects.get_or_create(user=user, actor="IMMIGRATION")
    return user


@pytest.fixture
def user_outsider(db):
    return _user("outsider")


# ===============================================================
# Applications
# ===============================================================

@pytest.fixture
def application_factory(db) -> Callable[..., Application]:
    """
    Factory for applications placed directly at a (stage, status).
    """

    def _factory(*, stage: int = 1, status: str = "new_application", **extra: Any) -> Application:
        kwargs = {
            "student_name": _rand("Student"),
            "partner_code": "P-001",
            "partner_tier": "gold",
            "program": "BSc Computer Science",
            "university": "University of Malaya",
            "intake": "2026-09",
            "tuition_fee": Decimal("10000.00"),
            "stage": stage,
            "status": status,
        }
        kwargs.update(extra)
        return Application.objects.create(**kwargs)

    return _factory
