import pytest

@pytest.fixture(autouse=True)
def _disable_security_redirects(settings):
    # Prevent SecurityMiddleware from forcing https://testserver/...
    settings.SECURE_SSL_REDIRECT = False

    # Prevent "secure cookie" behavior from interfering with session auth in tests
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0


@pytest.fixture(autouse=True)
def _quiet_workflow_side_effects(settings):
    # Keep tests independent of local .env overrides.
    settings.DEBUG = False
    settings.ADMISSIONS_STRICT_REGISTRY = False
    settings.ADMISSIONS_AUTOMATION_ON_TRANSITION = False
    settings.ADMISSIONS_DISABLED_RULES = []
    settings.WORKFLOW_EMAIL_NOTIFICATIONS = False
    settings.CELERY_TASK_ALWAYS_EAGER = True
