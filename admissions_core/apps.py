# admissions_core/apps.py

import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class AdmissionsCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "admissions_core"
    verbose_name = "Admissions"

    def ready(self):
        from . import signals  # noqa
        from .checks import registry as registry_checks  # noqa
        from .workflows.errors import ConfigurationError
        from .workflows.registry import get_registry

        # Build the registry once at startup so a broken table is caught early.
        try:
            get_registry()
        except ConfigurationError as exc:
            if settings.DEBUG or getattr(settings, "ADMISSIONS_STRICT_REGISTRY", False):
                raise ImproperlyConfigured(str(exc)) from exc
            logger.error("Status registry is invalid: %s", exc)
