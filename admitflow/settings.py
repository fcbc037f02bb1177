"""
Django settings for the admitflow project.

Student admissions workflow service: five-stage approval pipeline with
PostgreSQL, JWT, DRF, audit trail and Celery background tasks.
"""

from pathlib import Path
from decouple import Csv, config
from datetime import timedelta
from celery.schedules import crontab
import os


# ===============================================================
# Base paths
# ===============================================================
BASE_DIR = Path(__file__).resolve().parent.parent


# ===============================================================
# Security
# ===============================================================
SECRET_KEY = config("SECRET_KEY", default="insecure-key-change-me")
DEBUG = config("DEBUG", default=False, cast=bool)

# Wildcard entries ("*.example.org") are accepted as Django subdomain patterns.
ALLOWED_HOSTS = [
    "." + h[2:] if h.startswith("*.") else h
    for h in config("ALLOWED_HOSTS", default="127.0.0.1,localhost,testserver", cast=Csv())
]

if "testserver" not in ALLOWED_HOSTS:
    ALLOWED_HOSTS.append("testserver")


# ---------------------------------------------------------------
# Reverse proxy
# ---------------------------------------------------------------
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = config("SESSION_COOKIE_SECURE", default=True, cast=bool)
CSRF_COOKIE_SECURE = config("CSRF_COOKIE_SECURE", default=True, cast=bool)

CSRF_TRUSTED_ORIGINS = config("CSRF_TRUSTED_ORIGINS", default="", cast=Csv())


# ===============================================================
# Installed apps
# ===============================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt.token_blacklist",
    "django_filters",
    "drf_spectacular",
    "drf_spectacular_sidecar",
    "admissions_core.apps.AdmissionsCoreConfig",
    "django_celery_results",
    "django_celery_beat",
]


# ===============================================================
# Middleware
# ===============================================================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "admissions_core.middleware.CurrentUserMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "admitflow.urls"
WSGI_APPLICATION = "admitflow.wsgi.application"


# ===============================================================
# Templates
# ===============================================================
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]


# ===============================================================
# Database
# ===============================================================
DJANGO_ENV = os.environ.get("DJANGO_ENV", "").lower()

if DJANGO_ENV in {"production", "staging"}:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DB_NAME", default="admitflow_db"),
            "USER": config("DB_USER", default="admitflow_user"),
            "PASSWORD": config("DB_PASSWORD", default=""),
            "HOST": config("DB_HOST", default="127.0.0.1"),
            "PORT": config("DB_PORT", default="5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }


# ===============================================================
# Password validation
# ===============================================================
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]


# ===============================================================
# Internationalization
# ===============================================================
LANGUAGE_CODE = "en-us"
TIME_ZONE = config("TIME_ZONE", default="Asia/Kuala_Lumpur")
USE_I18N = True
USE_TZ = True


# ===============================================================
# Static
# ===============================================================
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# ===============================================================
# CORS
# ===============================================================
CORS_ALLOW_ALL_ORIGINS = config("CORS_ALLOW_ALL_ORIGINS", default=True, cast=bool)


# ===============================================================
# Django REST Framework
# ===============================================================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "admitflow.pagination.DefaultPagination",
    "PAGE_SIZE": 50,
}


# ===============================================================
# OpenAPI / Swagger
# ===============================================================
SPECTACULAR_SETTINGS = {
    "TITLE": "AdmitFlow API",
    "DESCRIPTION": "Student admissions workflow: five-stage approval pipeline",
    "VERSION": "0.1.0",
    "SWAGGER_UI_DIST": "SIDECAR",
    "SWAGGER_UI_FAVICON_HREF": "SIDECAR",
    "REDOC_DIST": "SIDECAR",
}


# ===============================================================
# JWT
# ===============================================================
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
    "AUTH_HEADER_TYPES": ("Bearer",),
}


# ===============================================================
# Email / workflow notifications
# ===============================================================
EMAIL_BACKEND = config("EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend")
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="admitflow@localhost")

WORKFLOW_EMAIL_NOTIFICATIONS = config("WORKFLOW_EMAIL_NOTIFICATIONS", default=False, cast=bool)

# audience -> recipient list; "*" is the fallback for audiences not listed
WORKFLOW_NOTIFY_EMAILS = {
    "*": config("WORKFLOW_NOTIFY_EMAILS", default="", cast=Csv()),
}


# ===============================================================
# Admissions workflow
# ===============================================================
ADMISSIONS_STRICT_REGISTRY = config("ADMISSIONS_STRICT_REGISTRY", default=False, cast=bool)
ADMISSIONS_DISABLED_RULES = config("ADMISSIONS_DISABLED_RULES", default="", cast=Csv())
ADMISSIONS_DISABLED_AUTOMATION_RULES = config("ADMISSIONS_DISABLED_AUTOMATION_RULES", default="", cast=Csv())
ADMISSIONS_AUTOMATION_MAX_STEPS = config("ADMISSIONS_AUTOMATION_MAX_STEPS", default=10, cast=int)
ADMISSIONS_AUTOMATION_ON_TRANSITION = config("ADMISSIONS_AUTOMATION_ON_TRANSITION", default=False, cast=bool)
ADMISSIONS_REMINDER_AFTER_DAYS = config("ADMISSIONS_REMINDER_AFTER_DAYS", default=3, cast=int)

ADMISSIONS_COMMISSION_CALCULATOR = config(
    "ADMISSIONS_COMMISSION_CALCULATOR",
    default="admissions_core.services.commission.TierRateCommissionCalculator",
)
ADMISSIONS_COMMISSION_TIER_RATES = {
    "bronze": "0.10",
    "silver": "0.125",
    "gold": "0.15",
    "platinum": "0.18",
}
ADMISSIONS_COMMISSION_PROCESSING_FEE = config("ADMISSIONS_COMMISSION_PROCESSING_FEE", default="0.02")


# ===============================================================
# Logging
# ===============================================================
ADMISSIONS_LOG_LEVEL = config("ADMISSIONS_LOG_LEVEL", default="INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "admissions_core": {
            "handlers": ["console"],
            "level": ADMISSIONS_LOG_LEVEL,
            "propagate": True,
        },
    },
}


# ===============================================================
# Celery configuration
# ===============================================================
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = "django-db"

CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"

CELERY_TIMEZONE = TIME_ZONE

# Outside production, tasks run inline so no broker is needed.
CELERY_TASK_ALWAYS_EAGER = config(
    "CELERY_TASK_ALWAYS_EAGER",
    default=DJANGO_ENV not in {"production", "staging"},
    cast=bool,
)
CELERY_TASK_EAGER_PROPAGATES = True

CELERY_BEAT_SCHEDULE = {
    "scan-application-sla-every-10-mins": {
        "task": "admissions_core.tasks.scan_application_sla",
        "schedule": crontab(minute="*/10"),
        "args": (),
    },
    "run-scheduled-automation-hourly": {
        "task": "admissions_core.tasks.run_scheduled_automation",
        "schedule": crontab(minute=0),
        "args": (),
    },
}
