"""Django settings for the ad spend tracker backend."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import environ

from config.logging import build_logging_config

BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env if present.
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    TIME_ZONE=(str, "Asia/Jakarta"),
    API_VERSION=(str, "dev"),
    DJANGO_LOG_LEVEL=(str, "INFO"),
    APP_VERSION=(str, "0.0.0-dev"),
    DEFAULT_CURRENCY=(str, "IDR"),
    SPEND_IMPORT_MAX_SECONDS=(float, 120.0),
    SPEND_IMPORT_INVALID_DATE_POLICY=(str, "skip"),
    SPEND_IMPORT_ASYNC_THRESHOLD=(int, 5000),
    SPEND_IMPORT_MAX_ROWS=(int, 50000),
    IMPORT_MIN_MATCH_RATIO=(float, 0.4),
    IMPORT_MAX_UNKNOWN_COLUMNS=(int, 10),
    CELERY_BROKER_URL=(str, "redis://localhost:6379/0"),
    CELERY_RESULT_BACKEND=(str, "redis://localhost:6379/1"),
)

ENV_FILE = BASE_DIR / ".env"
if ENV_FILE.exists():
    environ.Env.read_env(ENV_FILE)

SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = env.bool("DEBUG", default=False)
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")
API_VERSION = env("API_VERSION")
APP_VERSION = env("APP_VERSION")
DEFAULT_CURRENCY = env("DEFAULT_CURRENCY")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "accounts",
    "campaigns",
    "spend",
    "leads",
    "analytics",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "accounts.middleware.TenantMiddleware",
    "core.observability.RequestCorrelationMiddleware",
    "core.observability.APILoggingMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"

DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    )
}

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = env("TIME_ZONE")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "accounts.User"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "core.exception_handler.api_exception_handler",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "AUTH_HEADER_TYPES": ("Bearer",),
}

LOGGING = build_logging_config(env("DJANGO_LOG_LEVEL"))

CELERY_BROKER_URL = env("CELERY_BROKER_URL")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND")
CELERY_TASK_DEFAULT_QUEUE = "default"
CELERY_TASK_ROUTES = {
    "spend.tasks.run_spend_import": {"queue": "imports"},
}

# Spend import tuning.
SPEND_IMPORT_MAX_SECONDS = env.float("SPEND_IMPORT_MAX_SECONDS")
SPEND_IMPORT_INVALID_DATE_POLICY = env("SPEND_IMPORT_INVALID_DATE_POLICY")
SPEND_IMPORT_ASYNC_THRESHOLD = env.int("SPEND_IMPORT_ASYNC_THRESHOLD")
SPEND_IMPORT_MAX_ROWS = env.int("SPEND_IMPORT_MAX_ROWS")
IMPORT_MIN_MATCH_RATIO = env.float("IMPORT_MIN_MATCH_RATIO")
IMPORT_MAX_UNKNOWN_COLUMNS = env.int("IMPORT_MAX_UNKNOWN_COLUMNS")
