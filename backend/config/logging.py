"""Logging configuration helpers for the backend service."""

from __future__ import annotations

import logging
from typing import Any

DEFAULT_LOG_LEVEL = "INFO"

# Loggers that should not bubble up to the root handler a second time.
_ISOLATED_LOGGERS = (
    "django.request",
    "api.access",
    "celery.tasks",
    "spend.ingest",
    "campaigns.resolver",
)


def _normalize_level(level: str) -> str:
    """Return a valid logging level name, defaulting to ``INFO`` when unknown."""

    if not level:
        return DEFAULT_LOG_LEVEL

    normalized = level.upper()
    level_names = logging.getLevelNamesMapping()
    if normalized in level_names:
        return normalized
    return DEFAULT_LOG_LEVEL


def build_logging_config(level: str = DEFAULT_LOG_LEVEL) -> dict[str, Any]:
    """Produce a ``dictConfig`` payload that emits one JSON object per line to stdout."""

    log_level = _normalize_level(level)

    loggers: dict[str, Any] = {
        "": {"handlers": ["console"], "level": log_level},
        "django": {"handlers": ["console"], "level": log_level, "propagate": False},
    }
    for name in _ISOLATED_LOGGERS:
        loggers[name] = {
            "handlers": ["console"],
            "level": log_level,
            "propagate": False,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "context": {
                "()": "core.observability.ContextFilter",
            }
        },
        "formatters": {
            "json": {
                "()": "core.observability.JsonFormatter",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["context"],
            }
        },
        "loggers": loggers,
    }
