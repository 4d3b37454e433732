"""Structured logging helpers and instrumentation for the core service."""

from __future__ import annotations

import contextvars
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from celery import Task
from django.conf import settings

from accounts.tenant_context import get_current_tenant_id

CORRELATION_HEADER = "HTTP_X_CORRELATION_ID"
CORRELATION_RESPONSE_HEADER = "X-Correlation-ID"

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_task_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "task_id", default=None
)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(value: Optional[str]) -> contextvars.Token:
    return _correlation_id.set(value)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id.reset(token)


class ContextFilter(logging.Filter):
    """Attach request/task context to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - logging API
        if not hasattr(record, "component"):
            record.component = record.name
        if getattr(record, "tenant_id", None) is None:
            record.tenant_id = get_current_tenant_id()
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        if getattr(record, "task_id", None) is None:
            record.task_id = _task_id.get()
        return True


class JsonFormatter(logging.Formatter):
    """Render log records as structured JSON."""

    RESERVED_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "module",
            "msecs",
            "message",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "taskName",
            "thread",
            "threadName",
        }
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - interface contract
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "component": record.name,
            "tenant_id": None,
            "correlation_id": None,
            "task_id": None,
        }

        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class RequestCorrelationMiddleware:
    """Propagate ``X-Correlation-ID`` through the request and echo it back."""

    def __init__(self, get_response):  # noqa: ANN001 - middleware signature
        self.get_response = get_response

    def __call__(self, request):  # noqa: ANN001 - middleware signature
        correlation_id = (request.META.get(CORRELATION_HEADER) or "").strip() or str(uuid.uuid4())
        request.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        try:
            response = self.get_response(request)
        finally:
            reset_correlation_id(token)
        response[CORRELATION_RESPONSE_HEADER] = correlation_id
        return response


class APILoggingMiddleware:
    """Middleware that emits structured access logs for API requests."""

    def __init__(self, get_response):  # noqa: ANN001 - middleware signature
        self.get_response = get_response
        self.logger = logging.getLogger("api.access")
        prefixes = getattr(settings, "API_LOGGING_PREFIXES", ("/api/",))
        self._api_prefixes: tuple[str, ...] = tuple(prefixes)

    def __call__(self, request):  # noqa: ANN001 - middleware signature
        if not request.path.startswith(self._api_prefixes):
            return self.get_response(request)

        start = time.perf_counter()
        response = self.get_response(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        resolver_match = getattr(request, "resolver_match", None)
        view_name = resolver_match.view_name if resolver_match else None
        user = getattr(request, "user", None)
        authenticated = getattr(user, "is_authenticated", False)
        client_id = getattr(user, "client_id", None) if authenticated else None
        self.logger.info(
            "request.completed",
            extra={
                "http": {
                    "method": request.method,
                    "path": request.get_full_path(),
                    "status_code": response.status_code,
                },
                "duration_ms": duration_ms,
                "view": view_name,
                "user_id": str(user.id) if authenticated else None,
                "role": getattr(user, "role", None) if authenticated else None,
                "tenant_id": str(client_id) if client_id else None,
                "correlation_id": getattr(request, "correlation_id", None),
                "remote_addr": request.META.get("HTTP_X_FORWARDED_FOR")
                or request.META.get("REMOTE_ADDR"),
            },
        )
        return response


class InstrumentedTask(Task):
    """Celery task base class that emits structured lifecycle logs and metrics."""

    abstract = True
    logger = logging.getLogger("celery.tasks")

    def before_start(self, task_id, args, kwargs):  # noqa: ANN001 - celery hook
        self.request._start_time = time.perf_counter()
        _task_id.set(task_id)
        self.logger.info(
            "task.started",
            extra=self._task_extra(task_id, args, kwargs),
        )
        super().before_start(task_id, args, kwargs)

    def after_return(self, status, retval, task_id, args, kwargs, einfo):  # noqa: ANN001 - celery hook
        from core.metrics import observe_task

        start_time = getattr(self.request, "_start_time", None)
        duration = (time.perf_counter() - start_time) if start_time else None
        extra = self._task_extra(task_id, args, kwargs)
        extra.update(
            {
                "status": status,
                "duration_ms": round(duration * 1000, 2) if duration is not None else None,
            }
        )
        if einfo:
            extra["exception"] = str(einfo.exception)
            self.logger.error("task.failed", extra=extra)
        else:
            self.logger.info("task.succeeded", extra=extra)
        observe_task(self.name, status, duration)

        _task_id.set(None)
        super().after_return(status, retval, task_id, args, kwargs, einfo)

    def _task_extra(self, task_id, args, kwargs) -> Dict[str, Any]:  # noqa: ANN001
        return {
            "task": {
                "name": self.name,
                "id": task_id,
                "args_count": len(args or ()),
                "kwargs_keys": sorted((kwargs or {}).keys()),
            }
        }
