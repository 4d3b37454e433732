"""DRF exception handler: adds error codes and maps storage failures to 503s."""

from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import SchemaOutOfDate, TransactionFailure

logger = logging.getLogger("core.exceptions")

_MISSING_OBJECT_MARKERS = ("no such table", "no such column", "undefinedtable", "undefinedcolumn")


def is_schema_drift(exc: Exception) -> bool:
    """A query hit a table or column the current schema does not have."""

    if not isinstance(exc, DatabaseError):
        return False
    message = str(exc).strip().lower()
    if any(marker in message for marker in _MISSING_OBJECT_MARKERS):
        return True
    return "does not exist" in message and ("relation" in message or "column" in message)


def _error_response(error: Exception) -> Response:
    return Response(
        {"detail": str(error.detail), "code": error.default_code},
        status=error.status_code,
    )


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    response = exception_handler(exc, context)
    if response is not None:
        data = response.data
        if isinstance(data, dict) and "detail" in data and "code" not in data:
            code = getattr(exc, "default_code", None)
            if code:
                data["code"] = code
        return response

    if not isinstance(exc, DatabaseError):
        return None

    view = context.get("view")
    user = getattr(context.get("request"), "user", None)
    tenant_id = getattr(user, "client_id", None)
    log_extra = {
        "endpoint": view.__class__.__name__ if view is not None else "unknown",
        "tenant_id": str(tenant_id) if tenant_id else None,
        "exception_class": exc.__class__.__name__,
    }

    if is_schema_drift(exc):
        logger.warning("api.schema_out_of_date", extra=log_extra)
        return _error_response(SchemaOutOfDate())

    logger.error("api.transaction_failed", extra=log_extra, exc_info=exc)
    return _error_response(TransactionFailure())
