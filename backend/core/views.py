from __future__ import annotations

from typing import Any, Dict

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import HttpResponse, JsonResponse

from core.metrics import render_metrics


def health(request):
    return JsonResponse({"status": "ok"})


def health_version(request):
    return JsonResponse({"version": settings.APP_VERSION, "api_version": settings.API_VERSION})


def database_health(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        return _json_error(
            code="database_unavailable",
            message="The database is not reachable.",
            status=503,
            exception_class=exc.__class__.__name__,
        )
    return JsonResponse({"status": "ok", "component": "database", "vendor": connection.vendor})


def timezone_view(request):
    return JsonResponse({"timezone": settings.TIME_ZONE})


def not_found(request, exception):  # noqa: ANN001 - Django signature
    return _json_error(
        code="not_found",
        message="The requested resource was not found.",
        status=404,
        path=request.path,
    )


def server_error(request):  # noqa: ANN001 - Django signature
    return _json_error(
        code="server_error",
        message="An unexpected error occurred. Please try again later.",
        status=500,
        path=request.path,
    )


def prometheus_metrics(request):
    payload, content_type = render_metrics()
    return HttpResponse(payload, content_type=content_type)


def _json_error(*, code: str, message: str, status: int, **details: Any) -> JsonResponse:
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        payload["error"].update(details)
    return JsonResponse(payload, status=status)
