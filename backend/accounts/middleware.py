from __future__ import annotations

from typing import Optional

from django.utils.deprecation import MiddlewareMixin

from .tenant_context import clear_current_tenant, set_current_tenant_id


class TenantMiddleware(MiddlewareMixin):
    """Expose the session user's client to log records for the request.

    Bearer-token requests are authenticated later by DRF; their views scope
    querysets explicitly by ``request.user.client_id``.
    """

    def process_request(self, request):
        set_current_tenant_id(self._resolve_tenant_id(request))

    def process_response(self, request, response):
        clear_current_tenant()
        return response

    def _resolve_tenant_id(self, request) -> Optional[str]:
        user = getattr(request, "user", None)
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        if getattr(user, "is_super_admin", False):
            return None
        client_id = getattr(user, "client_id", None)
        return str(client_id) if client_id else None
