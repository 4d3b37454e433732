from __future__ import annotations

import uuid

from django.db.models import QuerySet

from accounts.permissions import is_super_admin


class TenantScopedQuerysetMixin:
    """Restrict querysets to the caller's client.

    Super admins see every client unless they narrow the listing with
    ``?client_id=``. Objects outside the scope simply do not exist for the
    caller, so detail lookups answer 404 rather than 403.
    """

    client_filter_param = "client_id"

    def scope_queryset(self, queryset: QuerySet) -> QuerySet:
        user = self.request.user
        if is_super_admin(user):
            client_id = self.request.query_params.get(self.client_filter_param)
            if not client_id:
                return queryset
            try:
                uuid.UUID(str(client_id))
            except ValueError:
                return queryset.none()
            return queryset.filter(client_id=client_id)
        client_id = getattr(user, "client_id", None)
        if client_id is None:
            return queryset.none()
        return queryset.filter(client_id=client_id)
