from __future__ import annotations

import uuid
from typing import Any, Optional

from rest_framework import permissions
from rest_framework.exceptions import NotFound, ValidationError

from core.exceptions import AccessDenied

from .models import Client, User


def is_super_admin(user) -> bool:
    return bool(getattr(user, "is_authenticated", False) and getattr(user, "is_super_admin", False))


class IsTenantUser(permissions.BasePermission):
    """Require authentication to a specific client unless super admin."""

    message = "Authentication with a client-scoped account is required."

    def has_permission(self, request, view):  # noqa: D401 - DRF API
        """Allow authenticated users that belong to a client."""

        user = request.user
        if not user or not user.is_authenticated:
            return False
        if is_super_admin(user):
            return True
        return getattr(user, "client_id", None) is not None

    def has_object_permission(self, request, view, obj):  # noqa: D401 - DRF API
        """Restrict object access to the user's client."""

        user = request.user
        if is_super_admin(user):
            return True

        client_id = getattr(user, "client_id", None)
        if client_id is None:
            return False

        obj_client_id = getattr(obj, "client_id", None)
        if obj_client_id is None and isinstance(obj, Client):
            obj_client_id = obj.id
        if obj_client_id is None:
            return False
        return str(obj_client_id) == str(client_id)


class IsClientAdmin(IsTenantUser):
    """Client admins of the owning client, or super admins."""

    message = "You must be a client admin to perform this action."

    def has_permission(self, request, view):  # noqa: D401 - DRF API
        if not super().has_permission(request, view):
            return False
        return request.user.can_manage_client


class IsClientAdminOrReadOnly(IsTenantUser):
    """Read access for every client user; writes for admins only."""

    message = "Customer service accounts cannot modify this resource."

    def has_permission(self, request, view):  # noqa: D401 - DRF API
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.can_manage_client


class IsSuperAdmin(permissions.BasePermission):
    message = "Only super admins may perform this action."

    def has_permission(self, request, view):  # noqa: D401 - DRF API
        return is_super_admin(request.user)


def _parse_uuid(value: Any) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def resolve_target_client(
    user: User,
    client_id: Any = None,
    *,
    require_explicit_for_super_admin: bool = False,
) -> Optional[Client]:
    """Return the client a request acts on.

    Regular users always act on their own client and get ``AccessDenied``
    when naming another. Super admins name the client explicitly; when
    ``require_explicit_for_super_admin`` is set a missing id is a validation
    error, otherwise ``None`` means "every client".
    """

    if client_id in ("", None):
        client_id = None

    if is_super_admin(user):
        if client_id is None:
            if require_explicit_for_super_admin:
                raise ValidationError({"client_id": ["This field is required for super admins."]})
            return None
        parsed = _parse_uuid(client_id)
        client = Client.objects.filter(pk=parsed).first() if parsed else None
        if client is None:
            raise NotFound("Client not found.")
        return client

    own_client_id = getattr(user, "client_id", None)
    if own_client_id is None:
        raise AccessDenied()
    if client_id is not None and str(client_id) != str(own_client_id):
        raise AccessDenied()
    return user.client
