from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from django.contrib.auth import get_user_model
from django.core.serializers.json import DjangoJSONEncoder

from .models import AuditLog, Client

UserModel = get_user_model()


def _normalise_metadata(metadata: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if metadata is None:
        return {}
    # Round-trip so UUIDs, dates and Decimals land in the JSON column as strings.
    return json.loads(json.dumps(dict(metadata), cls=DjangoJSONEncoder))


def log_audit_event(
    *,
    client: Client,
    action: str,
    resource_type: str,
    resource_id: str | int,
    user: Optional[UserModel] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """Persist an audit log entry.

    Parameters mirror the :class:`AuditLog` model fields while taking care of
    coercing the ``resource_id`` to a string and normalising any metadata to a
    JSON serialisable dictionary. Anonymous users are recorded as ``None``.
    """

    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    return AuditLog.objects.create(
        client=client,
        user=user,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        metadata=_normalise_metadata(metadata),
    )
