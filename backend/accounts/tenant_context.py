from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional

_current_tenant_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "current_tenant_id", default=None
)


def set_current_tenant_id(tenant_id: Optional[str]) -> None:
    _current_tenant_id.set(tenant_id)


def get_current_tenant_id() -> Optional[str]:
    return _current_tenant_id.get()


def clear_current_tenant() -> None:
    _current_tenant_id.set(None)


@contextmanager
def tenant_context(tenant_id: Optional[str]) -> Iterator[None]:
    """Tag log records emitted inside the block with ``tenant_id``."""

    token = _current_tenant_id.set(tenant_id)
    try:
        yield
    finally:
        _current_tenant_id.reset(token)
