"""Row-level security (RLS) context helpers.

The agent binds the resolved workspace for the duration of a turn so every
database session opened during that turn is scoped to the tenant.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar

_org_id_var: ContextVar[str | None] = ContextVar("rls_org_id", default=None)
_internal_var: ContextVar[bool] = ContextVar("rls_internal", default=False)


def get_rls_context() -> str | None:
    """Get the current organization id for RLS policies."""
    return _org_id_var.get()


def is_rls_internal() -> bool:
    """Whether the current context is internal (bypasses org filter)."""
    return _internal_var.get()


@contextmanager
def rls_context(organization_id: str | None, is_internal: bool = False):
    """Context manager to set and restore RLS context."""
    token_org = _org_id_var.set(organization_id)
    token_internal = _internal_var.set(is_internal)
    try:
        yield
    finally:
        _org_id_var.reset(token_org)
        _internal_var.reset(token_internal)
