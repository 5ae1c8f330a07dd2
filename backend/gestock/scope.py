"""Multi-tenancy: (tenant, branch) scope isolation.

Key components:
  - Scope            value object naming one tenant/branch pair
  - _scope_ctx       ContextVar holding the scope for the current request
  - set / get / clear helpers for the ContextVar
  - validate_scope_id()   rejects identifiers that would break slot keys
"""

import re
from contextvars import ContextVar
from dataclasses import dataclass

from fastapi import HTTPException, status


@dataclass(frozen=True)
class Scope:
    """A tenant and, optionally, one of its branches.

    ``branch_id=None`` is a tenant-level scope: its rows carry a NULL
    branch_id.
    """
    tenant_id: str
    branch_id: str | None = None

    def filters(self) -> dict[str, str | None]:
        return {"tenant_id": self.tenant_id, "branch_id": self.branch_id}

    @property
    def label(self) -> str:
        return f"{self.tenant_id}:{self.branch_id or '-'}"

    def __str__(self) -> str:
        return self.label


# ── Request-scoped context ──────────────────────────────────

_scope_ctx: ContextVar[Scope | None] = ContextVar("_scope_ctx", default=None)


def set_current_scope(scope: Scope) -> None:
    _scope_ctx.set(scope)


def get_current_scope() -> Scope:
    """Return the current scope or raise if unset."""
    scope = _scope_ctx.get()
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No scope context: this endpoint requires a tenant/branch",
        )
    return scope


def clear_scope_context() -> None:
    _scope_ctx.set(None)


# ── Validation ──────────────────────────────────────────────

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_scope_id(value: str) -> str:
    """Ensure tenant/branch ids are safe to embed in ``a:b:c`` keys."""
    if not _ID_RE.match(value):
        raise ValueError(f"Invalid scope identifier: {value!r}")
    return value
