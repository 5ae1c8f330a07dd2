"""Scope middleware: resolves the (tenant, branch) scope from the URL.

Flow:
  1. Match ``/api/t/{tenant_id}/b/{branch_id}/...``
  2. Validate both identifiers; ``-`` as branch means tenant-level
  3. Set the ContextVar so downstream code (cached, get_scope) can read it
  4. After the response, clear the ContextVar

Routes outside that prefix (health, docs) run without a scope.
"""

import re

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from gestock.middleware.exceptions import error_body
from gestock.scope import (
    Scope,
    clear_scope_context,
    set_current_scope,
    validate_scope_id,
)

SCOPED_PREFIX = "/api/t/{tenant_id}/b/{branch_id}"

_SCOPED_PATH_RE = re.compile(r"^/api/t/(?P<tenant>[^/]+)/b/(?P<branch>[^/]+)(?:/|$)")


def scope_from_path(path: str) -> Scope | None:
    """Return the scope named by ``path``, or None for unscoped routes.

    Raises ValueError for malformed identifiers.
    """
    match = _SCOPED_PATH_RE.match(path)
    if match is None:
        return None
    tenant = validate_scope_id(match.group("tenant"))
    branch = match.group("branch")
    return Scope(tenant, None if branch == "-" else validate_scope_id(branch))


class ScopeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            scope = scope_from_path(request.url.path)
        except ValueError as exc:
            clear_scope_context()
            return JSONResponse(
                status_code=400,
                content=error_body("INVALID_SCOPE", str(exc)),
            )

        if scope is not None:
            set_current_scope(scope)
        else:
            clear_scope_context()

        try:
            response = await call_next(request)
        finally:
            clear_scope_context()

        return response
