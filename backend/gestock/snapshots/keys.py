"""Scope-qualified keys in the app_settings table.

A setting key is a root optionally followed by the scope it belongs to:
``<root>:<tenant>[:<branch>]``.  Keys are globally unique, so a row moved
to another scope must change its key as well.
"""

from gestock.config import settings
from gestock.scope import Scope


def qualify(root: str, scope: Scope) -> str:
    if scope.branch_id:
        return f"{root}:{scope.tenant_id}:{scope.branch_id}"
    return f"{root}:{scope.tenant_id}"


def sales_key_for_scope(scope: Scope) -> str:
    """Pointer to the active sales spreadsheet for a scope."""
    return qualify(settings.sales_key_root, scope)


def setting_root(key: str, origin: Scope | None = None) -> str:
    """Strip the scope qualification from ``key``.

    The sales pointer is recognised by its root alone; any other key loses
    a ``:<tenant>[:<branch>]`` tail only when it names ``origin``.
    """
    root = settings.sales_key_root
    if key == root or key.startswith(f"{root}:"):
        return root
    if origin is not None:
        suffix = f":{origin.tenant_id}"
        if origin.branch_id:
            suffix += f":{origin.branch_id}"
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)]
    return key


def setting_key_for_scope(key: str, origin: Scope | None, destination: Scope) -> str:
    """``key`` as owned by ``destination`` instead of ``origin``."""
    return qualify(setting_root(key, origin), destination)


def backup_slot_key(scope: Scope) -> str:
    return f"{settings.backup_key_prefix}:{scope.tenant_id}:{scope.branch_id or '-'}"


def is_backup_key(key: str | None) -> bool:
    return bool(key) and key.startswith(f"{settings.backup_key_prefix}:")
