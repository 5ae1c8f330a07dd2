"""FastAPI dependencies shared by the scoped routers.

Dependencies:
  get_store           → the ScopeStore snapshot operations run against
  get_scope           → the (tenant, branch) scope resolved by ScopeMiddleware
  get_provider_cache  → the process-wide ProviderCache
"""

from gestock.scope import Scope, get_current_scope
from gestock.services.provider_cache import ProviderCache, provider_cache
from gestock.store import ScopeStore
from gestock.store.sql import SqlScopeStore

_store: ScopeStore | None = None


def get_store() -> ScopeStore:
    global _store
    if _store is None:
        _store = SqlScopeStore()
    return _store


def get_scope() -> Scope:
    """Current request's scope; raises 400 on unscoped routes."""
    return get_current_scope()


def get_provider_cache() -> ProviderCache:
    return provider_cache
