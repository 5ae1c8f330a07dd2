from gestock.store.base import (
    Filters,
    MissingTableError,
    Row,
    ScopeStore,
    StoreError,
)

__all__ = ["Filters", "MissingTableError", "Row", "ScopeStore", "StoreError"]
