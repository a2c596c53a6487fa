"""
Persistence for processed-review marks and tenant configurations.
"""

from .factory import open_store
from .sqlite_store import SQLiteStore
from .store import ConfigStore, ProcessedStore, Store, StoreError, StoreStats

__all__ = [
    "open_store",
    "SQLiteStore",
    "ConfigStore",
    "ProcessedStore",
    "Store",
    "StoreError",
    "StoreStats",
]
