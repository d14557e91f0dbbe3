"""
Data storage layer.

checks:    append-only log of per-service observations
incidents: one row per continuous down period, mutated on recovery

All storage uses DuckDB.
"""

from functools import lru_cache

from statuswatch.config import get_settings

from .base import StorageBackend, StorageError
from .duckdb_storage import DuckDBStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "StorageBackend",
    "StorageError",
    "DuckDBStorage",
    "get_storage",
]
