"""Services package."""

from aura.services.storage import (
    EntityStoreInterface,
    RecordNotFoundError,
    SQLiteEntityStore,
    StorageError,
    StorageInitError,
    StorageReadError,
    StorageWriteError,
)

__all__ = [
    # Storage services
    "EntityStoreInterface",
    "RecordNotFoundError",
    "SQLiteEntityStore",
    "StorageError",
    "StorageInitError",
    "StorageReadError",
    "StorageWriteError",
]
