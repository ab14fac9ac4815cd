"""
Storage Services Package

Provides the abstract entity store interface and its SQLite implementation.
The backend is an embedded key-value engine; SQLite is the one we ship.
"""

from aura.services.storage.interface import (
    EntityStoreInterface,
    RecordNotFoundError,
    StorableItem,
    StorageError,
    StorageInitError,
    StorageReadError,
    StorageWriteError,
    TransactionMode,
)
from aura.services.storage.kv_backend import (
    BackendError,
    KeyValueBackend,
    ObjectStore,
    ReadOnlyTransactionError,
    SchemaEditor,
    Transaction,
    UnknownObjectStoreError,
    VersionError,
)
from aura.services.storage.sqlite_store import (
    ALL_TABLES,
    OBJECT_STORES,
    SCHEMA_VERSION,
    SQLiteEntityStore,
    upgrade_schema,
)

__all__ = [
    # Interface
    "EntityStoreInterface",
    "StorableItem",
    "TransactionMode",
    # Exceptions
    "RecordNotFoundError",
    "StorageError",
    "StorageInitError",
    "StorageReadError",
    "StorageWriteError",
    # Key-value backend
    "BackendError",
    "KeyValueBackend",
    "ObjectStore",
    "ReadOnlyTransactionError",
    "SchemaEditor",
    "Transaction",
    "UnknownObjectStoreError",
    "VersionError",
    # SQLite entity store
    "ALL_TABLES",
    "OBJECT_STORES",
    "SCHEMA_VERSION",
    "SQLiteEntityStore",
    "upgrade_schema",
]
