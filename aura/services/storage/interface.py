"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap SQLite for another embedded key-value engine later
2. Use a throwaway ':memory:' store for testing
3. Keep the capture and import logic decoupled from the backend

The interface mirrors the handful of primitives an embedded key-value
engine offers (open, transaction, put, get-all, clear). We're not
building an ORM.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any, Iterable, Union

from aura.models.records import Table, VaultRecord, VaultSnapshot


class TransactionMode(str, Enum):
    """Backend transaction modes."""
    READONLY = "readonly"
    READWRITE = "readwrite"


# A category row is its own name; every other row is a record model
# (or a dict in the record's wire shape).
StorableItem = Union[VaultRecord, dict[str, Any], str]


class EntityStoreInterface(ABC):
    """
    Abstract interface for the vault's entity store.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def init(self) -> None:
        """
        Open or create the backend at the current schema version.

        Idempotent. Concurrent callers share one in-flight initialization.

        Raises:
            StorageInitError: If the backend is unavailable or blocked
        """
        pass

    @abstractmethod
    async def save_item(self, table: Table, item: StorableItem) -> None:
        """
        Upsert one item by primary key inside a single-table transaction.

        Raises:
            StorageWriteError: If the write fails (nothing is persisted)
        """
        pass

    @abstractmethod
    async def save_items(self, writes: Iterable[tuple[Table, StorableItem]]) -> None:
        """
        Upsert several items, possibly across tables, in one transaction.

        Either every write lands or none does.

        Raises:
            StorageWriteError: If any write fails
        """
        pass

    @abstractmethod
    async def load_all(self) -> VaultSnapshot:
        """
        Read every table inside one read transaction.

        Collections are sorted newest first by createdAt. An empty category
        table is reported as the default category list.

        Raises:
            StorageReadError: If the read fails
        """
        pass

    @abstractmethod
    async def load_table(self, table: Table) -> list:
        """
        Read one table as stored (no default substitution).

        Raises:
            StorageReadError: If the read fails
        """
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """
        Truncate every table inside one writable transaction.

        Raises:
            StorageWriteError: If the clear fails
        """
        pass

    @abstractmethod
    def transaction(
        self,
        tables: Iterable[Table],
        mode: TransactionMode,
    ) -> AbstractAsyncContextManager:
        """
        Open a raw backend transaction over `tables`.

        Commits when the block exits cleanly, rolls back on any exception.
        Backend failures surface as StorageWriteError.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the backend."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageInitError(StorageError):
    """The backend could not be opened (unavailable, corrupt, or newer schema)."""
    pass


class StorageWriteError(StorageError):
    """A write transaction failed and was rolled back."""
    pass


class StorageReadError(StorageError):
    """A read transaction failed or returned rows that do not parse."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass
