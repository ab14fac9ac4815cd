"""
SQLite Entity Store

The vault's concrete store. Every public operation runs inside exactly one
backend transaction:

- save_item:  single-table readwrite
- save_items: multi-table readwrite (used for parent + child commits)
- load_all:   all-tables readonly
- clear_all:  all-tables readwrite

The store holds no cache. Callers that keep an in-memory view refresh it
only after these coroutines return.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aura.config import get_settings
from aura.models.records import (
    DEFAULT_CATEGORIES,
    RECORD_TYPES,
    Table,
    VaultRecord,
    VaultSnapshot,
)
from aura.services.storage.interface import (
    EntityStoreInterface,
    StorableItem,
    StorageInitError,
    StorageReadError,
    StorageWriteError,
    TransactionMode,
)
from aura.services.storage.kv_backend import (
    BackendError,
    KeyValueBackend,
    SchemaEditor,
    Transaction,
    VersionError,
)


logger = structlog.get_logger(__name__)

# Bump together with a new entry in OBJECT_STORES.
SCHEMA_VERSION = 6

# Object store name -> key path (None: the item is its own key)
OBJECT_STORES: dict[Table, Optional[str]] = {
    Table.VOICE_ENTRIES: "id",
    Table.EXPENSES: "id",
    Table.TASKS: "id",
    Table.MOODS: "id",
    Table.NOTES: "id",
    Table.CATEGORIES: None,
}

ALL_TABLES: tuple[Table, ...] = tuple(OBJECT_STORES)


def upgrade_schema(schema: SchemaEditor, old_version: int, new_version: int) -> None:
    """Create whichever object stores the database does not have yet."""
    for table, key_path in OBJECT_STORES.items():
        if table.value not in schema.object_store_names:
            schema.create_object_store(table.value, key_path=key_path)
    logger.info(
        "schema_upgraded",
        from_version=old_version,
        to_version=new_version,
    )


def to_payload(table: Table, item: StorableItem):
    """
    Convert an item to the JSON value stored for `table`.

    Records are validated against the table's model so that nothing
    unparseable ever reaches disk.
    """
    table = Table(table)
    if table is Table.CATEGORIES:
        if not isinstance(item, str) or not item.strip():
            raise ValueError("A category must be a non-empty string")
        return item.strip()

    model_cls = RECORD_TYPES[table]
    if isinstance(item, BaseModel):
        if not isinstance(item, model_cls):
            raise TypeError(
                f"Cannot store {type(item).__name__} in '{table.value}' "
                f"(expected {model_cls.__name__})"
            )
        record = item
    else:
        record = model_cls.model_validate(item)
    return record.to_wire()


def _newest_first(model_cls: type[VaultRecord], rows: list) -> list:
    records = [model_cls.model_validate(row) for row in rows]
    # sort() is stable: rows without createdAt keep insertion order
    records.sort(key=lambda r: getattr(r, "created_at", 0) or 0, reverse=True)
    return records


class SQLiteEntityStore(EntityStoreInterface):
    """
    SQLite implementation of the entity store.

    One row per record; records are stored as JSON in the same camelCase
    shape the backup file uses.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        busy_timeout: Optional[float] = None,
    ):
        settings = get_settings().store
        self._db_path = db_path or settings.db_path
        self._busy_timeout = (
            busy_timeout if busy_timeout is not None else settings.busy_timeout_seconds
        )
        self._backend: Optional[KeyValueBackend] = None
        self._init_task: Optional[asyncio.Task] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(sqlite3.OperationalError),
        reraise=True,
    )
    def _open_backend(self) -> KeyValueBackend:
        """Open the database, retrying transient lock errors."""
        return KeyValueBackend.open(
            self._db_path,
            SCHEMA_VERSION,
            upgrade_schema,
            timeout=self._busy_timeout,
        )

    async def _initialize(self) -> None:
        try:
            backend = self._open_backend()
        except VersionError as e:
            raise StorageInitError(f"Vault database is blocked: {e}") from e
        except (sqlite3.Error, BackendError, OSError) as e:
            raise StorageInitError(
                f"Failed to open vault database at {self._db_path}: {e}"
            ) from e
        self._backend = backend
        logger.info(
            "storage_initialized",
            db_path=self._db_path,
            schema_version=SCHEMA_VERSION,
        )

    async def init(self) -> None:
        """Open the backend once; concurrent callers await the same attempt."""
        if self._backend is not None:
            return
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._initialize())
        task = self._init_task
        try:
            await task
        except StorageInitError:
            # Allow a later call to try again
            if self._init_task is task:
                self._init_task = None
            raise

    async def close(self) -> None:
        if self._backend is not None:
            self._backend.close()
            self._backend = None
        self._init_task = None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def save_item(self, table: Table, item: StorableItem) -> None:
        """Upsert one item inside a single-table transaction."""
        table = Table(table)
        payload = to_payload(table, item)
        await self.init()
        try:
            with self._backend.transaction([table.value], TransactionMode.READWRITE) as tx:
                key = tx.object_store(table.value).put(payload)
        except (sqlite3.Error, BackendError) as e:
            raise StorageWriteError(f"Failed to save item to {table.value}: {e}") from e
        logger.debug("item_saved", table=table.value, key=key)

    async def save_items(self, writes: Iterable[tuple[Table, StorableItem]]) -> None:
        """Upsert several items across tables, all or nothing."""
        prepared = [(Table(table), to_payload(table, item)) for table, item in writes]
        if not prepared:
            return
        tables = list(dict.fromkeys(table.value for table, _ in prepared))
        await self.init()
        try:
            with self._backend.transaction(tables, TransactionMode.READWRITE) as tx:
                for table, payload in prepared:
                    tx.object_store(table.value).put(payload)
        except (sqlite3.Error, BackendError) as e:
            raise StorageWriteError(
                f"Failed to save {len(prepared)} item(s) to {', '.join(tables)}: {e}"
            ) from e
        logger.debug("items_saved", tables=tables, count=len(prepared))

    async def clear_all(self) -> None:
        """Truncate every table in one transaction."""
        await self.init()
        try:
            with self._backend.transaction(
                [t.value for t in ALL_TABLES], TransactionMode.READWRITE
            ) as tx:
                for table in ALL_TABLES:
                    tx.object_store(table.value).clear()
        except (sqlite3.Error, BackendError) as e:
            raise StorageWriteError(f"Failed to clear vault: {e}") from e
        logger.info("storage_cleared", db_path=self._db_path)

    @asynccontextmanager
    async def transaction(
        self,
        tables: Iterable[Table],
        mode: TransactionMode,
    ) -> AsyncIterator[Transaction]:
        names = [Table(t).value for t in tables]
        await self.init()
        try:
            with self._backend.transaction(names, mode) as tx:
                yield tx
        except (sqlite3.Error, BackendError) as e:
            raise StorageWriteError(f"Transaction over {', '.join(names)} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load_all(self) -> VaultSnapshot:
        """Read every table in one transaction, newest first."""
        await self.init()
        try:
            with self._backend.transaction(
                [t.value for t in ALL_TABLES], TransactionMode.READONLY
            ) as tx:
                raw = {table: tx.object_store(table.value).get_all() for table in ALL_TABLES}

            snapshot = VaultSnapshot(
                voice_entries=_newest_first(RECORD_TYPES[Table.VOICE_ENTRIES], raw[Table.VOICE_ENTRIES]),
                expenses=_newest_first(RECORD_TYPES[Table.EXPENSES], raw[Table.EXPENSES]),
                tasks=_newest_first(RECORD_TYPES[Table.TASKS], raw[Table.TASKS]),
                moods=_newest_first(RECORD_TYPES[Table.MOODS], raw[Table.MOODS]),
                notes=_newest_first(RECORD_TYPES[Table.NOTES], raw[Table.NOTES]),
                categories=raw[Table.CATEGORIES] or list(DEFAULT_CATEGORIES),
            )
        except (sqlite3.Error, BackendError, ValidationError) as e:
            raise StorageReadError(f"Failed to load vault: {e}") from e

        logger.debug("state_loaded", **snapshot.counts())
        return snapshot

    async def load_table(self, table: Table) -> list:
        """Read one table exactly as stored."""
        table = Table(table)
        await self.init()
        try:
            with self._backend.transaction([table.value], TransactionMode.READONLY) as tx:
                rows = tx.object_store(table.value).get_all()
            if table is Table.CATEGORIES:
                return rows
            return _newest_first(RECORD_TYPES[table], rows)
        except (sqlite3.Error, BackendError, ValidationError) as e:
            raise StorageReadError(f"Failed to load {table.value}: {e}") from e
