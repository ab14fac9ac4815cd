"""
Embedded Key-Value Backend on SQLite

DESIGN DECISION: The vault only needs an object-store style engine:
named stores keyed by a primary key, whole-store reads, whole-store
clears, and transactions spanning several stores. SQLite gives us all of
that in one local file with real atomicity.

Layout:
- one SQL table per object store: (id TEXT PRIMARY KEY, created_at, value)
- values are JSON documents
- `_object_stores` remembers each store's key path
- the schema version lives in PRAGMA user_version

TRADEOFFS:
- No secondary indexes (whole-store reads are fine for a personal vault)
- Writers take the database lock for the whole transaction (BEGIN IMMEDIATE)
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Optional

from aura.services.storage.interface import TransactionMode


_STORE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_META_TABLE = "_object_stores"


class BackendError(Exception):
    """Base exception for backend misuse."""
    pass


class VersionError(BackendError):
    """The database was written by a newer schema than this code knows."""
    pass


class UnknownObjectStoreError(BackendError):
    """A transaction referenced a store that does not exist or is out of scope."""
    pass


class ReadOnlyTransactionError(BackendError):
    """A mutation was attempted inside a readonly transaction."""
    pass


def _check_name(name: str) -> str:
    if not _STORE_NAME.match(name):
        raise UnknownObjectStoreError(f"Invalid object store name: {name!r}")
    return name


class ObjectStore:
    """
    One object store seen through a transaction.

    With a key path, items are JSON objects keyed by that field.
    Without one, items are scalars keyed by themselves.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        name: str,
        key_path: Optional[str],
        mode: TransactionMode,
    ):
        self._conn = conn
        self.name = name
        self.key_path = key_path
        self._mode = mode

    def _require_writable(self) -> None:
        if self._mode is not TransactionMode.READWRITE:
            raise ReadOnlyTransactionError(
                f"Cannot modify '{self.name}' in a readonly transaction"
            )

    def _key_of(self, item: Any) -> str:
        if self.key_path is None:
            return str(item)
        try:
            key = item[self.key_path]
        except (KeyError, TypeError):
            raise BackendError(
                f"Item for '{self.name}' has no '{self.key_path}' key"
            ) from None
        if key is None or key == "":
            raise BackendError(f"Item for '{self.name}' has an empty key")
        return str(key)

    def put(self, item: Any) -> str:
        """Insert or replace `item`; returns its key."""
        self._require_writable()
        key = self._key_of(item)
        created_at = item.get("createdAt") if isinstance(item, dict) else None
        self._conn.execute(
            f'INSERT INTO "{self.name}" (id, created_at, value) VALUES (?, ?, ?) '
            "ON CONFLICT(id) DO UPDATE SET "
            "created_at = excluded.created_at, value = excluded.value",
            (key, created_at, json.dumps(item, ensure_ascii=False)),
        )
        return key

    def get(self, key: str) -> Optional[Any]:
        row = self._conn.execute(
            f'SELECT value FROM "{self.name}" WHERE id = ?', (key,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    def get_all(self) -> list[Any]:
        """Every item in insertion order."""
        rows = self._conn.execute(
            f'SELECT value FROM "{self.name}" ORDER BY rowid'
        ).fetchall()
        return [json.loads(row[0]) for row in rows]

    def count(self) -> int:
        return self._conn.execute(f'SELECT COUNT(*) FROM "{self.name}"').fetchone()[0]

    def clear(self) -> None:
        self._require_writable()
        self._conn.execute(f'DELETE FROM "{self.name}"')


class Transaction:
    """A transaction scoped to a fixed set of object stores."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        scope: dict[str, Optional[str]],
        mode: TransactionMode,
    ):
        self._conn = conn
        self._scope = scope
        self.mode = mode

    @property
    def object_store_names(self) -> list[str]:
        return list(self._scope)

    def object_store(self, name: str) -> ObjectStore:
        if name not in self._scope:
            raise UnknownObjectStoreError(
                f"Object store '{name}' is not part of this transaction"
            )
        return ObjectStore(self._conn, name, self._scope[name], self.mode)


class SchemaEditor:
    """Handed to the upgrade callback while the version change is in flight."""

    def __init__(self, conn: sqlite3.Connection, key_paths: dict[str, Optional[str]]):
        self._conn = conn
        self._key_paths = key_paths

    @property
    def object_store_names(self) -> list[str]:
        return list(self._key_paths)

    def create_object_store(self, name: str, key_path: Optional[str] = "id") -> None:
        _check_name(name)
        if name in self._key_paths:
            raise BackendError(f"Object store '{name}' already exists")
        self._conn.execute(
            f'CREATE TABLE "{name}" ('
            "id TEXT PRIMARY KEY, created_at INTEGER, value TEXT NOT NULL)"
        )
        self._conn.execute(
            f'INSERT INTO "{_META_TABLE}" (name, key_path) VALUES (?, ?)',
            (name, key_path),
        )
        self._key_paths[name] = key_path


UpgradeCallback = Callable[[SchemaEditor, int, int], None]


class KeyValueBackend:
    """
    A SQLite database viewed as a set of object stores.

    Use `KeyValueBackend.open()` rather than the constructor.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        key_paths: dict[str, Optional[str]],
        version: int,
    ):
        self._conn = conn
        self._key_paths = key_paths
        self.version = version

    @classmethod
    def open(
        cls,
        path: str,
        version: int,
        upgrade: UpgradeCallback,
        timeout: float = 5.0,
    ) -> "KeyValueBackend":
        """
        Open (or create) the database and bring it to `version`.

        `upgrade(schema, old_version, new_version)` runs inside the
        version-change transaction when the stored version is older.

        Raises:
            VersionError: the stored version is newer than `version`
            sqlite3.Error: the file cannot be opened
        """
        if version < 1:
            raise ValueError("Schema version must be a positive integer")

        # Autocommit mode: transactions are managed explicitly below
        conn = sqlite3.connect(path, timeout=timeout, isolation_level=None)
        try:
            conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{_META_TABLE}" '
                "(name TEXT PRIMARY KEY, key_path TEXT)"
            )
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current > version:
                raise VersionError(
                    f"Database is at schema v{current}, this build knows v{version}"
                )

            key_paths = {
                name: key_path
                for name, key_path in conn.execute(
                    f'SELECT name, key_path FROM "{_META_TABLE}" ORDER BY rowid'
                )
            }

            if current < version:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    upgrade(SchemaEditor(conn, key_paths), current, version)
                    conn.execute(f"PRAGMA user_version = {int(version)}")
                    conn.execute("COMMIT")
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
        except BaseException:
            conn.close()
            raise

        return cls(conn, key_paths, version)

    @property
    def object_store_names(self) -> list[str]:
        return list(self._key_paths)

    @contextmanager
    def transaction(
        self,
        store_names: Iterable[str],
        mode: TransactionMode = TransactionMode.READONLY,
    ) -> Iterator[Transaction]:
        """
        Run a block inside one database transaction.

        Commits on clean exit; rolls back and re-raises on any exception.
        """
        mode = TransactionMode(mode)
        scope = {}
        for name in store_names:
            if name not in self._key_paths:
                raise UnknownObjectStoreError(f"No object store named '{name}'")
            scope[name] = self._key_paths[name]

        self._conn.execute(
            "BEGIN IMMEDIATE" if mode is TransactionMode.READWRITE else "BEGIN"
        )
        try:
            yield Transaction(self._conn, scope, mode)
            self._conn.execute("COMMIT")
        except BaseException:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        self._conn.close()
