"""
Backup Export and Merge Import

DESIGN DECISION: Import is a MERGE, never a restore.
Every imported row gets a freshly minted primary key, and every
foreign key is rewritten through an old -> new id map. Existing rows
are never touched, so importing the same backup twice yields two
complete, non-colliding copies.

The whole import runs in one all-tables transaction: if any row fails,
nothing from the backup is persisted.

A backup that repeats a voice entry id is rejected under either policy.

Backup document (the wire contract, camelCase, top-level arrays):

    {
      "voiceEntries": [...], "expenses": [...], "tasks": [...],
      "moods": [...], "notes": [...], "categories": ["Food", ...]
    }

Older exports wrapped this in {"app", "exportedAt", "database": {...}};
both shapes are accepted on import.
"""

import datetime as dt
import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, ValidationError

from aura.audit import AuditLogger, create_correlation_id
from aura.categories import category_key
from aura.models.records import (
    DEFAULT_CATEGORIES,
    DEPENDENT_TABLES,
    RECORD_TYPES,
    Table,
    VaultRecord,
    VaultSnapshot,
    new_id,
)
from aura.services.storage import (
    ALL_TABLES,
    EntityStoreInterface,
    StorageError,
    TransactionMode,
)


logger = structlog.get_logger(__name__)


class ImportParseError(Exception):
    """The backup document is malformed; nothing was imported."""
    pass


class ImportReferenceError(ImportParseError):
    """A record points at a voice entry the backup does not contain."""
    pass


class ReferencePolicy(str, Enum):
    """What to do with an entryId that has no counterpart in the backup."""
    STRICT = "strict"      # abort the whole import
    LENIENT = "lenient"    # mint a detached id and carry on


class ImportSummary(BaseModel):
    """Outcome of one merge import."""

    imported: dict[str, int] = Field(
        default_factory=dict,
        description="Rows added per table (categories: names that were new)"
    )
    entry_id_map: dict[str, str] = Field(
        default_factory=dict,
        description="Backup voice entry id -> id it was stored under"
    )
    unresolved_references: int = Field(
        default=0,
        ge=0,
        description="Records whose entryId had no match (lenient policy only)"
    )

    @property
    def total(self) -> int:
        return sum(
            count for table, count in self.imported.items()
            if table != Table.CATEGORIES.value
        )


class MergePlan(BaseModel):
    """Rows to write, already relabeled, plus the categories to upsert."""

    rows: list[tuple[Table, dict[str, Any]]] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    entry_id_map: dict[str, str] = Field(default_factory=dict)
    unresolved_references: int = 0

    def counts(self) -> dict[str, int]:
        counts = {table.value: 0 for table in RECORD_TYPES}
        for table, _ in self.rows:
            counts[table.value] += 1
        return counts


# =============================================================================
# PARSING
# =============================================================================

def parse_backup_document(text: Union[str, bytes]) -> dict[Table, list]:
    """
    Decode a backup into raw per-table lists.

    Missing or non-array collections count as zero records.

    Raises:
        ImportParseError: not JSON, or not a JSON object
    """
    try:
        document = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise ImportParseError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ImportParseError(
            f"Backup must be a JSON object, got {type(document).__name__}"
        )

    # Legacy export envelope
    nested = document.get("database")
    if isinstance(nested, dict) and not any(t.value in document for t in Table):
        document = nested

    collections: dict[Table, list] = {}
    for table in Table:
        value = document.get(table.value)
        if isinstance(value, list):
            collections[table] = value
        else:
            if value is not None:
                logger.warning(
                    "backup_collection_ignored",
                    table=table.value,
                    found=type(value).__name__,
                )
            collections[table] = []
    return collections


def _validate_rows(table: Table, rows: list) -> list[VaultRecord]:
    model_cls = RECORD_TYPES[table]
    records = []
    for index, row in enumerate(rows):
        try:
            records.append(model_cls.model_validate(row))
        except ValidationError as e:
            raise ImportParseError(
                f"Invalid record at {table.value}[{index}]: {e.error_count()} error(s)"
            ) from e
    return records


# =============================================================================
# RELABELING
# =============================================================================

def plan_merge(
    collections: dict[Table, list],
    policy: ReferencePolicy = ReferencePolicy.STRICT,
) -> MergePlan:
    """
    Validate every record and relabel ids for a merge.

    Pure: reads nothing, writes nothing.

    Raises:
        ImportParseError: a record fails validation
        ImportReferenceError: unresolved entryId under the strict policy
    """
    plan = MergePlan()

    # 1. Voice entries first: they define the id map
    for entry in _validate_rows(Table.VOICE_ENTRIES, collections.get(Table.VOICE_ENTRIES, [])):
        fresh = new_id()
        if entry.id in plan.entry_id_map:
            raise ImportParseError(
                f"voiceEntries id {entry.id} appears more than once, "
                "its records cannot be attached unambiguously"
            )
        plan.entry_id_map[entry.id] = fresh
        plan.rows.append((Table.VOICE_ENTRIES, entry.model_copy(update={"id": fresh}).to_wire()))

    # 2. Dependent records: fresh id + rewritten entryId
    for table in DEPENDENT_TABLES:
        for record in _validate_rows(table, collections.get(table, [])):
            entry_id = plan.entry_id_map.get(record.entry_id)
            if entry_id is None:
                if policy is ReferencePolicy.STRICT:
                    raise ImportReferenceError(
                        f"{table.value} record {record.id} references voice entry "
                        f"{record.entry_id}, which is not in the backup"
                    )
                entry_id = new_id()
                plan.unresolved_references += 1
                logger.warning(
                    "backup_reference_detached",
                    table=table.value,
                    record_id=record.id,
                    missing_entry_id=record.entry_id,
                )
            relabeled = record.model_copy(update={"id": new_id(), "entry_id": entry_id})
            plan.rows.append((table, relabeled.to_wire()))

    # 3. Tasks have no foreign key
    for task in _validate_rows(Table.TASKS, collections.get(Table.TASKS, [])):
        plan.rows.append((Table.TASKS, task.model_copy(update={"id": new_id()}).to_wire()))

    # 4. Categories keep their identity (the name)
    for name in collections.get(Table.CATEGORIES, []):
        if isinstance(name, str) and name.strip():
            plan.categories.append(name.strip())
        else:
            logger.warning("backup_category_ignored", value=repr(name)[:50])

    return plan


# =============================================================================
# MANAGER
# =============================================================================

def default_backup_filename(day: Optional[dt.date] = None) -> str:
    day = day or dt.date.today()
    return f"aura_vault_{day.isoformat()}.json"


class BackupManager:
    """
    Exports the vault and merges backups into it.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        policy: ReferencePolicy = ReferencePolicy.STRICT,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._policy = ReferencePolicy(policy)

    @property
    def policy(self) -> ReferencePolicy:
        return self._policy

    async def export_backup(self) -> VaultSnapshot:
        snapshot = await self._store.load_all()
        if self._audit_logger:
            self._audit_logger.log_backup_exported(snapshot.counts())
        return snapshot

    async def export_backup_json(self, indent: Optional[int] = 2) -> str:
        """The vault as a backup document."""
        snapshot = await self.export_backup()
        return snapshot.model_dump_json(by_alias=True, indent=indent)

    async def export_to_path(self, path: Union[str, Path]) -> Path:
        """
        Write a backup file. A directory gets a dated file name.
        """
        path = Path(path)
        if path.is_dir():
            path = path / default_backup_filename()
        path.write_text(await self.export_backup_json(), encoding="utf-8")
        logger.info("backup_written", path=str(path))
        return path

    async def _commit(self, plan: MergePlan) -> int:
        """Write the plan in one all-tables transaction; returns categories added."""
        categories_added = 0
        async with self._store.transaction(ALL_TABLES, TransactionMode.READWRITE) as tx:
            for table, row in plan.rows:
                tx.object_store(table.value).put(row)

            categories = tx.object_store(Table.CATEGORIES.value)
            stored = categories.get_all()
            known = {category_key(name) for name in stored}
            # An empty table stands for the defaults; keep them
            pending = plan.categories if stored else [*DEFAULT_CATEGORIES, *plan.categories]
            for name in pending:
                key = category_key(name)
                if key in known:
                    continue
                categories.put(name)
                known.add(key)
                categories_added += 1
        return categories_added

    async def import_backup_json(
        self,
        text: Union[str, bytes],
        policy: Optional[ReferencePolicy] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """
        Merge a backup document into the vault.

        Returns:
            Counts of what was added and the entry id map

        Raises:
            ImportParseError: malformed document (nothing persisted)
            ImportReferenceError: unresolved entryId under the strict policy
            StorageWriteError: the transaction failed (nothing persisted)
        """
        correlation_id = correlation_id or create_correlation_id()
        policy = ReferencePolicy(policy) if policy is not None else self._policy

        try:
            collections = parse_backup_document(text)
            plan = plan_merge(collections, policy)
            categories_added = await self._commit(plan)
        except (ImportParseError, StorageError) as e:
            logger.error(
                "backup_import_failed",
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_import_failed(e, correlation_id)
            raise

        imported = plan.counts()
        imported[Table.CATEGORIES.value] = categories_added
        summary = ImportSummary(
            imported=imported,
            entry_id_map=plan.entry_id_map,
            unresolved_references=plan.unresolved_references,
        )
        if self._audit_logger:
            self._audit_logger.log_backup_imported(
                counts=imported,
                unresolved_references=plan.unresolved_references,
                correlation_id=correlation_id,
            )
        return summary
