"""
Main Orchestrator for Aura Vault

This module ties together all the components and defines the
end-to-end flows for:
1. Capture (classified utterance -> draft -> commit -> view)
2. Backup (export, merge import)
3. Maintenance (task toggles, purge)
4. Insights (analytics over the current view)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the view before it reached disk
- Every foreign key written resolves
- Every write is audited

Callers (a UI, a CLI, a test) talk to `Vault` only.
"""

import datetime as dt
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from aura.analytics import AnalyticsReport, compute_analytics, month_to_date
from aura.audit import AuditLogger, create_correlation_id
from aura.backup import BackupManager, ImportSummary, ReferencePolicy
from aura.capture import CaptureDraft, CaptureManager, CaptureResult, VaultView
from aura.categories import CategoryVocabulary
from aura.config import get_settings
from aura.intents import classify_raw_text
from aura.models.records import Table, VaultSnapshot
from aura.services.storage import (
    SCHEMA_VERSION,
    EntityStoreInterface,
    SQLiteEntityStore,
    StorableItem,
    StorageInitError,
)


logger = structlog.get_logger(__name__)


class Vault:
    """
    The voice journal's persistence core.

    Flow:
    1. open()    -> initialize the store, load the view and vocabulary
    2. capture() -> derive and commit one utterance
    3. analytics(), export_backup_json(), ... as needed
    4. close()

    The view (`snapshot`) only ever reflects committed state.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: str = "INR",
        reference_policy: ReferencePolicy = ReferencePolicy.STRICT,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._view = VaultView()
        self._vocabulary = CategoryVocabulary(store)
        self._capture_manager = CaptureManager(
            store,
            self._vocabulary,
            view=self._view,
            audit_logger=audit_logger,
            default_currency=default_currency,
        )
        self._backup_manager = BackupManager(
            store,
            audit_logger=audit_logger,
            policy=reference_policy,
        )

    @property
    def snapshot(self) -> VaultSnapshot:
        """Latest committed state."""
        return self._view.snapshot

    @property
    def categories(self) -> list[str]:
        return self._vocabulary.names

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> VaultSnapshot:
        """
        Initialize storage and load everything into the view.

        Raises:
            StorageInitError: the store is unavailable or blocked (fatal)
        """
        db_path = getattr(self._store, "db_path", "<custom store>")
        try:
            await self._store.init()
        except StorageInitError as e:
            if self._audit_logger:
                self._audit_logger.log_storage_init_failed(db_path, str(e))
            raise

        if self._audit_logger:
            self._audit_logger.log_storage_initialized(db_path, SCHEMA_VERSION)

        snapshot = await self.load_all()
        await self._vocabulary.refresh()
        return snapshot

    async def close(self) -> None:
        await self._store.close()

    async def __aenter__(self) -> "Vault":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load_all(self) -> VaultSnapshot:
        """Re-read every table and publish it as the view."""
        snapshot = await self._store.load_all()
        self._view.replace(snapshot)
        return snapshot

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def capture(
        self,
        raw_text: str,
        intent: Any = None,
        entities: Optional[dict[str, Any]] = None,
        confidence: Optional[float] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CaptureResult:
        """
        Commit one classified utterance.

        Without an intent, the local keyword classifier picks one.

        Raises:
            CaptureValidationError: the entities cannot form a record
            StorageWriteError: the commit failed (nothing was written)
        """
        if intent is None:
            intent, guessed_confidence = classify_raw_text(raw_text)
            if confidence is None:
                confidence = guessed_confidence
        draft = CaptureDraft.build(
            raw_text,
            intent,
            entities,
            confidence=0.95 if confidence is None else confidence,
        )
        return await self._capture_manager.commit(draft, correlation_id)

    async def save_item(self, table: Union[Table, str], item: StorableItem) -> None:
        """
        Upsert one item directly, then refresh the view from disk.

        Category names go through the vocabulary, so a case variant of a
        known name writes nothing and the defaults are seeded first.

        Raises:
            ValueError: blank category name
            StorageWriteError: the write failed
        """
        table = Table(table)
        if table is Table.CATEGORIES:
            name, created = await self._vocabulary.ensure(str(item))
            if created and self._audit_logger:
                self._audit_logger.log_category_added(name)
            self._view.apply_categories(self._vocabulary.names)
            return
        await self._store.save_item(table, item)
        await self.load_all()

    async def set_task_completed(self, task_id: str, completed: bool):
        """
        Raises:
            RecordNotFoundError: no task with that id
        """
        return await self._capture_manager.set_task_completed(task_id, completed)

    async def purge_all(self) -> None:
        """
        Delete everything. Categories fall back to the defaults.

        Raises:
            StorageWriteError: the purge failed (the view is unchanged)
        """
        counts = self._view.snapshot.counts()
        await self._store.clear_all()
        self._view.reset()
        self._vocabulary.reset()
        if self._audit_logger:
            self._audit_logger.log_vault_purged(counts)
        logger.warning("vault_purged", **counts)

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    async def export_backup_json(self, indent: Optional[int] = 2) -> str:
        return await self._backup_manager.export_backup_json(indent=indent)

    async def import_backup_json(
        self,
        text: Union[str, bytes],
        policy: Optional[ReferencePolicy] = None,
    ) -> ImportSummary:
        """
        Merge a backup into the vault, then reload the view.

        Raises:
            ImportParseError: malformed backup (nothing persisted)
            ImportReferenceError: dangling entryId under the strict policy
            StorageWriteError: the import transaction failed
        """
        correlation_id = create_correlation_id()
        summary = await self._backup_manager.import_backup_json(
            text,
            policy=policy,
            correlation_id=correlation_id,
        )
        await self.load_all()
        await self._vocabulary.refresh()
        return summary

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    def analytics(
        self,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> AnalyticsReport:
        """Analytics over the current view; month to date by default."""
        if date_from is None or date_to is None:
            default_range = month_to_date()
            date_from = date_from or default_range.date_from
            date_to = date_to or default_range.date_to
        return compute_analytics(self._view.snapshot, date_from, date_to)


def create_vault(db_path: Optional[str] = None) -> Vault:
    """
    Factory function to create a Vault from settings.

    Args:
        db_path: Override for AURA_STORE_DB_PATH

    Returns:
        An unopened Vault (call `await vault.open()`)
    """
    settings = get_settings().vault
    store = SQLiteEntityStore(db_path=db_path)
    audit_logger = AuditLogger(trail_size=settings.audit_trail_size)
    policy = (
        ReferencePolicy.STRICT
        if settings.strict_import_references
        else ReferencePolicy.LENIENT
    )
    return Vault(
        store,
        audit_logger=audit_logger,
        default_currency=settings.default_currency,
        reference_policy=policy,
    )
