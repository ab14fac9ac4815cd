"""
Capture Manager (referential integrity)

Owns the path from a confirmed draft to rows on disk:

    Draft -> Derivation -> Commit -> Materialize

1. Draft        classified text + entities (CaptureDraft)
2. Derivation   per-intent fallback rules (aura.capture.derivation)
3. Commit       VoiceEntry and its child in ONE multi-table transaction
4. Materialize  the in-memory view is updated only after step 3 returns

GUARANTEES:
- Every Expense/Mood/Note written here points at a VoiceEntry written
  in the same transaction
- A failed commit leaves disk and view exactly as they were
- Errors reach the caller; nothing is swallowed

The one deliberate exception to "nothing before commit": an EXPENSE
naming a new category persists that category first, so the lookup in
step 2 resolves to it.
"""

import datetime as dt
from typing import Callable, NamedTuple, Optional
from uuid import UUID

import structlog

from aura.audit import AuditLogger, create_correlation_id
from aura.capture.derivation import (
    DEFAULT_CURRENCY,
    build_voice_entry,
    derive_record,
)
from aura.capture.view import VaultView
from aura.categories import CategoryVocabulary
from aura.models.capture import CaptureDraft, CaptureValidationError
from aura.models.records import (
    Intent,
    Table,
    Task,
    VaultRecord,
    VoiceEntry,
    new_id,
    now_ms,
)
from aura.services.storage import (
    EntityStoreInterface,
    RecordNotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class CaptureResult(NamedTuple):
    """What one committed capture produced."""
    entry: VoiceEntry
    table: Table
    record: VaultRecord
    new_category: Optional[str]


class CaptureManager:
    """
    Commits captures and task updates, keeping the view behind disk.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        vocabulary: CategoryVocabulary,
        view: Optional[VaultView] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: str = DEFAULT_CURRENCY,
        today: Callable[[], dt.date] = dt.date.today,
        clock_ms: Callable[[], int] = now_ms,
    ):
        """
        Args:
            store: Entity store to commit into
            vocabulary: Known expense categories
            view: Materialized view to update after commits (optional)
            audit_logger: Where audit events go (optional)
            default_currency: Currency for expenses that name none
            today: Local calendar day provider
            clock_ms: Epoch-milliseconds provider
        """
        self._store = store
        self._vocabulary = vocabulary
        self._view = view
        self._audit_logger = audit_logger
        self._default_currency = default_currency
        self._today = today
        self._clock_ms = clock_ms

    async def _register_category(
        self,
        draft: CaptureDraft,
        correlation_id: UUID,
    ) -> Optional[str]:
        """Persist a novel expense category; returns it if it was new."""
        if draft.intent is not Intent.EXPENSE:
            return None
        proposed = draft.classification.entities.category
        if not proposed or self._vocabulary.match(proposed) is not None:
            return None

        name, created = await self._vocabulary.ensure(proposed)
        if not created:
            return None
        if self._audit_logger:
            self._audit_logger.log_category_added(name, correlation_id)
        return name

    async def commit(
        self,
        draft: CaptureDraft,
        correlation_id: Optional[UUID] = None,
    ) -> CaptureResult:
        """
        Derive and persist one capture.

        Returns:
            The committed entry and child record

        Raises:
            CaptureValidationError: the draft cannot form a valid record
            StorageWriteError: the commit failed (nothing was written)
        """
        correlation_id = correlation_id or create_correlation_id()
        intent = draft.intent

        try:
            new_category = await self._register_category(draft, correlation_id)

            created_at = self._clock_ms()
            entry = build_voice_entry(draft, entry_id=new_id(), created_at=created_at)
            derived = derive_record(
                draft,
                entry_id=entry.id,
                record_id=new_id(),
                created_at=created_at,
                today=self._today(),
                vocabulary=self._vocabulary,
                default_currency=self._default_currency,
            )

            await self._store.save_items([
                (Table.VOICE_ENTRIES, entry),
                (derived.table, derived.record),
            ])
        except (CaptureValidationError, StorageError) as e:
            logger.error(
                "capture_commit_failed",
                intent=intent.value,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                self._audit_logger.log_capture_failed(intent.value, e, correlation_id)
            raise

        # Disk is ahead of memory from here on; catch the view up
        if self._view is not None:
            self._view.apply_capture(entry, derived.table, derived.record, new_category)

        if self._audit_logger:
            self._audit_logger.log_capture_committed(
                entry_id=entry.id,
                intent=intent.value,
                child_table=derived.table.value,
                child_id=derived.record.id,
                correlation_id=correlation_id,
            )

        return CaptureResult(entry, derived.table, derived.record, new_category)

    async def set_task_completed(self, task_id: str, completed: bool) -> Task:
        """
        Toggle a task's completion flag in place.

        Raises:
            RecordNotFoundError: no task with that id
            StorageWriteError: the update failed
        """
        tasks = await self._store.load_table(Table.TASKS)
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            raise RecordNotFoundError(f"Task not found: {task_id}")

        updated = task.model_copy(update={"completed": completed})
        await self._store.save_item(Table.TASKS, updated)

        if self._view is not None:
            self._view.apply_task(updated)
        if self._audit_logger:
            self._audit_logger.log_task_updated(task_id, completed)
        return updated
