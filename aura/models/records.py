"""
Core Data Models for Aura Vault

These models define the strict schemas for every row the vault persists.
They are designed to:
1. Enforce type safety at runtime
2. Serialize to the exact camelCase wire shape of the backup file
3. Round-trip through the store without loss

DESIGN DECISION: Attributes are snake_case in Python and camelCase on the
wire. Every model is built with an alias generator so that
`model_dump(by_alias=True)` produces the backup format directly and
`model_validate` accepts either spelling.
"""

import datetime as dt
import time
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Intent(str, Enum):
    """What a captured utterance was classified as."""
    EXPENSE = "EXPENSE"
    TODO = "TODO"
    REMINDER = "REMINDER"
    MOOD = "MOOD"
    NOTE = "NOTE"


class Priority(str, Enum):
    """Task priority."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Table(str, Enum):
    """
    Object stores in the vault.

    The values double as the top-level keys of the backup document.
    """
    VOICE_ENTRIES = "voiceEntries"
    EXPENSES = "expenses"
    TASKS = "tasks"
    MOODS = "moods"
    NOTES = "notes"
    CATEGORIES = "categories"


# Reported when the category table is empty; the order is the display order.
DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Groceries",
    "Transport",
    "Shopping",
    "Bills",
    "Entertainment",
    "Medical",
    "Others",
)

REMINDER_CATEGORY = "Reminder"


def new_id() -> str:
    """Mint a fresh primary key."""
    return uuid4().hex


def now_ms() -> int:
    """Current wall clock time as epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# RECORD MODELS
# =============================================================================

class VaultRecord(BaseModel):
    """Base for every persisted row."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Primary key, unique within its table"
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump in the camelCase shape used on disk and in backups."""
        return self.model_dump(mode="json", by_alias=True)


class VoiceEntry(VaultRecord):
    """
    The immutable record of one classified utterance.

    CRITICAL: Never mutated after creation. Derived records point at it.
    """
    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(
        ...,
        description="Transcript exactly as captured"
    )
    intent: Intent
    confidence: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Classifier confidence (0-1)"
    )
    extracted_entities: dict[str, Any] = Field(
        default_factory=dict,
        description="Entities as returned by the classifier"
    )
    created_at: int = Field(
        ...,
        ge=0,
        description="Epoch milliseconds"
    )
    source: str = "voice"


class Expense(VaultRecord):
    """A spend derived from an EXPENSE capture."""

    entry_id: str = Field(
        ...,
        min_length=1,
        description="VoiceEntry this expense was derived from"
    )
    amount: float = Field(
        ...,
        ge=0,
        description="Amount in `currency`"
    )
    currency: str = Field(default="INR", min_length=1)
    category: str = Field(..., min_length=1)
    date: dt.date = Field(
        ...,
        description="Calendar day of the spend"
    )
    description: str = ""


class Task(VaultRecord):
    """
    A to-do or reminder.

    Tasks carry no entryId: they are standalone rows, and the only
    derived record that is ever mutated (`completed`).
    """

    title: str = Field(..., min_length=1)
    description: str = ""
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category: str = Field(..., min_length=1)
    date: dt.date
    created_at: int = Field(..., ge=0)

    @property
    def is_reminder(self) -> bool:
        return self.category == REMINDER_CATEGORY


class MoodRecord(VaultRecord):
    """A mood reflection derived from a MOOD capture."""

    entry_id: str = Field(..., min_length=1)
    sentiment: str
    sentence: str
    reason: str = ""
    created_at: int = Field(..., ge=0)


class NoteRecord(VaultRecord):
    """A free-form note derived from a NOTE capture."""

    entry_id: str = Field(..., min_length=1)
    text: str
    date: dt.date
    created_at: int = Field(..., ge=0)


RECORD_TYPES: dict[Table, type[VaultRecord]] = {
    Table.VOICE_ENTRIES: VoiceEntry,
    Table.EXPENSES: Expense,
    Table.TASKS: Task,
    Table.MOODS: MoodRecord,
    Table.NOTES: NoteRecord,
}

# Tables whose rows reference a VoiceEntry through entryId
DEPENDENT_TABLES: tuple[Table, ...] = (Table.EXPENSES, Table.MOODS, Table.NOTES)


# =============================================================================
# SNAPSHOT
# =============================================================================

class VaultSnapshot(BaseModel):
    """
    Every collection in the vault, as read in one transaction.

    This is both what `load_all()` returns and the backup document shape.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    voice_entries: list[VoiceEntry] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    moods: list[MoodRecord] = Field(default_factory=list)
    notes: list[NoteRecord] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    def collection(self, table: Table) -> list:
        """Return the list backing `table`."""
        return {
            Table.VOICE_ENTRIES: self.voice_entries,
            Table.EXPENSES: self.expenses,
            Table.TASKS: self.tasks,
            Table.MOODS: self.moods,
            Table.NOTES: self.notes,
            Table.CATEGORIES: self.categories,
        }[Table(table)]

    def counts(self) -> dict[str, int]:
        return {table.value: len(self.collection(table)) for table in Table}

    def find_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def entry_for(self, entry_id: str) -> Optional[VoiceEntry]:
        return next((e for e in self.voice_entries if e.id == entry_id), None)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
