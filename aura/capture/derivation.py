"""
Capture Derivation Rules

Turns a confirmed draft into a VoiceEntry and its one derived record.
The fallback table below is the contract the UI and the backup format
rely on; changing a default here changes what users see.

| Intent   | Table    | Fallbacks                                                  |
|----------|----------|------------------------------------------------------------|
| EXPENSE  | expenses | amount 0, currency INR, category by lookup then keywords,  |
|          |          | date today, description = transcript                       |
| TODO     | tasks    | title = transcript, priority medium, category Personal     |
| REMINDER | tasks    | title "Reminder", priority high, category Reminder         |
| MOOD     | moods    | sentiment Neutral, sentence "Mood reflection",             |
|          |          | reason = transcript                                        |
| NOTE     | notes    | text = transcript, date today                              |

All of these are pure functions: no I/O, no clock reads. The caller
passes ids, timestamps and "today" in.
"""

import datetime as dt
import math
from typing import Any, NamedTuple, Optional, Protocol

import structlog
from pydantic import ValidationError

from aura.models.capture import (
    CaptureDraft,
    CaptureValidationError,
    ExpenseClassification,
    MoodClassification,
    NoteClassification,
    ReminderClassification,
    TodoClassification,
)
from aura.models.records import (
    REMINDER_CATEGORY,
    Expense,
    MoodRecord,
    NoteRecord,
    Priority,
    Table,
    Task,
    VaultRecord,
    VoiceEntry,
)


logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "INR"
FALLBACK_CATEGORY = "Others"
SHOPPING_CATEGORY = "Shopping"
SHOPPING_KEYWORDS = ("shoe", "clothe", "dress", "buy")
TODO_CATEGORY = "Personal"
REMINDER_TITLE = "Reminder"
DEFAULT_SENTIMENT = "Neutral"
DEFAULT_SENTENCE = "Mood reflection"


class CategoryLookup(Protocol):
    def match(self, name: Optional[str]) -> Optional[str]: ...


class DerivedRecord(NamedTuple):
    """The child row a capture produces and the table it belongs in."""
    table: Table
    record: VaultRecord


# =============================================================================
# COERCION HELPERS
# =============================================================================

def coerce_amount(value: Any) -> float:
    """
    Numeric coercion of a spoken amount; anything unreadable is 0.

    Raises:
        CaptureValidationError: the amount is negative
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0

    if not math.isfinite(amount):
        return 0.0
    if amount < 0:
        raise CaptureValidationError(f"Expense amount cannot be negative: {value!r}")
    return amount


def resolve_day(value: Optional[str], today: dt.date) -> dt.date:
    """Parse an ISO day (a full timestamp is cut to its date); default today."""
    if not value:
        return today
    try:
        return dt.date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning("unparseable_date_defaulted", value=value, default=today.isoformat())
        return today


def resolve_priority(value: Optional[str], default: Priority = Priority.MEDIUM) -> Priority:
    if not value:
        return default
    try:
        return Priority(value.strip().lower())
    except ValueError:
        return default


def infer_category_from_text(raw_text: str) -> str:
    """Keyword heuristic for expenses whose category matched nothing."""
    text = raw_text.lower()
    if any(keyword in text for keyword in SHOPPING_KEYWORDS):
        return SHOPPING_CATEGORY
    return FALLBACK_CATEGORY


def resolve_expense_category(
    proposed: Optional[str],
    raw_text: str,
    vocabulary: CategoryLookup,
) -> str:
    """Known category in its stored casing, else the keyword heuristic."""
    matched = vocabulary.match(proposed)
    if matched is not None:
        return matched
    return infer_category_from_text(raw_text)


# =============================================================================
# DERIVATION
# =============================================================================

def build_voice_entry(draft: CaptureDraft, entry_id: str, created_at: int) -> VoiceEntry:
    """The parent row of a capture."""
    return VoiceEntry(
        id=entry_id,
        raw_text=draft.raw_text,
        intent=draft.intent,
        confidence=draft.confidence,
        extracted_entities=draft.raw_entities,
        created_at=created_at,
    )


def derive_record(
    draft: CaptureDraft,
    *,
    entry_id: str,
    record_id: str,
    created_at: int,
    today: dt.date,
    vocabulary: CategoryLookup,
    default_currency: str = DEFAULT_CURRENCY,
) -> DerivedRecord:
    """
    Apply the per-intent fallback rules to a draft.

    Raises:
        CaptureValidationError: the entities cannot form a valid record
    """
    try:
        return _derive(
            draft,
            entry_id=entry_id,
            record_id=record_id,
            created_at=created_at,
            today=today,
            vocabulary=vocabulary,
            default_currency=default_currency,
        )
    except ValidationError as e:
        raise CaptureValidationError(
            f"{draft.intent.value} capture does not form a valid record: {e.error_count()} error(s)"
        ) from e


def _derive(
    draft: CaptureDraft,
    *,
    entry_id: str,
    record_id: str,
    created_at: int,
    today: dt.date,
    vocabulary: CategoryLookup,
    default_currency: str,
) -> DerivedRecord:
    raw_text = draft.raw_text
    classification = draft.classification
    entities = classification.entities

    if isinstance(classification, ExpenseClassification):
        record = Expense(
            id=record_id,
            entry_id=entry_id,
            amount=coerce_amount(entities.amount),
            currency=entities.currency or default_currency,
            category=resolve_expense_category(entities.category, raw_text, vocabulary),
            date=resolve_day(entities.date, today),
            description=entities.description or raw_text,
        )
        return DerivedRecord(Table.EXPENSES, record)

    if isinstance(classification, TodoClassification):
        record = Task(
            id=record_id,
            title=entities.title or raw_text,
            description=entities.description or "",
            completed=False,
            priority=resolve_priority(entities.priority),
            category=TODO_CATEGORY,
            date=resolve_day(entities.date, today),
            created_at=created_at,
        )
        return DerivedRecord(Table.TASKS, record)

    if isinstance(classification, ReminderClassification):
        record = Task(
            id=record_id,
            title=entities.title or REMINDER_TITLE,
            description=entities.description or "",
            completed=False,
            priority=Priority.HIGH,
            category=REMINDER_CATEGORY,
            date=resolve_day(entities.date, today),
            created_at=created_at,
        )
        return DerivedRecord(Table.TASKS, record)

    if isinstance(classification, MoodClassification):
        record = MoodRecord(
            id=record_id,
            entry_id=entry_id,
            sentiment=entities.sentiment or DEFAULT_SENTIMENT,
            sentence=entities.sentence or DEFAULT_SENTENCE,
            reason=entities.reason or raw_text,
            created_at=created_at,
        )
        return DerivedRecord(Table.MOODS, record)

    if isinstance(classification, NoteClassification):
        record = NoteRecord(
            id=record_id,
            entry_id=entry_id,
            text=entities.text or raw_text,
            date=resolve_day(entities.date, today),
            created_at=created_at,
        )
        return DerivedRecord(Table.NOTES, record)

    raise CaptureValidationError(f"No derivation rule for intent {classification.intent!r}")
