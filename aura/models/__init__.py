"""
Data Models Package

This package contains all Pydantic models used in Aura Vault.
Every row the vault stores and every payload it accepts conforms to these schemas.
"""

from aura.models.records import (
    DEFAULT_CATEGORIES,
    DEPENDENT_TABLES,
    RECORD_TYPES,
    REMINDER_CATEGORY,
    Expense,
    Intent,
    MoodRecord,
    NoteRecord,
    Priority,
    Table,
    Task,
    VaultRecord,
    VaultSnapshot,
    VoiceEntry,
    new_id,
    now_ms,
)
from aura.models.capture import (
    CaptureDraft,
    CaptureValidationError,
    Classification,
    ExpenseEntities,
    MoodEntities,
    NoteEntities,
    ReminderEntities,
    TodoEntities,
    normalize_intent,
    parse_classification,
)
from aura.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "DEFAULT_CATEGORIES",
    "DEPENDENT_TABLES",
    "RECORD_TYPES",
    "REMINDER_CATEGORY",
    "Expense",
    "Intent",
    "MoodRecord",
    "NoteRecord",
    "Priority",
    "Table",
    "Task",
    "VaultRecord",
    "VaultSnapshot",
    "VoiceEntry",
    "new_id",
    "now_ms",
    # Capture payloads
    "CaptureDraft",
    "CaptureValidationError",
    "Classification",
    "ExpenseEntities",
    "MoodEntities",
    "NoteEntities",
    "ReminderEntities",
    "TodoEntities",
    "normalize_intent",
    "parse_classification",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
