"""
Audit Models for Aura Vault

Every write the vault performs leaves an audit event behind.
This provides:
1. Traceability of captures, imports and purges
2. Debugging information when a commit fails
3. A history the UI can show ("what did I just do?")

DESIGN DECISION: Audit events are append-only. We never edit them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Storage lifecycle
    STORAGE_INITIALIZED = "storage_initialized"
    STORAGE_INIT_FAILED = "storage_init_failed"

    # Capture pipeline
    CAPTURE_COMMITTED = "capture_committed"
    CAPTURE_FAILED = "capture_failed"
    CATEGORY_ADDED = "category_added"
    TASK_UPDATED = "task_updated"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    IMPORT_FAILED = "import_failed"

    # Destructive
    VAULT_PURGED = "vault_purged"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Table the entity lives in (e.g., 'voiceEntries', 'tasks')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one capture or import"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.capture_committed(entry_id, "EXPENSE", ...)
        event = AuditEventBuilder.vault_purged(counts)
    """

    @staticmethod
    def storage_initialized(db_path: str, schema_version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_INITIALIZED,
            description=f"Vault opened at schema v{schema_version}",
            details={"db_path": db_path, "schema_version": schema_version},
        )

    @staticmethod
    def storage_init_failed(db_path: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_INIT_FAILED,
            severity=AuditSeverity.CRITICAL,
            description="Vault could not be opened",
            details={"db_path": db_path},
            error_type="StorageInitError",
            error_message=error_message,
        )

    @staticmethod
    def capture_committed(
        entry_id: str,
        intent: str,
        child_table: str,
        child_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_COMMITTED,
            entity_type="voiceEntries",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"{intent} capture saved",
            details={
                "intent": intent,
                "child_table": child_table,
                "child_id": child_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def capture_failed(
        intent: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"{intent} capture was not saved",
            details={"intent": intent},
            error_type=error_type,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def category_added(name: str, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="categories",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"New expense category: {name}",
        )

    @staticmethod
    def task_updated(task_id: str, completed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TASK_UPDATED,
            entity_type="tasks",
            entity_id=task_id,
            description="Task marked done" if completed else "Task reopened",
            details={"completed": completed},
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            description="Backup exported",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        counts: dict[str, int],
        unresolved_references: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            severity=AuditSeverity.WARNING if unresolved_references else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description="Backup merged into vault",
            details={
                "counts": counts,
                "unresolved_references": unresolved_references,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Backup import aborted, nothing was saved",
            error_type=error_type,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def vault_purged(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VAULT_PURGED,
            severity=AuditSeverity.WARNING,
            description="All vault tables cleared",
            details={"counts_before": counts},
            is_user_action=True,
        )
