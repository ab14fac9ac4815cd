"""
Audit Logger

DESIGN DECISION: Every write the vault performs is logged.
This provides:
1. Traceability of captures, imports and purges
2. Debugging capability when a commit fails
3. A short recent-history list the UI can show

The audit logger:
- Never raises (a broken log must not break a save)
- Supports correlation IDs to trace the events of one capture or import
- Keeps a bounded in-memory trail of recent events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from aura.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured local log and keeps the most
    recent ones in memory.
    """

    def __init__(self, trail_size: int = 200):
        """
        Initialize audit logger.

        Args:
            trail_size: How many recent events to keep in memory.
                        0 disables the in-memory trail.
        """
        self._trail: deque[AuditEvent] = deque(maxlen=trail_size)
        self._logger = structlog.get_logger("aura.audit")
        self._sink_failures = 0

    @property
    def sink_failures(self) -> int:
        """How many events the structured log failed to accept."""
        return self._sink_failures

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and remember it."""
        log_dict = event.to_log_dict()
        # structlog reserves "event" for the message itself
        log_dict.pop("event_type", None)

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error(event.event_type.value, **log_dict)
            elif event.severity is AuditSeverity.WARNING:
                self._logger.warning(event.event_type.value, **log_dict)
            elif event.severity is AuditSeverity.DEBUG:
                self._logger.debug(event.event_type.value, **log_dict)
            else:
                self._logger.info(event.event_type.value, **log_dict)
        except Exception as e:
            # Sink failure: keep the event in the trail, don't raise
            self._sink_failures += 1
            logging.getLogger("aura.audit").error(
                "audit_sink_failed event_id=%s error=%s", event.event_id, e
            )

        if self._trail.maxlen:
            self._trail.append(event)

    def recent_events(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._trail))
        return events if limit is None else events[:limit]

    def log_storage_initialized(self, db_path: str, schema_version: int) -> None:
        self.log(AuditEventBuilder.storage_initialized(db_path, schema_version))

    def log_storage_init_failed(self, db_path: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_init_failed(db_path, error_message))

    def log_capture_committed(
        self,
        entry_id: str,
        intent: str,
        child_table: str,
        child_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a VoiceEntry + derived record landing on disk."""
        self.log(AuditEventBuilder.capture_committed(
            entry_id=entry_id,
            intent=intent,
            child_table=child_table,
            child_id=child_id,
            correlation_id=correlation_id,
        ))

    def log_capture_failed(
        self,
        intent: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.capture_failed(
            intent=intent,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    def log_category_added(self, name: str, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.category_added(name, correlation_id))

    def log_task_updated(self, task_id: str, completed: bool) -> None:
        self.log(AuditEventBuilder.task_updated(task_id, completed))

    def log_backup_exported(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.backup_exported(counts))

    def log_backup_imported(
        self,
        counts: dict[str, int],
        unresolved_references: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.backup_imported(
            counts=counts,
            unresolved_references=unresolved_references,
            correlation_id=correlation_id,
        ))

    def log_import_failed(
        self,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.import_failed(
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    def log_vault_purged(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.vault_purged(counts))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (a capture, an import).
    Pass it through all subsequent operations.
    """
    return uuid4()
