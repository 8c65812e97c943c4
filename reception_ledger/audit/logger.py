"""
Audit Logger

DESIGN DECISION: Every write the editing session pushes to storage, and
every write that fails or is refused, is logged.
This provides:
1. Traceability of changes to line items
2. Debugging capability when commits fail or race
3. A history the user can inspect

The audit logger:
- Is async so it can share the event loop with persistence calls
- Gracefully handles failures (a broken audit sink never blocks an edit)
- Supports correlation IDs to trace the events of one editing session
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from reception_ledger.models.audit import AuditEvent, AuditEventBuilder
from reception_ledger.services.storage import AuditStorageInterface


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

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            correlation_id: Attached to every event built by the helpers.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)
        self.correlation_id = correlation_id or create_correlation_id()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_items_loaded(self, scope_id: str, item_count: int) -> None:
        await self.log(AuditEventBuilder.items_loaded(
            scope_id=scope_id,
            item_count=item_count,
            correlation_id=self.correlation_id,
        ))

    async def log_load_failed(self, scope_id: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.load_failed(
            scope_id=scope_id,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    async def log_commit_rejected(self, item_id: UUID) -> None:
        await self.log(AuditEventBuilder.commit_rejected(
            item_id=item_id,
            correlation_id=self.correlation_id,
        ))

    async def log_item_updated(self, item_id: UUID, fields: dict[str, Any]) -> None:
        await self.log(AuditEventBuilder.item_updated(
            item_id=item_id,
            fields=fields,
            correlation_id=self.correlation_id,
        ))

    async def log_item_update_failed(self, item_id: UUID, error_message: str) -> None:
        await self.log(AuditEventBuilder.item_update_failed(
            item_id=item_id,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    async def log_item_added(
        self,
        item_id: UUID,
        unit_id: str,
        description: str,
    ) -> None:
        await self.log(AuditEventBuilder.item_added(
            item_id=item_id,
            unit_id=unit_id,
            description=description,
            correlation_id=self.correlation_id,
        ))

    async def log_item_deleted(self, item_id: UUID) -> None:
        await self.log(AuditEventBuilder.item_deleted(
            item_id=item_id,
            correlation_id=self.correlation_id,
        ))

    async def log_item_delete_failed(self, item_id: UUID, error_message: str) -> None:
        await self.log(AuditEventBuilder.item_delete_failed(
            item_id=item_id,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    async def log_labels_renamed(
        self,
        unit_id: str,
        level: str,
        old_label: str,
        new_label: str,
        item_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.labels_renamed(
            unit_id=unit_id,
            level=level,
            old_label=old_label,
            new_label=new_label,
            item_count=item_count,
            correlation_id=self.correlation_id,
        ))

    async def log_validation_failed(
        self,
        stage: str,
        issues: list[dict],
        entity_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            stage=stage,
            issues=issues,
            entity_id=entity_id,
            correlation_id=self.correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=self.correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an editing session and pass it through all
    subsequent operations.
    """
    return uuid4()
