"""
Audit Models for Reception Ledger

Every change pushed to the persistence collaborator, and every edit the
engine refuses, is logged for audit purposes.
This provides:
1. Traceability of who changed which line item, and how
2. Debugging information when a commit fails or races
3. A record of commits refused because another was already in flight

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Loading
    ITEMS_LOADED = "items_loaded"
    LOAD_FAILED = "load_failed"

    # Edit overlay
    COMMIT_REJECTED = "commit_rejected"

    # Persistence
    ITEM_UPDATED = "item_updated"
    ITEM_UPDATE_FAILED = "item_update_failed"
    ITEM_ADDED = "item_added"
    ITEM_DELETED = "item_deleted"
    ITEM_DELETE_FAILED = "item_delete_failed"
    LABELS_RENAMED = "labels_renamed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


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
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'line_item', 'unit', 'scope')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one editing session)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.item_updated(item_id, fields, correlation_id)
        event = AuditEventBuilder.item_deleted(item_id, correlation_id)
    """

    @staticmethod
    def items_loaded(
        scope_id: str,
        item_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEMS_LOADED,
            entity_type="scope",
            entity_id=scope_id,
            correlation_id=correlation_id,
            description=f"Loaded {item_count} line items",
            details={"item_count": item_count},
        )

    @staticmethod
    def load_failed(
        scope_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="scope",
            entity_id=scope_id,
            correlation_id=correlation_id,
            description="Loading line items failed",
            error_message=error_message,
        )

    @staticmethod
    def commit_rejected(
        item_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description="Commit rejected: another commit is in flight",
        )

    @staticmethod
    def item_updated(
        item_id: UUID,
        fields: dict[str, Any],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_UPDATED,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description=f"Item updated: {', '.join(sorted(fields))}",
            details={name: str(value) for name, value in fields.items()},
            is_user_action=True,
        )

    @staticmethod
    def item_update_failed(
        item_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_UPDATE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description="Item update failed, pending changes kept",
            error_message=error_message,
        )

    @staticmethod
    def item_added(
        item_id: UUID,
        unit_id: str,
        description: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_ADDED,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description=f"Item added to unit {unit_id}: {description}",
            details={"unit_id": unit_id},
            is_user_action=True,
        )

    @staticmethod
    def item_deleted(
        item_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_DELETED,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description="Item deleted",
            is_user_action=True,
        )

    @staticmethod
    def item_delete_failed(
        item_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="line_item",
            entity_id=str(item_id),
            correlation_id=correlation_id,
            description="Item delete failed",
            error_message=error_message,
        )

    @staticmethod
    def labels_renamed(
        unit_id: str,
        level: str,
        old_label: str,
        new_label: str,
        item_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LABELS_RENAMED,
            entity_type="unit",
            entity_id=unit_id,
            correlation_id=correlation_id,
            description=f"Renamed {level} '{old_label}' to '{new_label}' on {item_count} items",
            details={
                "level": level,
                "old_label": old_label,
                "new_label": new_label,
                "item_count": item_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        stage: str,
        issues: list[dict],
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="line_item",
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{stage.capitalize()} validation failed with {len(issues)} issues",
            details={
                "stage": stage,
                "issues": issues,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
