"""
Abstract Storage Interface

DESIGN DECISION: The hierarchy engine never talks to a database directly.
It consumes a persistence collaborator through this interface.
This allows us to:
1. Swap the backend without touching grouping or editing logic
2. Use in-memory storage for testing
3. Treat every call as fallible in one place

The interface is intentionally small - exactly the four operations the
editing session needs.
"""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from reception_ledger.models.line_item import LineItem, NewLineItem
from reception_ledger.models.audit import AuditEvent


class LineItemStorageInterface(ABC):
    """
    Abstract interface for line item persistence.

    Every method may fail; callers must never act on an assumed success.
    """

    @abstractmethod
    async def fetch_all(self, scope_id: str) -> list[LineItem]:
        """
        Load every line item of a scope (e.g. one reception).

        Args:
            scope_id: The scope's identifier

        Returns:
            Items in arrival order

        Raises:
            PersistenceError: If the load fails
        """
        pass

    @abstractmethod
    async def update(self, item_id: UUID, fields: dict[str, Any]) -> bool:
        """
        Apply a partial update to one item.

        Args:
            item_id: The item's identifier
            fields: Changed fields only

        Returns:
            True if updated successfully

        Raises:
            PersistenceError: If the update fails
            NotFoundError: If the item doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, item_id: UUID) -> bool:
        """
        Delete one item.

        Returns:
            True if deleted successfully

        Raises:
            PersistenceError: If the delete fails
            NotFoundError: If the item doesn't exist
        """
        pass

    @abstractmethod
    async def insert(self, unit_id: str, new_item: NewLineItem) -> LineItem:
        """
        Create an item under a unit.

        Args:
            unit_id: Unit that will own the item
            new_item: Validated item fields

        Returns:
            The stored item, with its assigned id

        Raises:
            PersistenceError: If the insert fails
            NotFoundError: If the unit doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class PersistenceError(Exception):
    """Base exception for persistence collaborator failures."""
    pass


class NotFoundError(PersistenceError):
    """Target item or unit no longer exists."""
    pass
