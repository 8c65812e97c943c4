"""
In-Memory Storage Implementation

Reference implementation of the storage interfaces. Used by the test suite
and by embedders that keep the item list in process.

Items are kept per scope in arrival order. Every unit seen in a scope is
remembered so items can be inserted into it even after its last item was
deleted. Failures can be injected per operation to exercise the error paths
of the editing session.
"""

from collections import defaultdict
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError as SchemaError

from reception_ledger.models.audit import AuditEvent
from reception_ledger.models.line_item import LineItem, NewLineItem
from reception_ledger.services.storage.interface import (
    AuditStorageInterface,
    LineItemStorageInterface,
    NotFoundError,
    PersistenceError,
)


# Unit attributes copied onto items inserted into a unit
UNIT_FIELDS = ("unit_name", "subdivision_name", "position_number")


class InMemoryLineItemStorage(LineItemStorageInterface):
    """
    Dict-backed line item storage.

    `calls` records every operation attempted, in order, so tests can assert
    that nothing reached storage.
    """

    def __init__(self, scopes: Optional[dict[str, list[LineItem]]] = None):
        self._scopes: dict[str, list[LineItem]] = defaultdict(list)
        self._units: dict[str, tuple[str, dict[str, Any]]] = {}
        self._failures: dict[str, list[Exception]] = defaultdict(list)
        self.calls: list[tuple[str, Any]] = []

        for scope_id, items in (scopes or {}).items():
            for item in items:
                self.add(scope_id, item)

    # ------------------------------------------------------------------
    # Seeding and failure injection
    # ------------------------------------------------------------------

    def add(self, scope_id: str, item: LineItem) -> LineItem:
        """Seed an item without going through the async interface."""
        self._scopes[scope_id].append(item)
        if item.unit_id not in self._units:
            self.register_unit(
                scope_id,
                item.unit_id,
                **{name: getattr(item, name) for name in UNIT_FIELDS},
            )
        return item

    def register_unit(self, scope_id: str, unit_id: str, **attributes: Any) -> None:
        self._units[unit_id] = (scope_id, attributes)

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next call of `operation` raise `error`."""
        self._failures[operation].append(
            error or PersistenceError(f"Injected {operation} failure")
        )

    def _maybe_fail(self, operation: str) -> None:
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    def _locate(self, item_id: UUID) -> tuple[list[LineItem], int]:
        for items in self._scopes.values():
            for index, item in enumerate(items):
                if item.id == item_id:
                    return items, index
        raise NotFoundError(f"Line item not found: {item_id}")

    def get(self, item_id: UUID) -> LineItem:
        items, index = self._locate(item_id)
        return items[index]

    # ------------------------------------------------------------------
    # LineItemStorageInterface
    # ------------------------------------------------------------------

    async def fetch_all(self, scope_id: str) -> list[LineItem]:
        self.calls.append(("fetch_all", scope_id))
        self._maybe_fail("fetch_all")
        return list(self._scopes.get(scope_id, []))

    async def update(self, item_id: UUID, fields: dict[str, Any]) -> bool:
        self.calls.append(("update", item_id))
        self._maybe_fail("update")

        items, index = self._locate(item_id)
        current = items[index]
        if current.is_linked:
            raise PersistenceError(
                f"Line item {item_id} is linked to document {current.linked_document_id}"
            )
        try:
            items[index] = LineItem.model_validate(
                {**current.model_dump(), **fields, "id": current.id}
            )
        except SchemaError as e:
            raise PersistenceError(f"Failed to update line item: {e}")
        return True

    async def delete(self, item_id: UUID) -> bool:
        self.calls.append(("delete", item_id))
        self._maybe_fail("delete")

        items, index = self._locate(item_id)
        del items[index]
        return True

    async def insert(self, unit_id: str, new_item: NewLineItem) -> LineItem:
        self.calls.append(("insert", unit_id))
        self._maybe_fail("insert")

        if unit_id not in self._units:
            raise NotFoundError(f"Unit not found: {unit_id}")
        scope_id, attributes = self._units[unit_id]

        item = LineItem(
            id=uuid4(),
            unit_id=unit_id,
            **attributes,
            **new_item.model_dump(),
        )
        self._scopes[scope_id].append(item)
        return item


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
