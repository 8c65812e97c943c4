"""
Edit Overlay Manager

Pending, uncommitted edits layered on top of the canonical line items.

DESIGN DECISION: Canonical items are never modified in place. An edit lives
in an overlay entry (item id -> full set of editable field values) until it
is committed to storage or cancelled. Grouping reads effective values
through `apply`, so totals reflect edits optimistically while the canonical
list stays exactly what storage returned.

GUARANTEES:
- At most one entry per item id
- At most one in-flight commit per item id
- A failed commit keeps the entry; edits are never silently discarded
- Entries only exist for items present in the current canonical list
"""

from typing import Any, Iterable, Optional
from uuid import UUID

import structlog

from reception_ledger.audit import AuditLogger
from reception_ledger.models.line_item import LineItem
from reception_ledger.services.storage import (
    LineItemStorageInterface,
    NotFoundError,
    PersistenceError,
)
from reception_ledger.validation import LineItemValidator


class CommitInProgressError(Exception):
    """A commit for the same item is already in flight."""

    def __init__(self, item_id: UUID):
        super().__init__(f"A commit for line item {item_id} is already in progress")
        self.item_id = item_id


class EditOverlay:
    """
    Tracks pending field edits per item id.

    Owned by a single editing session; not safe to share across threads.
    """

    def __init__(
        self,
        storage: LineItemStorageInterface,
        items: Iterable[LineItem] = (),
        validator: Optional[LineItemValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LineItemValidator()
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

        self._canonical: dict[UUID, LineItem] = {}
        self._entries: dict[UUID, dict[str, Any]] = {}
        self._in_flight: set[UUID] = set()
        self.sync(items)

    # ------------------------------------------------------------------
    # Canonical snapshot
    # ------------------------------------------------------------------

    def sync(self, items: Iterable[LineItem]) -> list[UUID]:
        """
        Replace the canonical snapshot.

        Entries for items that disappeared, or that became linked, are
        purged. Returns the purged ids.
        """
        self._canonical = {item.id: item for item in items}
        purged = [
            item_id for item_id in self._entries
            if item_id not in self._canonical or self._canonical[item_id].is_linked
        ]
        for item_id in purged:
            del self._entries[item_id]
        if purged:
            self._logger.info("overlay_entries_purged", item_ids=[str(i) for i in purged])
        return purged

    def _canonical_item(self, item_id: UUID) -> LineItem:
        try:
            return self._canonical[item_id]
        except KeyError:
            raise NotFoundError(f"Line item not found: {item_id}")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def begin_edit(self, item_id: UUID) -> bool:
        """
        Open an overlay entry seeded with the item's canonical values.

        Re-entrant: an existing entry is left untouched.

        Returns:
            True if an entry exists after the call, False for linked items
        """
        item = self._canonical_item(item_id)
        if item.is_linked:
            self._logger.warning("edit_rejected", item_id=str(item_id), reason="linked")
            return False
        if item_id not in self._entries:
            self._entries[item_id] = item.editable_values()
            self._logger.debug("edit_started", item_id=str(item_id))
        return True

    def set_field(self, item_id: UUID, field: str, value: Any) -> bool:
        """
        Override one field of an item.

        Returns:
            False (and changes nothing) if the item is linked

        Raises:
            NotFoundError: Unknown item
            ValidationError: Unknown field or malformed value
        """
        item = self._canonical_item(item_id)
        if item.is_linked:
            self._logger.warning(
                "edit_rejected",
                item_id=str(item_id),
                field=field,
                reason="linked",
            )
            return False

        cleaned = self._validator.validate_field(field, value)
        self.begin_edit(item_id)
        self._entries[item_id][field] = cleaned
        return True

    def cancel(self, item_id: UUID) -> bool:
        """Discard pending edits. Returns True if there was an entry."""
        removed = self._entries.pop(item_id, None) is not None
        if removed:
            self._logger.info("edit_cancelled", item_id=str(item_id))
        return removed

    def discard(self, item_id: UUID) -> bool:
        """Purge the entry of an item that is being deleted."""
        return self._entries.pop(item_id, None) is not None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_entry(self, item_id: UUID) -> bool:
        return item_id in self._entries

    def entry(self, item_id: UUID) -> Optional[dict[str, Any]]:
        entry = self._entries.get(item_id)
        return dict(entry) if entry is not None else None

    @property
    def pending_ids(self) -> list[UUID]:
        return list(self._entries)

    @property
    def in_flight_ids(self) -> list[UUID]:
        return list(self._in_flight)

    def is_committing(self, item_id: UUID) -> bool:
        return item_id in self._in_flight

    def effective_value(self, item_id: UUID) -> LineItem:
        """Canonical item with pending overrides applied field by field."""
        item = self._canonical_item(item_id)
        entry = self._entries.get(item_id)
        return item.model_copy(update=entry) if entry else item

    def apply(self, items: Iterable[LineItem]) -> list[LineItem]:
        """Effective values of a whole list, order preserved."""
        return [
            item.model_copy(update=self._entries[item.id])
            if item.id in self._entries else item
            for item in items
        ]

    def changed_fields(self, item_id: UUID) -> dict[str, Any]:
        """Only the overrides that differ from canonical values."""
        entry = self._entries.get(item_id)
        if not entry:
            return {}
        item = self._canonical_item(item_id)
        return {
            name: value for name, value in entry.items()
            if getattr(item, name) != value
        }

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self, item_id: UUID) -> dict[str, Any]:
        """
        Send the changed fields of an item to storage.

        Returns:
            The fields written. Non-empty means canonical data is stale and
            should be reloaded; empty means nothing needed writing.

        Raises:
            CommitInProgressError: A commit for this item is in flight
            NotFoundError: The item is gone (reload recommended)
            PersistenceError: Storage failed; the entry is kept
        """
        if item_id in self._in_flight:
            self._logger.warning("commit_rejected", item_id=str(item_id))
            if self._audit_logger:
                await self._audit_logger.log_commit_rejected(item_id)
            raise CommitInProgressError(item_id)

        self._canonical_item(item_id)
        if item_id not in self._entries:
            return {}

        changes = self.changed_fields(item_id)
        if not changes:
            del self._entries[item_id]
            return {}

        sent = dict(self._entries[item_id])
        self._in_flight.add(item_id)
        try:
            if not await self._storage.update(item_id, changes):
                raise PersistenceError(f"Storage did not apply the update of {item_id}")
        except PersistenceError as e:
            self._logger.error(
                "commit_failed",
                item_id=str(item_id),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_item_update_failed(item_id, str(e))
            raise
        finally:
            self._in_flight.discard(item_id)

        # Edits made while the commit was in flight stay pending
        current = self._entries.get(item_id)
        if current == sent:
            del self._entries[item_id]
        elif current is not None:
            self._logger.info("edited_during_commit", item_id=str(item_id))

        self._logger.info("commit_succeeded", item_id=str(item_id), fields=sorted(changes))
        if self._audit_logger:
            await self._audit_logger.log_item_updated(item_id, changes)
        return changes
