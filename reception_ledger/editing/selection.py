"""
Selection Tracker

A set of selected leaf items (e.g. the items being placed on a transfer
document) and its running total.

"Select all" is tri-state: from an empty or partial selection it selects
every leaf; only a full selection toggles back to empty.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Optional
from uuid import UUID

from reception_ledger.hierarchy.aggregation import bucket_total
from reception_ledger.models.line_item import LineItem
from reception_ledger.services.storage import NotFoundError

if TYPE_CHECKING:
    from reception_ledger.editing.overlay import EditOverlay


class SelectionTracker:
    """Selected leaf ids over the current item universe."""

    def __init__(self, items: Iterable[LineItem] = ()):
        self._items: dict[UUID, LineItem] = {}
        self._selected: set[UUID] = set()
        self.sync(items)

    def sync(self, items: Iterable[LineItem]) -> None:
        """Refresh the leaf universe; ids that no longer exist are dropped."""
        self._items = {item.id: item for item in items}
        self._selected &= self._items.keys()

    def toggle_one(self, item_id: UUID) -> bool:
        """Flip membership. Returns True if the item is now selected."""
        if item_id not in self._items:
            raise NotFoundError(f"Line item not found: {item_id}")
        if item_id in self._selected:
            self._selected.discard(item_id)
            return False
        self._selected.add(item_id)
        return True

    def toggle_all(self) -> None:
        if self.is_all_selected:
            self._selected.clear()
        else:
            self._selected = set(self._items)

    def clear(self) -> None:
        self._selected.clear()

    def is_selected(self, item_id: UUID) -> bool:
        return item_id in self._selected

    @property
    def selected_ids(self) -> list[UUID]:
        """Selected ids in item order."""
        return [item_id for item_id in self._items if item_id in self._selected]

    @property
    def selected_count(self) -> int:
        return len(self._selected)

    @property
    def total_count(self) -> int:
        return len(self._items)

    @property
    def is_all_selected(self) -> bool:
        return bool(self._items) and len(self._selected) == len(self._items)

    @property
    def is_partially_selected(self) -> bool:
        """Checkbox "indeterminate" state."""
        return 0 < len(self._selected) < len(self._items)

    def count_selected(self, item_ids: Iterable[UUID]) -> int:
        """How many of the given ids are selected (e.g. per unit)."""
        return sum(1 for item_id in item_ids if item_id in self._selected)

    def selected_total(self, overlay: Optional["EditOverlay"] = None) -> Decimal:
        """Sum of selected line values; pending edits count when an overlay is given."""
        selected = [self._items[item_id] for item_id in self._selected]
        if overlay is not None:
            selected = overlay.apply(selected)
        return bucket_total(selected)
