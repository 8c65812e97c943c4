"""Tests for the selection tracker."""

from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import make_item
from reception_ledger.editing import EditOverlay, SelectionTracker
from reception_ledger.services.storage import InMemoryLineItemStorage, NotFoundError


@pytest.fixture
def five_items():
    return [make_item(description=f"Item_ID_{n}", price=str(10 * (n + 1))) for n in range(5)]


class TestToggleAll:
    """Select-all is tri-state: none / some / all."""

    def test_from_none_selects_all(self, five_items):
        """Test 0 of 5 selected -> toggle_all -> 5 of 5."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_all()
        assert tracker.selected_count == 5
        assert tracker.is_all_selected

    def test_from_all_clears(self, five_items):
        """Test 5 of 5 selected -> toggle_all -> 0 of 5."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_all()
        tracker.toggle_all()
        assert tracker.selected_count == 0
        assert not tracker.is_partially_selected

    def test_from_partial_selects_all(self, five_items):
        """Test 2 of 5 selected -> toggle_all -> 5 of 5."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_one(five_items[0].id)
        tracker.toggle_one(five_items[3].id)
        assert tracker.is_partially_selected

        tracker.toggle_all()
        assert tracker.selected_count == 5
        assert not tracker.is_partially_selected

    def test_empty_universe(self):
        """Test nothing is ever 'all selected' without items."""
        tracker = SelectionTracker()
        tracker.toggle_all()
        assert tracker.selected_count == 0
        assert not tracker.is_all_selected


class TestToggleOne:

    def test_toggle_flips_membership(self, five_items):
        """Test toggle_one adds then removes an item."""
        tracker = SelectionTracker(five_items)
        item_id = five_items[2].id
        assert tracker.toggle_one(item_id) is True
        assert tracker.is_selected(item_id)
        assert tracker.toggle_one(item_id) is False
        assert not tracker.is_selected(item_id)

    def test_unknown_item(self, five_items):
        """Test an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            SelectionTracker(five_items).toggle_one(uuid4())

    def test_selected_ids_in_item_order(self, five_items):
        """Test selected ids come back in item order, not click order."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_one(five_items[4].id)
        tracker.toggle_one(five_items[1].id)
        assert tracker.selected_ids == [five_items[1].id, five_items[4].id]


class TestSelectedTotal:

    def test_sum_of_selected_line_values(self, five_items):
        """Test the running total covers only selected leaves."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_one(five_items[0].id)
        tracker.toggle_one(five_items[2].id)
        assert tracker.selected_total() == Decimal("40")

    def test_total_with_pending_edits(self, five_items):
        """Test overlay overrides replace canonical values in the total."""
        tracker = SelectionTracker(five_items)
        overlay = EditOverlay(InMemoryLineItemStorage(), five_items)
        tracker.toggle_one(five_items[0].id)
        tracker.toggle_one(five_items[2].id)
        overlay.set_field(five_items[0].id, "price", "100")

        assert tracker.selected_total() == Decimal("40")
        assert tracker.selected_total(overlay) == Decimal("130")

    def test_empty_selection_total(self, five_items):
        assert SelectionTracker(five_items).selected_total() == Decimal("0")

    def test_count_selected_subset(self, five_items):
        """Test the per-unit 'k / n selected' counter."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_all()
        assert tracker.count_selected([five_items[0].id, five_items[1].id, uuid4()]) == 2


class TestSync:

    def test_vanished_ids_are_dropped(self, five_items):
        """Test sync keeps only ids still present."""
        tracker = SelectionTracker(five_items)
        tracker.toggle_all()
        tracker.sync(five_items[2:])
        assert tracker.selected_count == 3
        assert tracker.total_count == 3
        assert tracker.is_all_selected

    def test_clear(self, five_items):
        tracker = SelectionTracker(five_items)
        tracker.toggle_all()
        tracker.clear()
        assert tracker.selected_ids == []
