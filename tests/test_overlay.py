"""Tests for the edit overlay manager."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import SCOPE
from reception_ledger.audit import AuditLogger
from reception_ledger.editing import CommitInProgressError, EditOverlay
from reception_ledger.models import AuditEventType
from reception_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLineItemStorage,
    NotFoundError,
    PersistenceError,
)
from reception_ledger.validation import ValidationError


class GatedStorage(InMemoryLineItemStorage):
    """Storage whose updates block until the test opens the gate."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def update(self, item_id, fields):
        self.entered.set()
        await self.gate.wait()
        return await super().update(item_id, fields)


@pytest.fixture
def overlay(storage, sample_items):
    return EditOverlay(storage, sample_items)


class TestBeginEdit:

    def test_seeds_entry_with_canonical_values(self, overlay, sample_items):
        """Test begin_edit copies every editable field."""
        item = sample_items[0]
        assert overlay.begin_edit(item.id) is True
        assert overlay.entry(item.id) == item.editable_values()

    def test_begin_edit_is_idempotent(self, overlay, sample_items):
        """Test a second begin_edit leaves pending edits alone."""
        item_id = sample_items[0].id
        overlay.begin_edit(item_id)
        overlay.set_field(item_id, "price", "120")
        before = overlay.entry(item_id)

        assert overlay.begin_edit(item_id) is True
        assert overlay.entry(item_id) == before
        assert overlay.pending_ids == [item_id]

    def test_linked_item_is_not_editable(self, overlay, sample_items):
        """Test linked items get no entry."""
        assert overlay.begin_edit(sample_items[4].id) is False
        assert not overlay.has_entry(sample_items[4].id)

    def test_unknown_item(self, overlay):
        """Test an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            overlay.begin_edit(uuid4())


class TestSetField:

    def test_set_field_seeds_entry(self, overlay, sample_items):
        """Test set_field opens the entry when needed."""
        item_id = sample_items[0].id
        assert overlay.set_field(item_id, "description", " Ремонт_ID_1 ") is True
        assert overlay.entry(item_id)["description"] == "Ремонт_ID_1"

    def test_numeric_value_is_parsed(self, overlay, sample_items):
        """Test numbers are accepted as text with either separator."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "12,5")
        assert overlay.entry(item_id)["price"] == Decimal("12.5")

    def test_linked_item_is_rejected(self, overlay, sample_items):
        """Test set_field is a no-op on a linked item."""
        linked = sample_items[4]
        assert overlay.set_field(linked.id, "price", "1") is False
        assert overlay.pending_ids == []
        assert overlay.effective_value(linked.id) == linked

    def test_unknown_field(self, overlay, sample_items):
        """Test non-editable fields are rejected."""
        with pytest.raises(ValidationError):
            overlay.set_field(sample_items[0].id, "unit_id", "u9")
        assert not overlay.has_entry(sample_items[0].id)

    @pytest.mark.parametrize("value", ["abc", "-1", None, "nan"])
    def test_malformed_number(self, overlay, sample_items, value):
        """Test malformed or negative numbers are rejected."""
        with pytest.raises(ValidationError):
            overlay.set_field(sample_items[0].id, "quantity", value)


class TestEffectiveValues:

    def test_fall_through_per_field(self, overlay, sample_items):
        """Test overridden fields come from the entry, the rest from canonical."""
        item = sample_items[0]
        overlay.set_field(item.id, "price", "120")

        effective = overlay.effective_value(item.id)
        assert effective.price == Decimal("120")
        assert effective.quantity == item.quantity
        assert effective.description == item.description

    def test_canonical_is_never_modified(self, overlay, sample_items):
        """Test edits stay out of the canonical items."""
        item = sample_items[0]
        overlay.set_field(item.id, "price", "120")
        assert item.price == Decimal("100")

    def test_apply_keeps_order(self, overlay, sample_items):
        """Test apply returns the effective list in input order."""
        overlay.set_field(sample_items[1].id, "work_group", "Осмотр")
        applied = overlay.apply(sample_items)
        assert [i.id for i in applied] == [i.id for i in sample_items]
        assert applied[1].work_group == "Осмотр"
        assert applied[0] is sample_items[0]

    def test_changed_fields(self, overlay, sample_items):
        """Test only real differences are reported."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "100.00")
        overlay.set_field(item_id, "quantity", "3")
        assert overlay.changed_fields(item_id) == {"quantity": Decimal("3")}

    def test_cancel_discards_entry(self, overlay, sample_items):
        """Test cancel drops pending edits."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "1")
        assert overlay.cancel(item_id) is True
        assert overlay.effective_value(item_id) == sample_items[0]
        assert overlay.cancel(item_id) is False


class TestSync:

    def test_entries_of_vanished_items_are_purged(self, overlay, sample_items):
        """Test sync drops entries whose item is gone."""
        overlay.set_field(sample_items[0].id, "price", "1")
        overlay.set_field(sample_items[1].id, "price", "2")

        purged = overlay.sync(sample_items[1:])
        assert purged == [sample_items[0].id]
        assert overlay.pending_ids == [sample_items[1].id]

    def test_entries_of_newly_linked_items_are_purged(self, overlay, sample_items):
        """Test an item that became linked loses its pending edits."""
        item = sample_items[0]
        overlay.set_field(item.id, "price", "1")
        linked = item.model_copy(update={"linked_document_id": "act-2"})

        overlay.sync([linked, *sample_items[1:]])
        assert not overlay.has_entry(item.id)


class TestCommit:

    @pytest.mark.asyncio
    async def test_commit_writes_changed_fields(self, storage, overlay, sample_items):
        """Test commit sends only the changed fields and clears the entry."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "120")

        changes = await overlay.commit(item_id)

        assert changes == {"price": Decimal("120")}
        assert storage.get(item_id).price == Decimal("120")
        assert not overlay.has_entry(item_id)

    @pytest.mark.asyncio
    async def test_commit_without_changes_skips_storage(self, storage, overlay, sample_items):
        """Test an unchanged entry is cleared without a storage call."""
        item_id = sample_items[0].id
        overlay.begin_edit(item_id)

        assert await overlay.commit(item_id) == {}
        assert not overlay.has_entry(item_id)
        assert ("update", item_id) not in storage.calls

    @pytest.mark.asyncio
    async def test_commit_without_entry(self, storage, overlay, sample_items):
        """Test committing an item with no entry does nothing."""
        assert await overlay.commit(sample_items[0].id) == {}
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_commit_of_unknown_item(self, storage, overlay):
        """Test an id outside the canonical list raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await overlay.commit(uuid4())
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_commit_after_item_vanished(self, storage, overlay, sample_items):
        """Test a purged entry is reported instead of committing nothing."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "150")
        overlay.sync(sample_items[1:])

        with pytest.raises(NotFoundError):
            await overlay.commit(item_id)
        assert not any(call[0] == "update" for call in storage.calls)

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_entry(self, storage, overlay, sample_items):
        """Test a storage failure propagates and the edit survives."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "120")
        storage.fail_next("update")

        with pytest.raises(PersistenceError):
            await overlay.commit(item_id)

        assert overlay.entry(item_id)["price"] == Decimal("120")
        assert not overlay.is_committing(item_id)
        assert storage.get(item_id).price == Decimal("100")

    @pytest.mark.asyncio
    async def test_failed_commit_is_audited(self, storage, sample_items):
        """Test a failed commit produces an item_update_failed event."""
        audit_storage = InMemoryAuditStorage()
        overlay = EditOverlay(storage, sample_items, audit_logger=AuditLogger(audit_storage))
        overlay.set_field(sample_items[0].id, "price", "120")
        storage.fail_next("update")

        with pytest.raises(PersistenceError):
            await overlay.commit(sample_items[0].id)

        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.ITEM_UPDATE_FAILED,
        ]

    @pytest.mark.asyncio
    async def test_second_commit_is_rejected_while_in_flight(self, sample_items):
        """Test at most one commit per item can be in flight."""
        storage = GatedStorage({SCOPE: sample_items})
        audit_storage = InMemoryAuditStorage()
        overlay = EditOverlay(storage, sample_items, audit_logger=AuditLogger(audit_storage))
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "120")

        first = asyncio.create_task(overlay.commit(item_id))
        await storage.entered.wait()
        assert overlay.in_flight_ids == [item_id]

        with pytest.raises(CommitInProgressError):
            await overlay.commit(item_id)

        storage.gate.set()
        assert await first == {"price": Decimal("120")}
        assert overlay.in_flight_ids == []
        assert AuditEventType.COMMIT_REJECTED in [e.event_type for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_distinct_items_commit_concurrently(self, sample_items):
        """Test commits for different ids do not block each other."""
        storage = GatedStorage({SCOPE: sample_items})
        overlay = EditOverlay(storage, sample_items)
        first, second = sample_items[0].id, sample_items[1].id
        overlay.set_field(first, "price", "1")
        overlay.set_field(second, "price", "2")

        tasks = [
            asyncio.create_task(overlay.commit(first)),
            asyncio.create_task(overlay.commit(second)),
        ]
        await storage.entered.wait()
        await asyncio.sleep(0)
        assert set(overlay.in_flight_ids) == {first, second}

        storage.gate.set()
        await asyncio.gather(*tasks)
        assert overlay.pending_ids == []

    @pytest.mark.asyncio
    async def test_edit_during_commit_stays_pending(self, sample_items):
        """Test a field changed while the commit is in flight is not lost."""
        storage = GatedStorage({SCOPE: sample_items})
        overlay = EditOverlay(storage, sample_items)
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "120")

        task = asyncio.create_task(overlay.commit(item_id))
        await storage.entered.wait()
        overlay.set_field(item_id, "quantity", "5")
        storage.gate.set()
        await task

        assert overlay.has_entry(item_id)
        assert overlay.entry(item_id)["quantity"] == Decimal("5")

    @pytest.mark.asyncio
    async def test_commit_of_vanished_item(self, storage, overlay, sample_items):
        """Test storage NotFoundError propagates and the entry is kept."""
        item_id = sample_items[0].id
        overlay.set_field(item_id, "price", "1")
        await storage.delete(item_id)

        with pytest.raises(NotFoundError):
            await overlay.commit(item_id)
        assert overlay.has_entry(item_id)
