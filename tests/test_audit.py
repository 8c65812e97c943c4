"""Tests for the audit logger."""

from uuid import uuid4

import pytest

from reception_ledger.audit import AuditLogger, create_correlation_id
from reception_ledger.models import AuditEventBuilder, AuditEventType
from reception_ledger.services.storage import InMemoryAuditStorage


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("audit sink unavailable")


class TestAuditLogger:

    @pytest.mark.asyncio
    async def test_events_reach_storage(self):
        """Test helpers build and persist events."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        item_id = uuid4()

        await logger.log_item_deleted(item_id)

        assert len(storage.events) == 1
        assert storage.events[0].event_type == AuditEventType.ITEM_DELETED
        assert storage.events[0].entity_id == str(item_id)

    @pytest.mark.asyncio
    async def test_correlation_id_attached(self):
        """Test every event carries the logger's correlation id."""
        storage = InMemoryAuditStorage()
        correlation_id = create_correlation_id()
        logger = AuditLogger(storage, correlation_id=correlation_id)

        await logger.log_items_loaded("reception-1", 3)
        await logger.log_labels_renamed("u1", "work_group", "А", "Б", 2)

        assert {e.correlation_id for e in storage.events} == {correlation_id}

    @pytest.mark.asyncio
    async def test_local_only_logging(self):
        """Test logging without storage succeeds."""
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.item_deleted(uuid4())) is True

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):
        """Test a broken audit sink never interrupts the caller."""
        logger = AuditLogger(BrokenAuditStorage())
        assert await logger.log(AuditEventBuilder.item_deleted(uuid4())) is False

    @pytest.mark.asyncio
    async def test_events_by_entity(self):
        """Test events can be read back per entity."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        item_id = uuid4()
        await logger.log_item_updated(item_id, {"price": "1"})
        await logger.log_item_deleted(uuid4())

        events = await storage.get_events_by_entity("line_item", str(item_id))
        assert [e.event_type for e in events] == [AuditEventType.ITEM_UPDATED]
        recent = await storage.get_recent_events(limit=1)
        assert recent[0].event_type == AuditEventType.ITEM_DELETED
