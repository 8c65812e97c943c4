"""Shared pytest fixtures for Reception Ledger tests."""

from decimal import Decimal

import pytest

from reception_ledger.audit import AuditLogger
from reception_ledger.config import get_settings
from reception_ledger.models.line_item import LineItem
from reception_ledger.orchestrator import ReceptionEditSession
from reception_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLineItemStorage,
)


SCOPE = "reception-1"


def make_item(
    description="Замена_ID_1",
    unit_id="unit-1",
    work_group="Ремонт",
    transaction_type="Расходы",
    quantity="1",
    price="100",
    **extra,
):
    """LineItem with sensible defaults; numbers may be given as strings."""
    return LineItem(
        description=description,
        unit_id=unit_id,
        work_group=work_group,
        transaction_type=transaction_type,
        quantity=Decimal(quantity),
        price=Decimal(price),
        **extra,
    )


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; start and finish every test with a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_items():
    """Two units, mixed work groups and transaction types, one linked item."""
    return [
        make_item("Замена_ID_1", unit_id="u1", unit_name="Насос", position_number=2,
                  transaction_type="Доходы", quantity="2", price="100"),
        make_item("Замена_ID_2", unit_id="u1", unit_name="Насос", position_number=2,
                  transaction_type="Расходы", quantity="1", price="50"),
        make_item("Диагностика", unit_id="u1", unit_name="Насос", position_number=2,
                  work_group="Осмотр", transaction_type="Доходы", price="30"),
        make_item("Замена_ID_3", unit_id="u2", unit_name="Компрессор", position_number=1,
                  transaction_type="Доходы", price="70"),
        make_item("Фильтр_ID_9", unit_id="u2", unit_name="Компрессор", position_number=1,
                  transaction_type="Расходы", quantity="3", price="10",
                  linked_document_id="act-17"),
    ]


@pytest.fixture
def storage(sample_items):
    return InMemoryLineItemStorage({SCOPE: sample_items})


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def session(storage, audit_logger):
    """An editing session over SCOPE; call `await session.load()` first."""
    return ReceptionEditSession(storage, SCOPE, audit_logger=audit_logger)
