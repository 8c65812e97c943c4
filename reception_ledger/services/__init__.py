"""Services package."""

from reception_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLineItemStorage,
    LineItemStorageInterface,
    NotFoundError,
    PersistenceError,
)

__all__ = [
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLineItemStorage",
    "LineItemStorageInterface",
    "NotFoundError",
    "PersistenceError",
]
