"""
Storage Services Package

Provides the abstract persistence interfaces the engine consumes and an
in-memory reference implementation.
"""

from reception_ledger.services.storage.interface import (
    AuditStorageInterface,
    LineItemStorageInterface,
    NotFoundError,
    PersistenceError,
)
from reception_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLineItemStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LineItemStorageInterface",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLineItemStorage",
]
