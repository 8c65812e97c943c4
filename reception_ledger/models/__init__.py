"""
Data Models Package

This package contains all Pydantic models used in the Reception Ledger system.
All data flowing through the engine must conform to these schemas.
"""

from reception_ledger.models.line_item import (
    DEFAULT_ID_DELIMITER,
    EDITABLE_FIELDS,
    BaseItemKey,
    LineItem,
    NewLineItem,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    classify_transaction_type,
)
from reception_ledger.models.hierarchy import (
    BaseItemNode,
    HierarchySnapshot,
    Totals,
    TransactionBucketNode,
    UnitNode,
    WorkGroupNode,
)
from reception_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Line item models
    "DEFAULT_ID_DELIMITER",
    "EDITABLE_FIELDS",
    "BaseItemKey",
    "LineItem",
    "NewLineItem",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "classify_transaction_type",
    # Hierarchy models
    "BaseItemNode",
    "HierarchySnapshot",
    "Totals",
    "TransactionBucketNode",
    "UnitNode",
    "WorkGroupNode",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
