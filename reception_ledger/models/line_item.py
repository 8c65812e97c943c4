"""
Core Data Models for Reception Ledger

These models define the strict schemas for the flat list of financial line
items that the hierarchy engine groups and totals.
They are designed to:
1. Enforce type safety at runtime
2. Be immutable, so a snapshot can never be patched behind the engine's back
3. Be serializable for storage and logging

DESIGN DECISION: A base item's description is a display label optionally
followed by a reserved delimiter and an opaque suffix (e.g. "Замена_ID_42").
The suffix identifies the item to the system it was imported from and must
survive every rename, so it is modelled as a typed two-part key instead of
being split ad hoc wherever it is needed.
"""

from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ID_DELIMITER = "_ID_"

# Fields a user may change through the edit overlay
EDITABLE_FIELDS = (
    "description",
    "work_group",
    "transaction_type",
    "quantity",
    "price",
)

NUMERIC_FIELDS = ("quantity", "price")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Canonical transaction types.

    Raw tags on line items are free text (they come from spreadsheets);
    anything that is not a known income or expense alias is UNCLASSIFIED
    rather than dropped.
    """
    INCOME = "income"
    EXPENSE = "expense"
    UNCLASSIFIED = "unclassified"


# Bucket order inside a base item node
TRANSACTION_TYPE_ORDER = (
    TransactionType.INCOME,
    TransactionType.EXPENSE,
    TransactionType.UNCLASSIFIED,
)


def classify_transaction_type(
    tag: Optional[str],
    income_tags: Iterable[str] = ("income",),
    expense_tags: Iterable[str] = ("expense",),
) -> TransactionType:
    """Map a raw transaction-type tag onto a canonical TransactionType."""
    if not tag:
        return TransactionType.UNCLASSIFIED
    folded = tag.strip().casefold()
    if folded in {t.casefold() for t in income_tags}:
        return TransactionType.INCOME
    if folded in {t.casefold() for t in expense_tags}:
        return TransactionType.EXPENSE
    return TransactionType.UNCLASSIFIED


# =============================================================================
# BASE ITEM KEY
# =============================================================================

class BaseItemKey(BaseModel):
    """
    Two-part key of a base item: (display label, opaque suffix).

    The suffix is everything after the first delimiter, kept verbatim.
    None means the description carried no delimiter at all, which is
    different from an empty suffix ("Foo_ID_").
    """
    model_config = ConfigDict(frozen=True)

    label: str
    suffix: Optional[str] = None
    delimiter: str = DEFAULT_ID_DELIMITER

    @classmethod
    def parse(
        cls,
        description: str,
        delimiter: str = DEFAULT_ID_DELIMITER,
    ) -> "BaseItemKey":
        """Split a description on the reserved delimiter."""
        description = description or ""
        if delimiter in description:
            label, suffix = description.split(delimiter, 1)
            return cls(label=label.strip(), suffix=suffix, delimiter=delimiter)
        return cls(label=description.strip(), delimiter=delimiter)

    @property
    def has_suffix(self) -> bool:
        return self.suffix is not None

    def with_label(self, label: str) -> "BaseItemKey":
        """Return a key with a new label and the same suffix."""
        return BaseItemKey(
            label=label.strip(),
            suffix=self.suffix,
            delimiter=self.delimiter,
        )

    def render(self) -> str:
        """Join label and suffix back into a description."""
        if self.suffix is None:
            return self.label
        return f"{self.label}{self.delimiter}{self.suffix}"


# =============================================================================
# CORE LINE ITEM MODEL
# =============================================================================

class LineItem(BaseModel):
    """
    One financial transaction record of a reception.

    Items are grouped Unit -> Work group -> Base item -> Transaction type.
    An item linked to a downstream document (linked_document_id set) is
    immutable but still counts towards every total.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Opaque item identifier"
    )

    # Unit (the serviced device the item belongs to)
    unit_id: str = Field(
        default="",
        max_length=100,
        description="Identifier of the owning unit"
    )
    unit_name: str = Field(
        default="",
        max_length=500,
        description="Service description of the owning unit"
    )
    subdivision_name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Subdivision the unit was received from"
    )
    position_number: Optional[int] = Field(
        default=None,
        ge=0,
        description="Position of the unit within its reception"
    )

    # Grouping attributes
    work_group: str = Field(
        default="",
        max_length=200,
        description="Work category label"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Base item label, optionally with an opaque suffix"
    )
    transaction_type: str = Field(
        default="",
        max_length=50,
        description="Raw transaction-type tag"
    )

    # Numeric attributes
    quantity: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Quantity"
    )
    price: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Unit price"
    )

    # Downstream linkage
    linked_document_id: Optional[str] = Field(
        default=None,
        description="Document that already references this item"
    )

    @property
    def is_linked(self) -> bool:
        """Linked items are referenced elsewhere and cannot be edited."""
        return bool(self.linked_document_id)

    @property
    def line_value(self) -> Decimal:
        return self.quantity * self.price

    def base_key(self, delimiter: str = DEFAULT_ID_DELIMITER) -> BaseItemKey:
        return BaseItemKey.parse(self.description, delimiter)

    def editable_values(self) -> dict:
        """Current values of the user-editable fields."""
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


class NewLineItem(BaseModel):
    """Fields accepted when adding an item to a unit."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=500)
    work_group: str = Field(..., min_length=1, max_length=200)
    transaction_type: str = Field(..., min_length=1, max_length=50)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, numeric parsing, bounds)
    Stage 2: Semantic validation (classification, sanity limits)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
