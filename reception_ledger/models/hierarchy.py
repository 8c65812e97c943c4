"""
Hierarchy Models

Read-only tree built from a flat list of line items:

    Unit -> WorkGroup -> BaseItem -> TransactionBucket -> LineItem

DESIGN DECISION: Nodes are frozen and carry their totals, computed once when
the node is built. The tree has no mutation methods; it is rebuilt in full
whenever the item list or the edit overlay changes, so a node can never go
stale relative to the items it was built from.
"""

from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from reception_ledger.models.line_item import LineItem, TransactionType


class Totals(BaseModel):
    """
    Roll-up totals of a node.

    All three magnitudes are non-negative; the sign of an expense only
    appears in `net`.
    """
    model_config = ConfigDict(frozen=True)

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    unclassified: Decimal = Decimal("0")
    item_count: int = Field(default=0, ge=0)

    @property
    def net(self) -> Decimal:
        return self.income - self.expense

    @property
    def gross(self) -> Decimal:
        """Sum of every line value below the node, whatever its type."""
        return self.income + self.expense + self.unclassified


class TransactionBucketNode(BaseModel):
    """Leaf-owning node: all items of one transaction type under a base item."""
    model_config = ConfigDict(frozen=True)

    transaction_type: TransactionType
    label: str
    items: tuple[LineItem, ...]
    total: Decimal
    totals: Totals

    def iter_items(self) -> Iterator[LineItem]:
        yield from self.items


class BaseItemNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    is_unspecified: bool = False
    buckets: tuple[TransactionBucketNode, ...]
    totals: Totals

    def iter_items(self) -> Iterator[LineItem]:
        for bucket in self.buckets:
            yield from bucket.iter_items()

    def bucket(self, transaction_type: TransactionType) -> Optional[TransactionBucketNode]:
        for bucket in self.buckets:
            if bucket.transaction_type == transaction_type:
                return bucket
        return None


class WorkGroupNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    is_unspecified: bool = False
    base_items: tuple[BaseItemNode, ...]
    totals: Totals

    def iter_items(self) -> Iterator[LineItem]:
        for base_item in self.base_items:
            yield from base_item.iter_items()


class UnitNode(BaseModel):
    """Top-level node: one serviced unit of a reception."""
    model_config = ConfigDict(frozen=True)

    unit_id: str
    name: str
    subdivision_name: Optional[str] = None
    position_number: Optional[int] = None
    is_unspecified: bool = False
    work_groups: tuple[WorkGroupNode, ...]
    totals: Totals

    def iter_items(self) -> Iterator[LineItem]:
        for work_group in self.work_groups:
            yield from work_group.iter_items()

    @property
    def item_ids(self) -> list[UUID]:
        return [item.id for item in self.iter_items()]


class HierarchySnapshot(BaseModel):
    """The whole tree plus grand totals."""
    model_config = ConfigDict(frozen=True)

    units: tuple[UnitNode, ...] = ()
    totals: Totals = Totals()

    def iter_items(self) -> Iterator[LineItem]:
        for unit in self.units:
            yield from unit.iter_items()

    @property
    def leaf_ids(self) -> list[UUID]:
        return [item.id for item in self.iter_items()]

    @property
    def is_empty(self) -> bool:
        return not self.units
