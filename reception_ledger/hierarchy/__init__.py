"""Hierarchy building and aggregation."""

from reception_ledger.hierarchy.aggregation import (
    bucket_total,
    combine_totals,
    line_value,
    signed_amount,
    totals_for_items,
)
from reception_ledger.hierarchy.grouping import (
    build_hierarchy,
    find_unit,
    iter_leaves,
)

__all__ = [
    "bucket_total",
    "build_hierarchy",
    "combine_totals",
    "find_unit",
    "iter_leaves",
    "line_value",
    "signed_amount",
    "totals_for_items",
]
