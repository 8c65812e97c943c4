"""
Aggregation Calculator

Per-node totals for the line item hierarchy.

Sign convention: every stored magnitude (bucket total, income, expense,
unclassified) is non-negative. The transaction type only contributes a sign
when income and expense are combined into `net`, or when an amount is
formatted for display through `signed_amount`.
"""

from decimal import Decimal
from typing import Iterable, Optional

from reception_ledger.config import HierarchySettings, get_settings
from reception_ledger.models.hierarchy import Totals
from reception_ledger.models.line_item import (
    LineItem,
    TransactionType,
    classify_transaction_type,
)


ZERO = Decimal("0")


def line_value(item: LineItem) -> Decimal:
    return item.quantity * item.price


def bucket_total(items: Iterable[LineItem]) -> Decimal:
    """Sum of line values; always non-negative."""
    return sum((line_value(item) for item in items), ZERO)


def bucket_totals(transaction_type: TransactionType, total: Decimal, item_count: int) -> Totals:
    """Totals of a single transaction bucket."""
    return Totals(
        income=total if transaction_type == TransactionType.INCOME else ZERO,
        expense=total if transaction_type == TransactionType.EXPENSE else ZERO,
        unclassified=total if transaction_type == TransactionType.UNCLASSIFIED else ZERO,
        item_count=item_count,
    )


def combine_totals(parts: Iterable[Totals]) -> Totals:
    """Sum child totals into the parent's totals."""
    income = expense = unclassified = ZERO
    item_count = 0
    for part in parts:
        income += part.income
        expense += part.expense
        unclassified += part.unclassified
        item_count += part.item_count
    return Totals(
        income=income,
        expense=expense,
        unclassified=unclassified,
        item_count=item_count,
    )


def totals_for_items(
    items: Iterable[LineItem],
    settings: Optional[HierarchySettings] = None,
) -> Totals:
    """
    Totals of a flat item list, computed without building the tree.

    Every node of a tree built from the same items must agree with this.
    """
    settings = settings or get_settings().hierarchy
    income_tags = settings.income_tag_set
    expense_tags = settings.expense_tag_set

    income = expense = unclassified = ZERO
    item_count = 0
    for item in items:
        value = line_value(item)
        kind = classify_transaction_type(item.transaction_type, income_tags, expense_tags)
        if kind == TransactionType.INCOME:
            income += value
        elif kind == TransactionType.EXPENSE:
            expense += value
        else:
            unclassified += value
        item_count += 1
    return Totals(
        income=income,
        expense=expense,
        unclassified=unclassified,
        item_count=item_count,
    )


def signed_amount(transaction_type: TransactionType, value: Decimal) -> Decimal:
    """Display sign of an amount: expenses are shown negative."""
    if transaction_type == TransactionType.EXPENSE:
        return -abs(value)
    return abs(value)
