"""
Grouping Engine

Builds the read-only hierarchy

    Unit -> WorkGroup -> BaseItem -> TransactionBucket -> LineItem

from a flat list of line items in one left-to-right pass. Every level is an
insertion-ordered dict, so siblings keep the arrival order of their first
item. Units are the exception: they are ordered by position number (stable,
units without one last), which is how receptions number their devices.

The function is total: blank grouping fields go to the level's
"unspecified" bucket, unknown transaction tags go to the UNCLASSIFIED bucket,
and nothing is ever dropped.
"""

from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from reception_ledger.config import HierarchySettings, get_settings
from reception_ledger.hierarchy.aggregation import (
    bucket_total,
    bucket_totals,
    combine_totals,
)
from reception_ledger.models.hierarchy import (
    BaseItemNode,
    HierarchySnapshot,
    TransactionBucketNode,
    UnitNode,
    WorkGroupNode,
)
from reception_ledger.models.line_item import (
    TRANSACTION_TYPE_ORDER,
    BaseItemKey,
    LineItem,
    TransactionType,
    classify_transaction_type,
)

if TYPE_CHECKING:
    from reception_ledger.editing.overlay import EditOverlay


# None is the key of the "unspecified" bucket at every level
_Buckets = dict[TransactionType, list[LineItem]]
_BaseItems = dict[Optional[str], _Buckets]
_WorkGroups = dict[Optional[str], _BaseItems]


def _key(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_hierarchy(
    items: Iterable[LineItem],
    overlay: Optional["EditOverlay"] = None,
    settings: Optional[HierarchySettings] = None,
) -> HierarchySnapshot:
    """
    Group line items into the hierarchy and compute every node's totals.

    Args:
        items: Canonical items in arrival order
        overlay: Pending edits; when given, items are grouped by their
                 effective (edited) values
        settings: Grouping conventions, defaults to the configured ones

    Returns:
        A frozen snapshot; never raises on well-typed input
    """
    settings = settings or get_settings().hierarchy
    if overlay is not None:
        items = overlay.apply(items)

    income_tags = settings.income_tag_set
    expense_tags = settings.expense_tag_set
    delimiter = settings.id_delimiter

    tree: dict[Optional[str], _WorkGroups] = {}
    unit_heads: dict[Optional[str], LineItem] = {}

    for item in items:
        unit_key = _key(item.unit_id)
        work_groups = tree.get(unit_key)
        if work_groups is None:
            work_groups = tree[unit_key] = {}
            unit_heads[unit_key] = item
        elif not unit_heads[unit_key].unit_name and item.unit_name:
            unit_heads[unit_key] = item

        base_items = work_groups.setdefault(_key(item.work_group), {})
        label = _key(BaseItemKey.parse(item.description, delimiter).label)
        buckets = base_items.setdefault(label, {})
        kind = classify_transaction_type(item.transaction_type, income_tags, expense_tags)
        buckets.setdefault(kind, []).append(item)

    units = [
        _unit_node(unit_key, work_groups, unit_heads[unit_key], settings)
        for unit_key, work_groups in tree.items()
    ]
    units.sort(key=lambda u: (u.position_number is None, u.position_number or 0))

    return HierarchySnapshot(
        units=tuple(units),
        totals=combine_totals(u.totals for u in units),
    )


def _bucket_node(
    kind: TransactionType,
    items: list[LineItem],
    settings: HierarchySettings,
) -> TransactionBucketNode:
    total = bucket_total(items)
    return TransactionBucketNode(
        transaction_type=kind,
        label=_key(items[0].transaction_type) or settings.unspecified_label,
        items=tuple(items),
        total=total,
        totals=bucket_totals(kind, total, len(items)),
    )


def _base_item_node(
    label: Optional[str],
    buckets: _Buckets,
    settings: HierarchySettings,
) -> BaseItemNode:
    # Only non-empty buckets exist in the dict, so empty ones are never emitted
    children = tuple(
        _bucket_node(kind, buckets[kind], settings)
        for kind in TRANSACTION_TYPE_ORDER
        if kind in buckets
    )
    return BaseItemNode(
        label=label or settings.unspecified_label,
        is_unspecified=label is None,
        buckets=children,
        totals=combine_totals(b.totals for b in children),
    )


def _work_group_node(
    label: Optional[str],
    base_items: _BaseItems,
    settings: HierarchySettings,
) -> WorkGroupNode:
    children = tuple(
        _base_item_node(base_label, buckets, settings)
        for base_label, buckets in base_items.items()
    )
    return WorkGroupNode(
        label=label or settings.unspecified_label,
        is_unspecified=label is None,
        base_items=children,
        totals=combine_totals(b.totals for b in children),
    )


def _unit_node(
    unit_key: Optional[str],
    work_groups: _WorkGroups,
    head: LineItem,
    settings: HierarchySettings,
) -> UnitNode:
    children = tuple(
        _work_group_node(label, base_items, settings)
        for label, base_items in work_groups.items()
    )
    return UnitNode(
        unit_id=unit_key or "",
        name=head.unit_name or unit_key or settings.unspecified_label,
        subdivision_name=head.subdivision_name,
        position_number=head.position_number,
        is_unspecified=unit_key is None,
        work_groups=children,
        totals=combine_totals(w.totals for w in children),
    )


def iter_leaves(snapshot: HierarchySnapshot) -> Iterator[LineItem]:
    """Yield every line item of the tree in display order."""
    return snapshot.iter_items()


def find_unit(snapshot: HierarchySnapshot, unit_id: str) -> Optional[UnitNode]:
    for unit in snapshot.units:
        if unit.unit_id == unit_id:
            return unit
    return None
