"""
Label Reconciler

Renaming a grouping label renames it on every item that shares it, but only
within the target item's unit: the same base item name legitimately recurs
under different units and those must not be touched.

For base items only the display label is rewritten. The opaque suffix after
the reserved delimiter is carried over verbatim, so "Замена_ID_1" renamed to
"Ремонт" becomes "Ремонт_ID_1".

Linked items are immutable and keep their old label.
"""

from enum import Enum
from typing import Iterable, Optional, Sequence
from uuid import UUID

from reception_ledger.config import HierarchySettings, get_settings
from reception_ledger.models.line_item import BaseItemKey, LineItem, ValidationIssue
from reception_ledger.services.storage import NotFoundError
from reception_ledger.validation import ValidationError


class LabelLevel(str, Enum):
    """Hierarchy level whose label is renamed, and the item field it lives in."""
    UNIT = "unit"
    SUBDIVISION = "subdivision"
    WORK_GROUP = "work_group"
    BASE_ITEM = "base_item"

    @property
    def field(self) -> str:
        return {
            LabelLevel.UNIT: "unit_name",
            LabelLevel.SUBDIVISION: "subdivision_name",
            LabelLevel.WORK_GROUP: "work_group",
            LabelLevel.BASE_ITEM: "description",
        }[self]


def current_label(item: LineItem, level: LabelLevel, delimiter: str) -> str:
    """The label an item shows at a given level (the grouping key)."""
    if level == LabelLevel.BASE_ITEM:
        return BaseItemKey.parse(item.description, delimiter).label
    return (getattr(item, level.field) or "").strip()


def _reject(message: str) -> ValidationError:
    return ValidationError(message, [ValidationIssue(
        field="label",
        issue_type="invalid_value",
        message=message,
        severity="error",
    )])


def rename_label(
    items: Sequence[LineItem],
    target_id: UUID,
    level: LabelLevel,
    new_label: str,
    settings: Optional[HierarchySettings] = None,
) -> list[LineItem]:
    """
    Rename the label of `target_id` at `level` across its unit.

    Returns a new list in the same order; the input is not modified.

    Raises:
        NotFoundError: target_id is not in `items`
        ValidationError: blank label, or a base label containing the delimiter
    """
    settings = settings or get_settings().hierarchy
    delimiter = settings.id_delimiter

    target = next((item for item in items if item.id == target_id), None)
    if target is None:
        raise NotFoundError(f"Line item not found: {target_id}")

    new_label = (new_label or "").strip()
    if not new_label:
        raise _reject("New label cannot be blank")
    if level == LabelLevel.BASE_ITEM and delimiter in new_label:
        raise _reject(f"Item name cannot contain the reserved delimiter {delimiter!r}")

    old_label = current_label(target, level, delimiter)
    if old_label == new_label:
        return list(items)

    renamed = []
    for item in items:
        if (
            item.is_linked
            or item.unit_id != target.unit_id
            or current_label(item, level, delimiter) != old_label
        ):
            renamed.append(item)
        elif level == LabelLevel.BASE_ITEM:
            key = BaseItemKey.parse(item.description, delimiter)
            renamed.append(item.model_copy(
                update={"description": key.with_label(new_label).render()}
            ))
        else:
            renamed.append(item.model_copy(update={level.field: new_label}))
    return renamed


def changed_items(
    before: Iterable[LineItem],
    after: Iterable[LineItem],
) -> list[LineItem]:
    """Items of `after` that differ from their counterpart in `before`."""
    previous = {item.id: item for item in before}
    return [item for item in after if previous.get(item.id) != item]
