"""Editing state: pending edits, selection and label renames."""

from reception_ledger.editing.labels import (
    LabelLevel,
    changed_items,
    current_label,
    rename_label,
)
from reception_ledger.editing.overlay import CommitInProgressError, EditOverlay
from reception_ledger.editing.selection import SelectionTracker

__all__ = [
    "CommitInProgressError",
    "EditOverlay",
    "LabelLevel",
    "SelectionTracker",
    "changed_items",
    "current_label",
    "rename_label",
]
