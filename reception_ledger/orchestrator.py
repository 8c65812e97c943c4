"""
Editing Session Orchestrator

This module ties together all the components for one editing session over
a scope of line items:
1. Load (storage -> canonical list -> overlay / selection sync)
2. Edit (overlay -> commit -> reconcile)
3. Add / delete / rename (validate -> storage -> reconcile)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage without passing validation first
- Linked items are never written
- Storage errors propagate unchanged; nothing is retried here
- Every write is audited

Reconciliation after a write reloads the scope from storage. With
`merge_after_commit` enabled the written values are merged into the
canonical list locally instead.
"""

from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional
from uuid import UUID

import structlog

from reception_ledger.audit import AuditLogger
from reception_ledger.config import Settings, get_settings
from reception_ledger.editing import (
    EditOverlay,
    LabelLevel,
    SelectionTracker,
    changed_items,
    current_label,
    rename_label,
)
from reception_ledger.hierarchy import build_hierarchy
from reception_ledger.models.hierarchy import HierarchySnapshot
from reception_ledger.models.line_item import (
    LineItem,
    TransactionType,
    ValidationIssue,
    classify_transaction_type,
)
from reception_ledger.services.storage import (
    AuditStorageInterface,
    LineItemStorageInterface,
    NotFoundError,
    PersistenceError,
)
from reception_ledger.validation import LineItemValidator, ValidationError


class ReceptionEditSession:
    """
    One user's editing session over the line items of a scope.

    Owns the canonical list, the edit overlay and the selection. Runs on a
    single event loop; not thread-safe.

    `needs_reload` is set whenever the canonical list is known to be stale
    (a target vanished, a multi-item write stopped halfway, or the reload
    after a successful write failed).
    """

    def __init__(
        self,
        storage: LineItemStorageInterface,
        scope_id: str,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LineItemValidator] = None,
    ):
        self._storage = storage
        self._scope_id = scope_id
        self._settings = settings or get_settings()
        self._audit_logger = audit_logger
        self._validator = validator or LineItemValidator(self._settings)
        self._logger = structlog.get_logger(__name__)

        self._items: list[LineItem] = []
        self._overlay = EditOverlay(
            storage,
            validator=self._validator,
            audit_logger=audit_logger,
        )
        self._selection = SelectionTracker()
        self.needs_reload = False

    # ------------------------------------------------------------------
    # Canonical list
    # ------------------------------------------------------------------

    @property
    def scope_id(self) -> str:
        return self._scope_id

    @property
    def items(self) -> list[LineItem]:
        """Canonical items, as storage returned them."""
        return list(self._items)

    @property
    def overlay(self) -> EditOverlay:
        return self._overlay

    @property
    def selection(self) -> SelectionTracker:
        return self._selection

    def _set_items(self, items: Iterable[LineItem]) -> None:
        self._items = list(items)
        self._overlay.sync(self._items)
        self._selection.sync(self._items)

    def _find(self, item_id: UUID) -> LineItem:
        for item in self._items:
            if item.id == item_id:
                return item
        self.needs_reload = True
        raise NotFoundError(f"Line item not found: {item_id}")

    async def load(self) -> list[LineItem]:
        """
        Fetch the scope from storage and make it the canonical list.

        On failure the previous state is kept and the error propagates.
        """
        try:
            items = await self._storage.fetch_all(self._scope_id)
        except PersistenceError as e:
            self._logger.error("load_failed", scope_id=self._scope_id, error=str(e))
            self.needs_reload = True
            if self._audit_logger:
                await self._audit_logger.log_load_failed(self._scope_id, str(e))
            raise

        self._set_items(items)
        self.needs_reload = False
        if self._audit_logger:
            await self._audit_logger.log_items_loaded(self._scope_id, len(self._items))
        return self.items

    async def reload(self) -> list[LineItem]:
        return await self.load()

    def snapshot(self) -> HierarchySnapshot:
        """The tree of effective values (canonical items plus pending edits)."""
        return build_hierarchy(
            self._items,
            overlay=self._overlay,
            settings=self._settings.hierarchy,
        )

    # ------------------------------------------------------------------
    # Edit overlay
    # ------------------------------------------------------------------

    def begin_edit(self, item_id: UUID) -> bool:
        return self._overlay.begin_edit(item_id)

    def set_field(self, item_id: UUID, field: str, value: Any) -> bool:
        return self._overlay.set_field(item_id, field, value)

    def cancel(self, item_id: UUID) -> bool:
        return self._overlay.cancel(item_id)

    def effective_value(self, item_id: UUID) -> LineItem:
        return self._overlay.effective_value(item_id)

    async def commit(self, item_id: UUID) -> dict[str, Any]:
        """
        Commit the pending edits of one item and reconcile.

        Returns:
            The fields written (empty if there was nothing to write)

        Raises:
            CommitInProgressError: A commit for this item is in flight
            NotFoundError: The item is gone; `needs_reload` is set
            PersistenceError: Storage failed; the pending edits are kept
        """
        try:
            changes = await self._overlay.commit(item_id)
        except NotFoundError:
            self.needs_reload = True
            raise

        if changes:
            await self._reconcile(
                lambda items: [
                    item.model_copy(update=changes) if item.id == item_id else item
                    for item in items
                ]
            )
        return changes

    async def _reconcile(
        self,
        merge: Callable[[list[LineItem]], Iterable[LineItem]],
    ) -> None:
        """
        Bring the canonical list up to date after a successful write.

        The write has already landed, so a failed reload is not raised.
        The written values are merged locally and `needs_reload` stays set.
        """
        if self._settings.app.merge_after_commit:
            self._set_items(merge(self._items))
            return

        try:
            await self.reload()
        except PersistenceError as e:
            self._set_items(merge(self._items))
            self._logger.warning("reconcile_reload_failed", scope_id=self._scope_id)
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="reconcile_reload_failed",
                    error_message=str(e),
                    details={"scope_id": self._scope_id},
                )

    # ------------------------------------------------------------------
    # Add / delete
    # ------------------------------------------------------------------

    def _canonical_tag(self, tag: str) -> str:
        hierarchy = self._settings.hierarchy
        kind = classify_transaction_type(
            tag,
            hierarchy.income_tag_set,
            hierarchy.expense_tag_set,
        )
        if kind == TransactionType.INCOME:
            return hierarchy.canonical_income_tag
        if kind == TransactionType.EXPENSE:
            return hierarchy.canonical_expense_tag
        return tag

    async def add_item(self, unit_id: str, fields: Mapping[str, Any]) -> LineItem:
        """
        Validate and insert a new line item into a unit.

        Quantity defaults to 1 and price to 0. The transaction type alias is
        written as the canonical income / expense tag.

        Raises:
            ValidationError: Missing or malformed fields; storage not called
            PersistenceError: Storage failed
        """
        try:
            new_item = self._validator.ensure_valid(fields)
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    stage="add",
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in e.issues
                    ],
                )
            raise

        new_item = new_item.model_copy(
            update={"transaction_type": self._canonical_tag(new_item.transaction_type)}
        )
        try:
            created = await self._storage.insert(unit_id, new_item)
        except NotFoundError:
            self.needs_reload = True
            raise

        if self._audit_logger:
            await self._audit_logger.log_item_added(
                item_id=created.id,
                unit_id=unit_id,
                description=created.description,
            )
        await self._reconcile(lambda items: [*items, created])
        return created

    async def delete_item(self, item_id: UUID) -> None:
        """
        Delete a line item.

        Its overlay entry and selection membership go with it, in the same
        step as the canonical list is updated.

        Raises:
            NotFoundError: Unknown item; `needs_reload` is set
            ValidationError: The item is linked; storage not called
            PersistenceError: Storage failed; nothing changes locally
        """
        item = self._find(item_id)
        if item.is_linked:
            message = f"Line item {item_id} is linked to document {item.linked_document_id}"
            raise ValidationError(message, [ValidationIssue(
                field="linked_document_id",
                issue_type="linked",
                message=message,
                severity="error",
            )])

        try:
            if not await self._storage.delete(item_id):
                raise PersistenceError(f"Storage did not delete {item_id}")
        except PersistenceError as e:
            if isinstance(e, NotFoundError):
                self.needs_reload = True
            if self._audit_logger:
                await self._audit_logger.log_item_delete_failed(item_id, str(e))
            raise

        self._overlay.discard(item_id)
        self._set_items(i for i in self._items if i.id != item_id)

        if self._audit_logger:
            await self._audit_logger.log_item_deleted(item_id)
        await self._reconcile(lambda items: items)

    # ------------------------------------------------------------------
    # Label renames
    # ------------------------------------------------------------------

    def rename(self, target_id: UUID, level: LabelLevel, new_label: str) -> list[LineItem]:
        """Preview a rename: the reconciled list, nothing is written."""
        return rename_label(
            self._items,
            target_id,
            level,
            new_label,
            settings=self._settings.hierarchy,
        )

    async def persist_rename(
        self,
        target_id: UUID,
        level: LabelLevel,
        new_label: str,
    ) -> list[LineItem]:
        """
        Rename a label across the target's unit and write every changed item.

        Pending edits that still show the old value are moved to the new
        one, so committing them later does not undo the rename.

        Returns:
            The items that were rewritten

        Raises:
            NotFoundError: Unknown target
            ValidationError: Blank or malformed label; storage not called
            PersistenceError: A write failed; `needs_reload` is set if some
                items were already written
        """
        target = self._find(target_id)
        delimiter = self._settings.hierarchy.id_delimiter
        old_label = current_label(target, level, delimiter)

        renamed = self.rename(target_id, level, new_label)
        changed = changed_items(self._items, renamed)
        if not changed:
            return []

        field = level.field
        previous = {item.id: getattr(item, field) for item in self._items}
        written = 0
        for item in changed:
            try:
                if not await self._storage.update(item.id, {field: getattr(item, field)}):
                    raise PersistenceError(f"Storage did not apply the update of {item.id}")
            except PersistenceError as e:
                if written or isinstance(e, NotFoundError):
                    self.needs_reload = True
                if self._audit_logger:
                    await self._audit_logger.log_item_update_failed(item.id, str(e))
                raise
            written += 1

        for item in changed:
            entry = self._overlay.entry(item.id)
            if entry is not None and field in entry and entry[field] == previous[item.id]:
                self._overlay.set_field(item.id, field, getattr(item, field))

        self._logger.info(
            "labels_renamed",
            unit_id=target.unit_id,
            level=level.value,
            item_count=len(changed),
        )
        if self._audit_logger:
            await self._audit_logger.log_labels_renamed(
                unit_id=target.unit_id,
                level=level.value,
                old_label=old_label,
                new_label=new_label.strip(),
                item_count=len(changed),
            )
        await self._reconcile(lambda items: renamed)
        return changed

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_one(self, item_id: UUID) -> bool:
        return self._selection.toggle_one(item_id)

    def toggle_all(self) -> None:
        self._selection.toggle_all()

    def selected_total(self) -> Decimal:
        return self._selection.selected_total(self._overlay)


def create_session(
    storage: LineItemStorageInterface,
    scope_id: str,
    audit_storage: Optional[AuditStorageInterface] = None,
    settings: Optional[Settings] = None,
) -> ReceptionEditSession:
    """
    Factory function to create an editing session.

    Args:
        storage: Line item persistence collaborator.
        scope_id: Scope whose items the session edits.
        audit_storage: Audit sink. If None, audit events are only logged
                    locally.
    """
    settings = settings or get_settings()
    return ReceptionEditSession(
        storage=storage,
        scope_id=scope_id,
        settings=settings,
        audit_logger=AuditLogger(audit_storage),
    )
