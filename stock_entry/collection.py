"""
Line-item collection: the ordered set of purchase lines of one entry.

Removing a line that was saved before keeps its persisted id in the
deletion set so the next submission deletes it on the backend.
"""
import logging
from typing import Iterable, Iterator, List, Optional, Set

from models.line_item import (
    MONETARY_FIELDS, STRUCTURAL_FIELDS, FieldName, LineItem, LineItemStatus, empty_fields,
)
from .errors import CollectionError, ItemNotFound

logger = logging.getLogger(__name__)


class LineItemCollection:

    def __init__(self, items: Optional[Iterable[LineItem]] = None) -> None:
        self._items: List[LineItem] = list(items or [])
        self._selected: Set[str] = set()
        self._deleted: List[int] = []
        self._counter = len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[LineItem]:
        return list(self._items)

    @property
    def deleted_stock_ids(self) -> List[int]:
        return list(self._deleted)

    @property
    def selected_ids(self) -> Set[str]:
        return set(self._selected)

    def get(self, item_id: str) -> LineItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise ItemNotFound(item_id)

    def _next_id(self) -> str:
        existing = {i.id for i in self._items}
        while True:
            self._counter += 1
            candidate = f"item-{self._counter}"
            if candidate not in existing:
                return candidate

    # ------------------------------------------------------------------
    # Add / duplicate / remove
    # ------------------------------------------------------------------

    def add(self) -> LineItem:
        """Append an empty, expanded line; every other line collapses."""
        for other in self._items:
            other.is_expanded = False
        item = LineItem(id=self._next_id(), fields=empty_fields(), is_expanded=True)
        self._items.append(item)
        return item

    def duplicate(self, item_id: str) -> LineItem:
        """
        Copy a line's values into a new line placed right after it.
        The copy is a new line: no persisted id and no resolution yet.
        """
        source = self.get(item_id)
        copy = LineItem(
            id=self._next_id(),
            fields=dict(source.fields),
            selected_product=source.selected_product,
            status=LineItemStatus.UNRESOLVED,
            is_expanded=True,
        )
        index = self._items.index(source)
        self._items.insert(index + 1, copy)
        return copy

    def remove(self, item_id: str) -> LineItem:
        if len(self._items) <= 1:
            raise CollectionError("Cannot remove the last line item")
        item = self.get(item_id)
        self._items.remove(item)
        self._selected.discard(item_id)
        self._mark_deleted(item)
        return item

    def remove_selected(self) -> List[LineItem]:
        if not self._selected:
            raise CollectionError("No line items selected")
        if len(self._selected & {i.id for i in self._items}) >= len(self._items):
            raise CollectionError("Cannot remove every line item")
        removed = [i for i in self._items if i.id in self._selected]
        self._items = [i for i in self._items if i.id not in self._selected]
        for item in removed:
            self._mark_deleted(item)
        self._selected.clear()
        return removed

    def _mark_deleted(self, item: LineItem) -> None:
        if item.persisted_id is not None and item.persisted_id not in self._deleted:
            self._deleted.append(item.persisted_id)
            logger.debug("Stock %s marked for deletion", item.persisted_id)

    # ------------------------------------------------------------------
    # Selection / expansion
    # ------------------------------------------------------------------

    def select(self, item_id: str, selected: bool = True) -> None:
        self.get(item_id)
        if selected:
            self._selected.add(item_id)
        else:
            self._selected.discard(item_id)

    def select_all(self, selected: bool = True) -> None:
        self._selected = {i.id for i in self._items} if selected else set()

    def toggle_expanded(self, item_id: str) -> bool:
        item = self.get(item_id)
        item.is_expanded = not item.is_expanded
        return item.is_expanded

    def set_all_expanded(self, expanded: bool) -> None:
        for item in self._items:
            item.is_expanded = expanded

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def change_structural(self, item_id: str, field_name: str, value: str) -> LineItem:
        """
        Set product, currency or purchase unit.

        The previous resolution no longer applies: monetary fields are
        cleared, quantities stay, and the line goes back to Unresolved.
        A new product also clears the purchase unit.
        """
        if field_name not in STRUCTURAL_FIELDS:
            raise CollectionError(f"{field_name} is not a structural field")
        item = self.get(item_id)
        fields = dict(item.fields)
        fields[field_name] = "" if value is None else str(value)
        if field_name == FieldName.PRODUCT.value:
            fields[FieldName.PURCHASE_UNIT.value] = ""
        for name in MONETARY_FIELDS:
            fields[name] = ""
        item.fields = fields
        item.field_descriptors = []
        item.calculation_metadata = None
        item.exchange_rate_id = None
        item.status = LineItemStatus.UNRESOLVED
        item.values_from_storage = False
        return item

    def replace(self, items: Iterable[LineItem], deleted_stock_ids: Iterable[int] = ()) -> None:
        """Swap in a complete item list (hydration or draft restore)."""
        self._items = list(items)
        self._selected.clear()
        self._deleted = list(deleted_stock_ids)
        self._counter = len(self._items)
