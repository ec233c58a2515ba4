"""
Editing session for one stock entry.

Single-threaded asyncio host around the engine. The session owns the entry
context, the line-item collection, the supplier balance snapshot and the
live USD rate, and keeps them consistent:

  structural edit  -> line reset, resolver call (async)
  field edit       -> derivation engine (sync)
  any change       -> totals, debt / payment auto-fill, debounced draft write
  context edit     -> every line without a resolution is resolved again
  submit           -> validation, payload, one backend call

Suspension points are resolver calls, supplier/rate loads, barcode lookups
and the submit call. After close() late responses change nothing.
"""
import asyncio
import logging
from typing import Any, List, NamedTuple, Optional, Tuple

from config import Config
from models.entry import (
    BalanceCheck, EntryContext, EntryTotals, PaymentMode, PaymentSplit,
    PaymentSummary, SupplierBalanceSnapshot,
)
from models.line_item import FieldName, LineItem, LineItemStatus, STRUCTURAL_FIELDS
from models.product import Product
from models.result import SubmissionIssue
from . import aggregator
from .balance import check_balance, default_balance_currency
from .catalog import ProductCatalog, conversion_number
from .collection import LineItemCollection
from .derivation import apply_edit, apply_measurement_input
from .drafts import DraftSnapshot, DraftStore, draft_key
from .errors import (
    CalculationInputError, CollectionError, ConfigurationUnavailable, ItemNotFound,
    RemoteError, StockEntryError, SubmissionBlocked,
)
from .hydration import context_from_entry, items_from_stocks, supplier_snapshot, usd_rate_from
from .payload import build_payload
from .resolver import FieldConfigurationResolver, build_request, merge_configuration
from .validator import SubmissionValidator

logger = logging.getLogger(__name__)

_RESOLUTION_CONTEXT = ("store", "supplier", "date_of_arrived")


class ScanResult(NamedTuple):
    item: Optional[LineItem]            # line the product was assigned to
    matches: List[Product]              # name matches when the barcode is unknown


class StockEntrySession:
    """
    Usage:
        async with BackendClient(config) as client:
            session = StockEntrySession(client, config, entry_id=42, draft_store=store)
            await session.load()
            session.edit_field("item-1", "price_per_unit_currency", "2.00")
            await session.submit()
            await session.close()
    """

    def __init__(
        self,
        client,
        config: Optional[Config] = None,
        entry_id: Optional[int] = None,
        draft_store: Optional[DraftStore] = None,
        resolver: Optional[FieldConfigurationResolver] = None,
        catalog: Optional[ProductCatalog] = None,
    ):
        self.config = config or Config()
        self.client = client
        self.entry_id = entry_id
        self.draft_store = draft_store if self.config.drafts_enabled else None
        self.resolver = resolver or FieldConfigurationResolver(client)
        self.catalog = catalog or ProductCatalog(client, self.config.product_fuzzy_threshold)
        self.validator = SubmissionValidator(self.config.payment_tolerance)

        self.context = EntryContext()
        self.collection = LineItemCollection()
        self.collection.add()
        self.supplier: Optional[SupplierBalanceSnapshot] = None
        self.usd_rate: Optional[float] = None
        self.totals = EntryTotals()
        self.notifications: List[str] = []
        self.product_search_term = ""

        self._entry_supplier: Optional[int] = None
        self._prior_consumed: Any = 0
        self._resolving: dict[str, Tuple[str, str, str]] = {}
        self._draft_task: Optional[asyncio.Task] = None
        self._loading = False
        self._submitting = False
        self._closed = False

    @property
    def items(self) -> List[LineItem]:
        return self.collection.items

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self, message: str) -> None:
        """User-visible message."""
        self.notifications.append(message)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Hydrate from the saved entry, then resolve every line keeping its stored values."""
        if self.entry_id is None:
            await self.refresh_usd_rate()
            return
        self._loading = True
        try:
            entry = await self.client.get_stock_entry(self.entry_id)
            stocks = await self.client.get_stocks(self.entry_id)
            self.context = context_from_entry(entry)
            items = items_from_stocks(stocks)
            self.collection.replace(items)
            if not items:
                self.collection.add()
            self._entry_supplier = self.context.supplier
            self._prior_consumed = entry.get("from_balance_supplier") or 0
            logger.info("Loaded stock entry %s: %d line(s)", self.entry_id, len(items))

            await self.refresh_usd_rate()
            if self.context.supplier:
                await self._load_supplier(self.context.supplier)
            await self.resolve_pending()
        finally:
            self._loading = False
        self._recompute(save_draft=False)

    async def refresh_usd_rate(self) -> Optional[float]:
        try:
            rates = await self.client.get_currency_rates()
        except RemoteError as exc:
            logger.warning("Currency rates unavailable: %s", exc)
            self.usd_rate = None
            return None
        self.usd_rate = usd_rate_from(rates)
        return self.usd_rate

    async def _load_supplier(self, supplier_id: int) -> None:
        try:
            data = await self.client.get_supplier(supplier_id)
        except RemoteError as exc:
            self.supplier = None
            self.notify(f"Could not load supplier: {exc.message}")
            return
        if self._closed:
            return
        # The entry's earlier consumption only applies to the supplier it was taken from
        prior = self._prior_consumed if supplier_id == self._entry_supplier else 0
        self.supplier = supplier_snapshot(data, prior)
        if self.context.use_supplier_balance and not self._loading:
            self.context.supplier_balance_type = default_balance_currency(self.supplier)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_item(self, item_id: str) -> bool:
        """
        Resolve one line. Returns True when a configuration was merged.

        Lines whose values come from storage are merged without re-deriving.
        A response for a product/currency/unit the line no longer has is
        dropped.
        """
        if self._closed:
            return False
        item = self.collection.get(item_id)
        key = item.structural_key
        if item.status == LineItemStatus.RESOLVING and self._resolving.get(item_id) == key:
            logger.debug("Item %s already resolving for %s", item_id, key)
            return False
        try:
            build_request(self.context, item)
        except ConfigurationUnavailable as exc:
            logger.debug("Skipping resolution of %s: %s", item_id, exc)
            return False

        item.status = LineItemStatus.RESOLVING
        self._resolving[item_id] = key
        try:
            config = await self.resolver.resolve(self.context, item)
        except RemoteError as exc:
            if not self._closed and self._is_current(item, key):
                item.status = LineItemStatus.ERROR
                self.notify(f"Could not load field configuration: {exc.message}")
            return False
        finally:
            if self._resolving.get(item_id) == key:
                del self._resolving[item_id]

        if self._closed:
            logger.debug("Session closed; dropping configuration for %s", item_id)
            return False
        if not self._is_current(item, key):
            logger.warning("Dropping stale configuration for %s (was %s, now %s)",
                           item_id, key, item.structural_key)
            return False

        merge_configuration(item, config, preserve_values=item.values_from_storage)
        self._recompute()
        return True

    def _is_current(self, item: LineItem, key: Tuple[str, str, str]) -> bool:
        try:
            current = self.collection.get(item.id)
        except ItemNotFound:
            return False
        return current is item and item.structural_key == key

    async def resolve_pending(self) -> int:
        """Resolve every Unresolved or Error line concurrently. Returns how many resolved."""
        pending = [
            i.id for i in self.collection
            if i.status in (LineItemStatus.UNRESOLVED, LineItemStatus.ERROR)
        ]
        if not pending:
            return 0
        results = await asyncio.gather(*(self.resolve_item(item_id) for item_id in pending))
        return sum(1 for r in results if r)

    # ------------------------------------------------------------------
    # Entry context
    # ------------------------------------------------------------------

    async def update_context(self, **changes: Any) -> None:
        """Set store / supplier / date / debt fields; re-resolve when they affect pricing."""
        mode = changes.pop("payment_mode", None)
        unknown = set(changes) - set(EntryContext.model_fields)
        if unknown:
            raise ValueError(f"Unknown entry fields: {', '.join(sorted(unknown))}")

        before = {name: getattr(self.context, name) for name in _RESOLUTION_CONTEXT}
        data = self.context.model_dump()
        data.update(changes)
        self.context = EntryContext.model_validate(data)

        if mode is not None:
            self.set_payment_mode(mode)
        if self.context.supplier != before["supplier"]:
            if self.context.supplier:
                await self._load_supplier(self.context.supplier)
            else:
                self.supplier = None
        self._recompute()

        if any(getattr(self.context, name) != before[name] for name in _RESOLUTION_CONTEXT):
            await self.resolve_pending()

    def set_payment_mode(self, mode: PaymentMode) -> None:
        mode = PaymentMode(mode)
        self.context.payment_mode = mode
        if mode != PaymentMode.PAYMENT:
            self.context.payments = []
        if mode == PaymentMode.SUPPLIER_BALANCE and self.supplier is not None:
            self.context.supplier_balance_type = default_balance_currency(self.supplier)
        self._recompute()

    def set_balance_currency(self, currency: str) -> None:
        self.context.supplier_balance_type = currency
        self._recompute()

    def add_payment(self) -> PaymentSplit:
        split = aggregator.add_payment_split(
            self.context, self.totals.total_in_base, self.config.default_payment_method,
        )
        self._schedule_draft_save()
        return split

    def update_payment(self, index: int, amount: Optional[str] = None,
                       payment_method: Optional[str] = None) -> PaymentSplit:
        split = aggregator.update_payment_split(self.context, index, amount, payment_method)
        self._schedule_draft_save()
        return split

    def remove_payment(self, index: int) -> None:
        aggregator.remove_payment_split(self.context, index)
        self._schedule_draft_save()

    def payment_summary(self) -> PaymentSummary:
        return aggregator.payment_summary(self.context, self.totals.total_in_base)

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    async def add_item(self) -> LineItem:
        item = self.collection.add()
        self._recompute()
        return item

    async def duplicate_item(self, item_id: str) -> LineItem:
        copy = self.collection.duplicate(item_id)
        self._recompute()
        await self.resolve_item(copy.id)
        return copy

    def remove_item(self, item_id: str) -> None:
        self.collection.remove(item_id)
        self._recompute()

    def remove_selected(self) -> None:
        self.collection.remove_selected()
        self._recompute()

    async def set_structural_field(
        self,
        item_id: str,
        field_name: str,
        value: Any,
        product: Optional[dict] = None,
    ) -> LineItem:
        item = self.collection.change_structural(item_id, field_name, "" if value is None else str(value))
        if field_name == FieldName.PRODUCT.value:
            item.selected_product = product
        self._recompute()
        await self.resolve_item(item_id)
        return item

    def edit_field(self, item_id: str, field_name: str, value: Any) -> dict:
        """A non-structural field edit; derived fields follow immediately."""
        if field_name in STRUCTURAL_FIELDS:
            raise CollectionError(f"{field_name} changes the line configuration; use set_structural_field")
        item = self.collection.get(item_id)
        updates = apply_edit(item, field_name, value)
        self._recompute()
        return updates

    def apply_calculation_input(self, item_id: str) -> dict:
        """Run the measurement helper on the line's calculation_input."""
        item = self.collection.get(item_id)
        if not item.selected_product:
            raise CalculationInputError("Select a product first")
        unit = item.get(FieldName.PURCHASE_UNIT.value)
        if not unit:
            raise CalculationInputError("Select a purchase unit first")
        product = Product.model_validate(item.selected_product)
        unit_id = int(float(unit))
        if product.available_units and product.find_unit(unit_id) is None:
            raise CalculationInputError(f"Unit {unit_id} is not available for {product.product_name}")
        updates = apply_measurement_input(
            item, item.get(FieldName.CALCULATION_INPUT.value), conversion_number(product, unit_id),
        )
        self._recompute()
        return updates

    # ------------------------------------------------------------------
    # Barcode intake
    # ------------------------------------------------------------------

    async def scan_barcode(self, code: str) -> ScanResult:
        code = (code or "").strip()
        if not code:
            return ScanResult(None, [])
        try:
            product = await self.catalog.by_barcode(code)
        except RemoteError as exc:
            logger.warning("Barcode lookup for %s failed: %s", code, exc)
            product = None

        if product is None:
            self.product_search_term = code
            return ScanResult(None, await self.catalog.search(code))

        target = next((i for i in self.collection if not i.get(FieldName.PRODUCT.value)), None)
        if target is None:
            target = self.collection.add()
        item = await self.set_structural_field(
            target.id, FieldName.PRODUCT.value, product.id, product=product.model_dump(),
        )
        return ScanResult(item, [product])

    # ------------------------------------------------------------------
    # Totals, balance, validation
    # ------------------------------------------------------------------

    def _recompute(self, save_draft: bool = True) -> None:
        self.totals = aggregator.compute_totals(self.collection)
        aggregator.sync_payment_fields(
            self.context, self.totals.total_in_base, self.config.default_payment_method,
        )
        if save_draft:
            self._schedule_draft_save()

    def balance_check(self) -> Optional[BalanceCheck]:
        if self.supplier is None:
            return None
        return check_balance(
            self.supplier, self.totals.total_in_base,
            self.context.supplier_balance_type, self.usd_rate,
        )

    def validate(self) -> List[SubmissionIssue]:
        return self.validator.validate(
            self.context, self.items, self.totals.total_in_base,
            self.supplier, self.balance_check(),
        )

    async def submit(self) -> Any:
        """
        Validate, then create or update the entry with one backend call.
        Raises SubmissionBlocked before any request when a blocking issue exists.
        """
        if self._closed:
            raise StockEntryError("Session is closed")
        if self._submitting:
            raise StockEntryError("Submission already in progress")

        self.totals = aggregator.compute_totals(self.collection)
        blocking = [i for i in self.validate() if i.blocking]
        if blocking:
            for issue in blocking:
                self.notify(issue.description)
            logger.info("Submission of entry %s blocked: %s",
                        self.entry_id or "(new)", ", ".join(i.type for i in blocking))
            raise SubmissionBlocked(blocking)

        payload = build_payload(self.context, self.items, self.collection.deleted_stock_ids).to_wire()
        self._submitting = True
        self._cancel_draft_save()
        try:
            if self.entry_id is not None:
                result = await self.client.update_stock_entry(self.entry_id, payload)
            else:
                result = await self.client.create_stock_entry(payload)
        except RemoteError as exc:
            self.notify(exc.message)
            logger.error("Submission of entry %s failed: %s", self.entry_id or "(new)", exc)
            raise
        finally:
            self._submitting = False

        logger.info("Stock entry %s saved (%d lines)", self.entry_id or "(new)", len(payload["stocks"]))
        self.clear_draft()
        return result

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    @property
    def draft_key(self) -> str:
        return draft_key(self.entry_id)

    def _has_data(self) -> bool:
        if self.context.store or self.context.supplier:
            return True
        return any(i.get(FieldName.PRODUCT.value) for i in self.collection)

    def snapshot(self) -> DraftSnapshot:
        return DraftSnapshot(
            context=self.context.model_copy(deep=True),
            items=[i.model_copy(deep=True) for i in self.collection],
            deleted_stock_ids=self.collection.deleted_stock_ids,
        )

    def save_draft(self) -> bool:
        if self.draft_store is None or not self._has_data():
            return False
        try:
            self.draft_store.set(self.draft_key, self.snapshot())
        except Exception as exc:
            logger.warning("Draft write for %s failed: %s", self.draft_key, exc)
            return False
        logger.debug("Draft written: %s", self.draft_key)
        return True

    def _schedule_draft_save(self) -> None:
        if self.draft_store is None or self._closed or self._loading or self._submitting:
            return
        if not self._has_data():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.save_draft()
            return
        self._cancel_draft_save()
        self._draft_task = loop.create_task(self._save_draft_later())

    async def _save_draft_later(self) -> None:
        await asyncio.sleep(self.config.draft_debounce_seconds)
        if not self._closed:
            self.save_draft()

    def _cancel_draft_save(self) -> None:
        if self._draft_task is not None and not self._draft_task.done():
            self._draft_task.cancel()
        self._draft_task = None

    async def flush_draft(self) -> bool:
        """Write a pending draft now instead of waiting for the timer."""
        if self._draft_task is None or self._draft_task.done():
            return False
        self._cancel_draft_save()
        return self.save_draft()

    def has_draft(self) -> bool:
        return self.draft_store is not None and self.draft_store.get(self.draft_key) is not None

    def restore_draft(self) -> bool:
        if self.draft_store is None:
            return False
        snapshot = self.draft_store.get(self.draft_key)
        if snapshot is None:
            return False
        self.context = snapshot.context
        for item in snapshot.items:
            # No request survives the session that saved the draft
            if item.status == LineItemStatus.RESOLVING:
                item.status = LineItemStatus.UNRESOLVED
        self.collection.replace(snapshot.items, snapshot.deleted_stock_ids)
        if not len(self.collection):
            self.collection.add()
        logger.info("Restored draft %s from %s", self.draft_key, snapshot.timestamp)
        self._recompute()
        return True

    def clear_draft(self) -> None:
        self._cancel_draft_save()
        if self.draft_store is not None:
            self.draft_store.clear(self.draft_key)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        self._closed = True
        self._cancel_draft_save()
        logger.debug("Session for entry %s closed", self.entry_id or "(new)")
