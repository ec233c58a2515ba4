"""
Rebuilding an editing session from a saved stock entry.

The backend returns nested objects ({"id": 3, "name": ...}) for references
and UTC timestamps; the session works with plain ids and a local
"YYYY-MM-DDTHH:MM" arrival time.
"""
import logging
from datetime import datetime
from typing import Any, List, Optional

from models.entry import EntryContext, PaymentMode, PaymentSplit, SupplierBalanceSnapshot
from models.line_item import FieldName, LineItem, LineItemStatus, empty_fields
from .numbers import parse_number, to_number
from .resolver import reference_id

logger = logging.getLogger(__name__)

LOCAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M"

# Stored stock attributes copied verbatim into line-item fields
_VALUE_FIELDS = (
    FieldName.PURCHASE_UNIT_QUANTITY.value,
    FieldName.QUANTITY.value,
    FieldName.PRICE_PER_UNIT_CURRENCY.value,
    FieldName.TOTAL_IN_CURRENCY.value,
    FieldName.PRICE_PER_UNIT_BASE.value,
    FieldName.TOTAL_IN_BASE.value,
    FieldName.BASE_UNIT_COST_CURRENCY.value,
    FieldName.BASE_UNIT_COST_BASE.value,
    FieldName.STOCK_NAME.value,
)


def _ref(value: Any) -> Optional[int]:
    """Id of a nested reference object, or the value itself when already an id."""
    if isinstance(value, dict):
        return reference_id(value)
    num = parse_number(value)
    return int(num) if num is not None else None


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value)


def local_datetime(value: Optional[str]) -> str:
    """Stored ISO timestamp -> local-time "YYYY-MM-DDTHH:MM"; "" when unparseable."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable date_of_arrived %r", value)
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.strftime(LOCAL_DATETIME_FORMAT)


def payment_mode_of(entry: dict) -> PaymentMode:
    if entry.get("is_debt"):
        return PaymentMode.DEBT
    if entry.get("use_supplier_balance"):
        return PaymentMode.SUPPLIER_BALANCE
    if entry.get("is_inventory_adjustment"):
        return PaymentMode.INVENTORY_ADJUSTMENT
    return PaymentMode.PAYMENT


def context_from_entry(entry: dict) -> EntryContext:
    payments = [
        PaymentSplit(amount=_text(p.get("amount")) or "0", payment_method=_text(p.get("payment_type")))
        for p in entry.get("payments") or []
    ]
    return EntryContext(
        store=_ref(entry.get("store")),
        supplier=_ref(entry.get("supplier")),
        date_of_arrived=local_datetime(entry.get("date_of_arrived")),
        payment_mode=payment_mode_of(entry),
        payments=payments,
        amount_of_debt=_text(entry.get("amount_of_debt")),
        advance_of_debt=_text(entry.get("advance_of_debt")),
        deposit_payment_method=_text(entry.get("deposit_payment_method")),
        supplier_balance_type=_text(entry.get("supplier_balance_type")) or "USD",
    )


def item_from_stock(stock: dict, index: int) -> LineItem:
    fields = empty_fields()
    fields[FieldName.PRODUCT.value] = _text(_ref(stock.get("product")))
    fields[FieldName.CURRENCY.value] = _text(_ref(stock.get("currency")))
    fields[FieldName.PURCHASE_UNIT.value] = _text(_ref(stock.get("purchase_unit")))
    for name in _VALUE_FIELDS:
        fields[name] = _text(stock.get(name))

    rate = stock.get("exchange_rate")
    rate_id = None
    if isinstance(rate, dict):
        rate_id = reference_id(rate)
        if rate.get("rate") is not None:
            fields[FieldName.EXCHANGE_RATE.value] = _text(rate["rate"])
    elif rate is not None:
        rate_id = _ref(rate)

    quantity = to_number(stock.get("quantity"))
    history = to_number(stock.get("quantity_for_history"))
    override = history if history and quantity != history else None
    if override is not None:
        logger.info("Stock %s: live quantity %s, recorded %s", stock.get("id"), quantity, history)

    product = stock.get("product")
    return LineItem(
        id=f"item-{index}",
        persisted_id=_ref(stock.get("id")),
        fields=fields,
        status=LineItemStatus.UNRESOLVED,
        historical_quantity_override=override,
        exchange_rate_id=rate_id,
        selected_product=product if isinstance(product, dict) else None,
        is_expanded=True,
        values_from_storage=True,
    )


def items_from_stocks(stocks: List[dict]) -> List[LineItem]:
    return [item_from_stock(stock, i) for i, stock in enumerate(stocks, start=1)]


def supplier_snapshot(supplier: dict, prior_consumed: Any = 0) -> SupplierBalanceSnapshot:
    return SupplierBalanceSnapshot(
        supplier_id=_ref(supplier.get("id")) or 0,
        name=_text(supplier.get("name")),
        balance_type=supplier.get("balance_type") or None,
        balance=to_number(supplier.get("balance")),
        balance_in_usd=to_number(supplier.get("balance_in_usd")),
        prior_consumed_amount=to_number(prior_consumed),
    )


def usd_rate_from(rates: List[dict]) -> Optional[float]:
    """The newest rate comes first."""
    if not rates:
        return None
    rate = parse_number((rates[0] or {}).get("rate"))
    return rate if rate and rate > 0 else None
