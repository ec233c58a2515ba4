"""Outbound submission body for a stock entry."""
import logging
from typing import Iterable, Optional, Sequence

from models.entry import EntryContext, PaymentMode
from models.line_item import FieldName, LineItem
from models.payload import PaymentPayload, StockEntryPayload, StockPayload
from .numbers import money_for_api, parse_number, purchase_quantity_for_api
from .resolver import reference_id

logger = logging.getLogger(__name__)


def _int(value) -> int:
    num = parse_number(value)
    return int(num) if num is not None else 0


def exchange_rate_reference(item: LineItem) -> Optional[int]:
    """Rate record id from the resolver descriptor, else the one stored with the line."""
    descriptor = item.descriptor(FieldName.EXCHANGE_RATE.value)
    if descriptor is not None:
        rate_id = reference_id(descriptor.value)
        if rate_id is not None:
            return rate_id
    return item.exchange_rate_id


def build_stock(item: LineItem) -> StockPayload:
    """
    One stock line. The quantity is the recorded historical quantity when
    the line has one, so partial sales since the first save are not rewritten.
    """
    if item.historical_quantity_override is not None:
        quantity = money_for_api(item.historical_quantity_override)
    else:
        quantity = money_for_api(item.get(FieldName.QUANTITY.value))

    stock_name = item.get(FieldName.STOCK_NAME.value).strip()
    return StockPayload(
        id=item.persisted_id,
        product=_int(item.get(FieldName.PRODUCT.value)),
        purchase_unit=_int(item.get(FieldName.PURCHASE_UNIT.value)),
        currency=_int(item.get(FieldName.CURRENCY.value)),
        exchange_rate=exchange_rate_reference(item),
        quantity=quantity or 0,
        purchase_unit_quantity=purchase_quantity_for_api(item.get(FieldName.PURCHASE_UNIT_QUANTITY.value)) or 0,
        price_per_unit_uz=money_for_api(item.get(FieldName.PRICE_PER_UNIT_BASE.value)) or 0,
        total_price_in_uz=money_for_api(item.get(FieldName.TOTAL_IN_BASE.value)) or 0,
        price_per_unit_currency=money_for_api(item.get(FieldName.PRICE_PER_UNIT_CURRENCY.value)) or 0,
        total_price_in_currency=money_for_api(item.get(FieldName.TOTAL_IN_CURRENCY.value)) or 0,
        base_unit_in_uzs=money_for_api(item.get(FieldName.BASE_UNIT_COST_BASE.value)),
        base_unit_in_currency=money_for_api(item.get(FieldName.BASE_UNIT_COST_CURRENCY.value)),
        stock_name=stock_name or None,
    )


def build_payload(
    context: EntryContext,
    items: Sequence[LineItem],
    deleted_stock_ids: Iterable[int] = (),
) -> StockEntryPayload:
    """Flags are only sent when set; payments only when splits exist."""
    deleted = list(deleted_stock_ids)
    payments = None
    if context.payment_mode == PaymentMode.PAYMENT and context.payments:
        payments = [
            PaymentPayload(amount=money_for_api(p.amount), payment_type=p.payment_method)
            for p in context.payments
        ]

    payload = StockEntryPayload(
        store=int(context.store or 0),
        supplier=int(context.supplier or 0),
        date_of_arrived=context.date_of_arrived,
        is_debt=True if context.is_debt else None,
        amount_of_debt=money_for_api(context.amount_of_debt) if context.is_debt else None,
        advance_of_debt=money_for_api(context.advance_of_debt) if context.is_debt else None,
        use_supplier_balance=True if context.use_supplier_balance else None,
        supplier_balance_type=context.supplier_balance_type if context.use_supplier_balance else None,
        deposit_payment_method=context.deposit_payment_method or None,
        is_inventory_adjustment=True if context.is_inventory_adjustment else None,
        payments=payments,
        stocks=[build_stock(item) for item in items],
        deleted_stocks=deleted or None,
    )
    logger.debug("Built payload: %d stocks, %d deleted", len(payload.stocks), len(deleted))
    return payload
