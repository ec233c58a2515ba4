"""
Entry-level totals and the payment fields that follow them.

Only resolved line items count. Totals are bucketed by the currency regime
of each line:
  base      lines priced directly in base currency
  foreign   lines priced in a foreign currency (summed in that currency,
            and separately in base currency)
"""
import logging
from typing import Iterable, Optional

from models.entry import EntryContext, EntryTotals, PaymentMode, PaymentSplit, PaymentSummary
from models.line_item import FieldName, LineItem
from .numbers import format_money, parse_number, round_to, MONEY_PLACES, to_number

logger = logging.getLogger(__name__)


def compute_totals(items: Iterable[LineItem]) -> EntryTotals:
    totals = EntryTotals()
    for item in items:
        if not item.is_resolved:
            totals.unresolved_count += 1
            continue
        totals.resolved_count += 1
        in_base = to_number(item.get(FieldName.TOTAL_IN_BASE.value))
        totals.total_in_base += in_base
        meta = item.calculation_metadata
        if meta is not None and meta.is_base_currency:
            totals.base_currency_total += in_base
        else:
            totals.foreign_currency_total += to_number(item.get(FieldName.TOTAL_IN_CURRENCY.value))
            totals.foreign_total_in_base += in_base
    return totals


def payments_sum(splits: Iterable[PaymentSplit]) -> float:
    return sum(to_number(s.amount) for s in splits)


def payment_summary(context: EntryContext, total: float) -> PaymentSummary:
    return PaymentSummary(total=total, paid=payments_sum(context.payments))


def remaining_amount(context: EntryContext, total: float) -> float:
    """What a new split should cover: total minus existing splits, never negative."""
    remaining = total - payments_sum(context.payments)
    return remaining if remaining > 0 else 0.0


def sync_payment_fields(context: EntryContext, total: float, default_method: str) -> bool:
    """
    Keep debt amount and payment splits in line with the entry total.

    debt mode     amount_of_debt follows the total
    payment mode  no splits -> one split for the full total;
                  exactly one split -> its amount follows the total.
                  Two or more splits are left to the user.

    Returns True when the context changed. Nothing happens while the total
    is zero, so an emptied entry keeps what the user entered.
    """
    if total <= 0:
        return False

    formatted = format_money(total)
    if context.payment_mode == PaymentMode.DEBT:
        if context.amount_of_debt != formatted:
            context.amount_of_debt = formatted
            return True
        return False

    if context.payment_mode != PaymentMode.PAYMENT:
        return False

    if not context.payments:
        context.payments = [PaymentSplit(amount=formatted, payment_method=default_method)]
        logger.debug("Initialised payment split for total %s", formatted)
        return True

    if len(context.payments) == 1:
        split = context.payments[0]
        current = parse_number(split.amount)
        if current is None or round_to(current, MONEY_PLACES) != round_to(total, MONEY_PLACES):
            context.payments = [PaymentSplit(amount=formatted, payment_method=split.payment_method)]
            return True
    return False


def add_payment_split(context: EntryContext, total: float, default_method: str) -> PaymentSplit:
    split = PaymentSplit(
        amount=format_money(remaining_amount(context, total)),
        payment_method=default_method,
    )
    context.payments = context.payments + [split]
    return split


def update_payment_split(
    context: EntryContext,
    index: int,
    amount: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> PaymentSplit:
    splits = list(context.payments)
    split = splits[index]
    splits[index] = PaymentSplit(
        amount=split.amount if amount is None else amount,
        payment_method=split.payment_method if payment_method is None else payment_method,
    )
    context.payments = splits
    return splits[index]


def remove_payment_split(context: EntryContext, index: int) -> None:
    splits = list(context.payments)
    del splits[index]
    context.payments = splits
