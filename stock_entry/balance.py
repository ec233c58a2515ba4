"""
Supplier balance check for entries paid from the supplier's balance.

The supplier holds two independently tracked balances: one in base currency
(`balance`) and one in USD (`balance_in_usd`). The chosen balance currency
decides which one is compared against the entry total:

  USD with a live rate   required = total / rate,  compared to balance_in_usd
  otherwise              required = total,         compared to balance

When editing an entry that already drew on the balance, the amount it drew
(in the supplier's native balance currency) is added back, converted into
the comparison currency, so the check answers whether the balance covers
the entry after its previous consumption is reversed.
"""
import logging
from typing import Optional

from models.entry import BalanceCheck, SupplierBalanceSnapshot

logger = logging.getLogger(__name__)

USD = "USD"
UZS = "UZS"

FLOAT_EPSILON = 1e-9        # float noise only; any real shortfall is insufficient


def native_balance_currency(supplier: Optional[SupplierBalanceSnapshot]) -> str:
    """The supplier's own balance currency; anything but USD counts as base."""
    if supplier is not None and supplier.balance_type == USD:
        return USD
    return UZS


def default_balance_currency(supplier: Optional[SupplierBalanceSnapshot]) -> str:
    """Preselected balance currency: the native one when USD/UZS, else USD."""
    if supplier is not None and supplier.balance_type in (USD, UZS):
        return supplier.balance_type
    return USD


def check_balance(
    supplier: SupplierBalanceSnapshot,
    total_in_base: float,
    chosen_currency: str,
    usd_rate: Optional[float],
) -> BalanceCheck:
    native = native_balance_currency(supplier)
    prior = supplier.prior_consumed_amount or 0.0
    rate = usd_rate if usd_rate and usd_rate > 0 else None

    if chosen_currency == USD and rate is not None:
        currency = USD
        required = total_in_base / rate
        prior_converted = prior if native == USD else prior / rate
        available = supplier.balance_in_usd + prior_converted
    else:
        currency = UZS
        required = total_in_base
        if native != USD:
            prior_converted = prior
        elif rate is not None:
            prior_converted = prior * rate
        else:
            # A USD amount cannot be added to the base balance without a rate
            prior_converted = 0.0
            if prior:
                logger.warning(
                    "No USD rate; prior consumption of %.2f USD by supplier %s not credited",
                    prior, supplier.supplier_id,
                )
        available = supplier.balance + prior_converted

    sufficient = required <= available + FLOAT_EPSILON
    if not sufficient:
        logger.info(
            "Supplier %s balance insufficient: need %.2f %s, have %.2f",
            supplier.supplier_id, required, currency, available,
        )
    return BalanceCheck(
        sufficient=sufficient,
        available_balance=available,
        required_total=required,
        currency=currency,
        prior_consumed_in_currency=prior_converted,
    )
