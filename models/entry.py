from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PaymentMode(str, Enum):
    PAYMENT = "payment"
    DEBT = "debt"
    SUPPLIER_BALANCE = "supplier_balance"
    INVENTORY_ADJUSTMENT = "inventory_adjustment"


class PaymentSplit(BaseModel):
    amount: str = "0"
    payment_method: str


class EntryContext(BaseModel):
    """
    Entry-wide values shared by every line item.
    Never holds item-level data.
    """
    store: Optional[int] = None
    supplier: Optional[int] = None
    date_of_arrived: str = ""               # local "YYYY-MM-DDTHH:MM"
    payment_mode: PaymentMode = PaymentMode.PAYMENT
    payments: List[PaymentSplit] = Field(default_factory=list)

    amount_of_debt: str = ""
    advance_of_debt: str = ""
    deposit_payment_method: str = ""
    supplier_balance_type: str = "USD"      # USD | UZS

    @property
    def is_debt(self) -> bool:
        return self.payment_mode == PaymentMode.DEBT

    @property
    def use_supplier_balance(self) -> bool:
        return self.payment_mode == PaymentMode.SUPPLIER_BALANCE

    @property
    def is_inventory_adjustment(self) -> bool:
        return self.payment_mode == PaymentMode.INVENTORY_ADJUSTMENT

    @property
    def missing_common_fields(self) -> List[str]:
        missing = []
        if not self.store:
            missing.append("store")
        if not self.supplier:
            missing.append("supplier")
        if not self.date_of_arrived:
            missing.append("date_of_arrived")
        return missing


class SupplierBalanceSnapshot(BaseModel):
    """
    A supplier's balances at load time.

    balance and balance_in_usd are tracked independently by the backend.
    prior_consumed_amount is what this entry already took from the balance on
    its previous save, in the supplier's native balance currency (edit mode only).
    """
    supplier_id: int
    name: str = ""
    balance_type: Optional[str] = None      # native balance currency: USD | UZS | other
    balance: float = 0.0                    # base-currency denominated
    balance_in_usd: float = 0.0
    prior_consumed_amount: float = 0.0


class EntryTotals(BaseModel):
    """Sums over resolved line items."""
    total_in_base: float = 0.0              # every resolved item, in base currency
    base_currency_total: float = 0.0        # items priced in base currency
    foreign_currency_total: float = 0.0     # items priced in foreign currency, in that currency
    foreign_total_in_base: float = 0.0
    resolved_count: int = 0
    unresolved_count: int = 0


class BalanceCheck(BaseModel):
    sufficient: bool
    available_balance: float
    required_total: float
    currency: str
    prior_consumed_in_currency: float = 0.0

    @property
    def balance_after_purchase(self) -> float:
        return self.available_balance - self.required_total


class PaymentSummary(BaseModel):
    total: float = 0.0
    paid: float = 0.0

    @property
    def remaining(self) -> float:
        return self.total - self.paid
