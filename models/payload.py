from pydantic import BaseModel, Field
from typing import Optional, List


class ResolverRequest(BaseModel):
    """Body sent to the pricing/configuration service for one line item."""
    store: int
    product: int
    currency: int
    purchase_unit: int
    supplier: int
    date_of_arrived: str                    # ISO local, "YYYY-MM-DDTHH:MM"


class PaymentPayload(BaseModel):
    amount: Optional[float] = None
    payment_type: str


class StockPayload(BaseModel):
    """One outbound stock line. Monetary values are rounded to 2 decimals."""
    id: Optional[int] = None                # present only for previously saved lines
    product: int
    purchase_unit: int
    currency: int
    exchange_rate: Optional[int] = None
    quantity: float = 0
    purchase_unit_quantity: float = 0       # rounded to 4 decimals
    price_per_unit_uz: float = 0
    total_price_in_uz: float = 0
    price_per_unit_currency: float = 0
    total_price_in_currency: float = 0
    base_unit_in_uzs: Optional[float] = None
    base_unit_in_currency: Optional[float] = None
    stock_name: Optional[str] = None


class StockEntryPayload(BaseModel):
    """
    Full submission body for one stock entry.
    Optional flags are omitted from the wire form when unset.
    """
    store: int
    supplier: int
    date_of_arrived: str

    is_debt: Optional[bool] = None
    amount_of_debt: Optional[float] = None
    advance_of_debt: Optional[float] = None
    use_supplier_balance: Optional[bool] = None
    supplier_balance_type: Optional[str] = None
    deposit_payment_method: Optional[str] = None
    is_inventory_adjustment: Optional[bool] = None
    payments: Optional[List[PaymentPayload]] = None

    stocks: List[StockPayload] = Field(default_factory=list)
    deleted_stocks: Optional[List[int]] = None

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)
