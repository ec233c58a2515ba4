from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class FieldName(str, Enum):
    """Line-item field keys. Values are the backend wire names."""
    PRODUCT = "product"
    CURRENCY = "currency"
    PURCHASE_UNIT = "purchase_unit"
    PURCHASE_UNIT_QUANTITY = "purchase_unit_quantity"
    QUANTITY = "quantity"                            # base-unit quantity
    EXCHANGE_RATE = "exchange_rate"
    PRICE_PER_UNIT_CURRENCY = "price_per_unit_currency"
    TOTAL_IN_CURRENCY = "total_price_in_currency"
    PRICE_PER_UNIT_BASE = "price_per_unit_uz"
    TOTAL_IN_BASE = "total_price_in_uz"
    BASE_UNIT_COST_CURRENCY = "base_unit_in_currency"
    BASE_UNIT_COST_BASE = "base_unit_in_uzs"
    STOCK_NAME = "stock_name"                        # roll / lot name
    CALCULATION_INPUT = "calculation_input"          # scratch input of the measurement helper


ALL_FIELDS: Tuple[str, ...] = tuple(f.value for f in FieldName)

# Changing any of these redefines the derivation graph
STRUCTURAL_FIELDS: Tuple[str, ...] = (
    FieldName.PRODUCT.value,
    FieldName.CURRENCY.value,
    FieldName.PURCHASE_UNIT.value,
)

# Cleared on a structural edit; quantities survive
MONETARY_FIELDS: Tuple[str, ...] = (
    FieldName.EXCHANGE_RATE.value,
    FieldName.PRICE_PER_UNIT_CURRENCY.value,
    FieldName.TOTAL_IN_CURRENCY.value,
    FieldName.PRICE_PER_UNIT_BASE.value,
    FieldName.TOTAL_IN_BASE.value,
    FieldName.BASE_UNIT_COST_CURRENCY.value,
    FieldName.BASE_UNIT_COST_BASE.value,
)


class LineItemStatus(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    ERROR = "error"


class FieldDescriptor(BaseModel):
    """
    Remotely supplied metadata for one line-item field.
    `value` is kept raw; see stock_entry.resolver.extract_value for reading it.
    """
    name: str
    label: str = ""
    editable: bool = False
    visible: bool = True
    value: Any = None


class CalculationMetadata(BaseModel):
    conversion_factor: float = 1.0
    exchange_rate: float = 1.0
    is_base_currency: bool = False


def empty_fields() -> Dict[str, str]:
    return {name: "" for name in ALL_FIELDS}


class LineItem(BaseModel):
    """One purchase line of a stock entry."""
    id: str                                          # local only, never persisted
    persisted_id: Optional[int] = None               # set when editing a saved stock row
    fields: Dict[str, str] = Field(default_factory=empty_fields)
    field_descriptors: List[FieldDescriptor] = Field(default_factory=list)
    calculation_metadata: Optional[CalculationMetadata] = None
    status: LineItemStatus = LineItemStatus.UNRESOLVED

    # Quantity recorded when the stock was first entered, set only when it
    # differs from the live quantity (stock partially sold since)
    historical_quantity_override: Optional[float] = None

    # Reference id of the exchange rate record, when known
    exchange_rate_id: Optional[int] = None
    selected_product: Optional[dict] = None
    is_expanded: bool = True

    # True while the values still come straight from storage; such items are
    # resolved without re-deriving their monetary fields
    values_from_storage: bool = False

    def get(self, name: str) -> str:
        value = self.fields.get(name)
        return "" if value is None else str(value)

    def descriptor(self, name: str) -> Optional[FieldDescriptor]:
        for d in self.field_descriptors:
            if d.name == name:
                return d
        return None

    def is_editable(self, name: str) -> bool:
        """A field without a descriptor counts as derived."""
        d = self.descriptor(name)
        return bool(d and d.editable)

    @property
    def field_order(self) -> List[str]:
        return [d.name for d in self.field_descriptors]

    @property
    def structural_key(self) -> Tuple[str, str, str]:
        return tuple(self.get(name) for name in STRUCTURAL_FIELDS)  # type: ignore[return-value]

    @property
    def is_resolved(self) -> bool:
        return self.status == LineItemStatus.RESOLVED

    @property
    def quantity_mismatch(self) -> bool:
        return self.historical_quantity_override is not None

    @property
    def display_quantity(self) -> str:
        """The quantity to show and submit: the historical one wins when set."""
        if self.historical_quantity_override is not None:
            return f"{self.historical_quantity_override:.2f}"
        return self.get(FieldName.QUANTITY.value)
