"""
Line-item calculation engine.

Turns one field edit into the full set of derived quantities and money
fields for a line item, given the metadata the resolver supplied:

  1. Unit conversion    purchase-unit quantity <-> base-unit quantity
  2. Money              per-unit price <-> total, in the line's currency,
                        then into base currency for foreign-currency lines
  3. Base-unit cost     totals divided by the base-unit quantity

The derivation graph is declared as lookup tables keyed by the changed
field, so each edit selects at most one edge per table. Missing quantities
count as zero when multiplying and skip the step when dividing.
"""
import logging
from typing import Any, Dict, NamedTuple, Optional

from models.line_item import CalculationMetadata, FieldName, LineItem
from .errors import CalculationInputError
from .numbers import format_money, format_purchase_quantity, parse_number

logger = logging.getLogger(__name__)

PUQ = FieldName.PURCHASE_UNIT_QUANTITY.value
QUANTITY = FieldName.QUANTITY.value
PRICE_CUR = FieldName.PRICE_PER_UNIT_CURRENCY.value
TOTAL_CUR = FieldName.TOTAL_IN_CURRENCY.value
PRICE_BASE = FieldName.PRICE_PER_UNIT_BASE.value
TOTAL_BASE = FieldName.TOTAL_IN_BASE.value
COST_CUR = FieldName.BASE_UNIT_COST_CURRENCY.value
COST_BASE = FieldName.BASE_UNIT_COST_BASE.value

MULTIPLY = "multiply"
DIVIDE = "divide"


class Edge(NamedTuple):
    """target = source (op) operand"""
    source: str
    target: str
    op: str


# operand: the resolver's conversion factor.
# Fires only when the target is a derived (non-editable) field.
UNIT_CONVERSION: Dict[str, Edge] = {
    PUQ: Edge(PUQ, QUANTITY, MULTIPLY),
    QUANTITY: Edge(QUANTITY, PUQ, DIVIDE),
}

# operand: the purchase-unit quantity.
# A quantity edit keeps the per-unit price and re-derives the total.
FOREIGN_MONEY: Dict[str, Edge] = {
    PRICE_CUR: Edge(PRICE_CUR, TOTAL_CUR, MULTIPLY),
    TOTAL_CUR: Edge(TOTAL_CUR, PRICE_CUR, DIVIDE),
    PUQ: Edge(PRICE_CUR, TOTAL_CUR, MULTIPLY),
    QUANTITY: Edge(PRICE_CUR, TOTAL_CUR, MULTIPLY),
}

BASE_MONEY: Dict[str, Edge] = {
    PRICE_BASE: Edge(PRICE_BASE, TOTAL_BASE, MULTIPLY),
    TOTAL_BASE: Edge(TOTAL_BASE, PRICE_BASE, DIVIDE),
    PUQ: Edge(PRICE_BASE, TOTAL_BASE, MULTIPLY),
    QUANTITY: Edge(PRICE_BASE, TOTAL_BASE, MULTIPLY),
}

# operand: the exchange rate; always applied on foreign-currency lines
TO_BASE_CURRENCY = (
    Edge(PRICE_CUR, PRICE_BASE, MULTIPLY),
    Edge(TOTAL_CUR, TOTAL_BASE, MULTIPLY),
)

# operand: the base-unit quantity
BASE_UNIT_COST = (
    Edge(TOTAL_CUR, COST_CUR, DIVIDE),
    Edge(TOTAL_BASE, COST_BASE, DIVIDE),
)


class _Working:
    """Field values during one pass: unrounded numbers plus display strings."""

    def __init__(self, fields: Dict[str, str]) -> None:
        self.fields = dict(fields)
        self.numbers: Dict[str, float] = {}
        self.updates: Dict[str, str] = {}

    def num(self, name: str) -> Optional[float]:
        if name in self.numbers:
            return self.numbers[name]
        return parse_number(self.fields.get(name))

    def set_raw(self, name: str, value: Any) -> None:
        text = "" if value is None else str(value)
        self.numbers.pop(name, None)
        self.fields[name] = text
        self.updates[name] = text

    def write(self, name: str, value: float) -> None:
        self.numbers[name] = value
        text = format_purchase_quantity(value) if name == PUQ else format_money(value)
        self.fields[name] = text
        self.updates[name] = text

    def apply(self, edge: Edge, operand: Optional[float]) -> bool:
        """Evaluate one edge. Division by a missing or zero operand is skipped."""
        source = self.num(edge.source) or 0.0
        if edge.op == MULTIPLY:
            self.write(edge.target, source * (operand or 0.0))
            return True
        if not operand:
            return False
        self.write(edge.target, source / operand)
        return True


def _money_table(meta: CalculationMetadata) -> Dict[str, Edge]:
    return BASE_MONEY if meta.is_base_currency else FOREIGN_MONEY


def in_derivation_graph(meta: CalculationMetadata, field_name: str) -> bool:
    return field_name in UNIT_CONVERSION or field_name in _money_table(meta)


def _convert_units(w: _Working, item: LineItem, edge: Optional[Edge], factor: float) -> None:
    if edge is None or item.is_editable(edge.target):
        return
    if not w.num(edge.source):
        return
    w.apply(edge, factor)


def _to_base_currency(w: _Working, meta: CalculationMetadata) -> None:
    if meta.is_base_currency:
        return
    for edge in TO_BASE_CURRENCY:
        w.apply(edge, meta.exchange_rate)


def _base_unit_costs(w: _Working) -> None:
    quantity = w.num(QUANTITY)
    if not quantity:
        return
    for edge in BASE_UNIT_COST:
        w.apply(edge, quantity)


def recalculate(item: LineItem, changed_field: str, new_value: Any) -> Dict[str, str]:
    """
    Derive every dependent field after `changed_field` is set to `new_value`.

    Pure: returns the updated fields (including the edited one) and leaves
    the item untouched. Returns {} when the item has no metadata yet.
    """
    meta = item.calculation_metadata
    if meta is None:
        logger.debug("Item %s has no calculation metadata; edit of %s not derived",
                     item.id, changed_field)
        return {}

    w = _Working(item.fields)
    w.set_raw(changed_field, new_value)

    if not in_derivation_graph(meta, changed_field):
        return w.updates

    _convert_units(w, item, UNIT_CONVERSION.get(changed_field), meta.conversion_factor)

    money_edge = _money_table(meta).get(changed_field)
    if money_edge is not None:
        w.apply(money_edge, w.num(PUQ))
    _to_base_currency(w, meta)
    _base_unit_costs(w)
    return w.updates


def apply_edit(item: LineItem, changed_field: str, new_value: Any) -> Dict[str, str]:
    """recalculate() and write the result into the item."""
    updates = recalculate(item, changed_field, new_value)
    if not updates and item.calculation_metadata is None:
        # Unresolved items still keep what the user typed
        updates = {changed_field: "" if new_value is None else str(new_value)}
    item.fields.update(updates)
    return updates


def _forward_prices(w: _Working, meta: CalculationMetadata) -> None:
    """Re-derive totals from the existing per-unit price, if there is one."""
    qty = w.num(PUQ)
    if not qty:
        return
    price_field = PRICE_BASE if meta.is_base_currency else PRICE_CUR
    if not w.num(price_field):
        return
    w.apply(_money_table(meta)[PUQ], qty)
    _to_base_currency(w, meta)


def rederive(item: LineItem) -> Dict[str, str]:
    """
    Forward pass after fresh metadata arrives: quantities through the
    conversion factor, totals from per-unit prices, then base-unit costs.
    Writes into the item and returns the changed fields.
    """
    meta = item.calculation_metadata
    if meta is None:
        return {}

    w = _Working(item.fields)
    if not item.is_editable(QUANTITY):
        _convert_units(w, item, UNIT_CONVERSION[PUQ], meta.conversion_factor)
    elif not item.is_editable(PUQ):
        _convert_units(w, item, UNIT_CONVERSION[QUANTITY], meta.conversion_factor)
    _forward_prices(w, meta)
    _base_unit_costs(w)

    item.fields.update(w.updates)
    return w.updates


def apply_measurement_input(item: LineItem, raw_input: Any, conversion_number: Any) -> Dict[str, str]:
    """
    Manual override for products measured in a secondary unit.

    purchase-unit quantity = raw input / the product's conversion number,
    base-unit quantity = raw input; totals then follow from the existing
    per-unit price without asking the resolver again.
    """
    raw = parse_number(raw_input)
    if not raw or raw <= 0:
        raise CalculationInputError(f"Enter a positive number (got {raw_input!r})")
    number = parse_number(conversion_number)
    if not number or number <= 0:
        raise CalculationInputError("Conversion number not found for this unit")

    w = _Working(item.fields)
    w.write(PUQ, raw / number)
    w.write(QUANTITY, raw)

    meta = item.calculation_metadata
    if meta is not None:
        _forward_prices(w, meta)
        _base_unit_costs(w)

    descriptor = item.descriptor(PUQ)
    if descriptor is not None:
        descriptor.value = w.fields[PUQ]

    item.fields.update(w.updates)
    logger.debug("Item %s: %s / %s = %s", item.id, raw, number, w.fields[PUQ])
    return w.updates
