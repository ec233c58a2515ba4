"""
Rounding and tolerant parsing of line-item numbers.

Two precisions exist:
  money and base-unit quantities   2 decimals
  purchase-unit quantities         4 decimals

Field values are display strings. Arithmetic is done on floats and rounded
only when a string is written, so repeated edits never compound rounding.
Ties round half up on the exact binary value of the float.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

MONEY_PLACES = 2
PURCHASE_QTY_PLACES = 4


def parse_number(value: Any) -> Optional[float]:
    """Return a float for numeric input; None for empty, NaN or unparseable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def to_number(value: Any) -> float:
    """Like parse_number, but missing values count as zero."""
    num = parse_number(value)
    return 0.0 if num is None else num


def _quantize(num: float, places: int) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return Decimal(num).quantize(exp, rounding=ROUND_HALF_UP)


def round_to(num: float, places: int) -> float:
    return float(_quantize(num, places))


def format_money(value: Any) -> str:
    """Display form with 2 decimals; empty string for missing input."""
    num = parse_number(value)
    if num is None:
        return ""
    return str(_quantize(num, MONEY_PLACES))


def format_purchase_quantity(value: Any) -> str:
    """Display form with 4 decimals; empty string for missing input."""
    num = parse_number(value)
    if num is None:
        return ""
    return str(_quantize(num, PURCHASE_QTY_PLACES))


def money_for_api(value: Any) -> Optional[float]:
    num = parse_number(value)
    if num is None:
        return None
    return round_to(num, MONEY_PLACES)


def purchase_quantity_for_api(value: Any) -> Optional[float]:
    num = parse_number(value)
    if num is None:
        return None
    return round_to(num, PURCHASE_QTY_PLACES)


def is_blank(value: Any) -> bool:
    """Empty, missing or literal "0" all count as not yet filled."""
    if value is None:
        return True
    text = str(value).strip()
    return text == "" or text == "0"
