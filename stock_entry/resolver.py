"""
Field configuration resolver.

Asks the pricing/configuration service which line-item fields are editable
and which are derived for a (store, product, currency, purchase unit,
supplier, date) tuple, together with the conversion factor and exchange
rate that apply, and merges the answer into a line item.

Descriptor values arrive in several shapes:
  scalar                      12500, "3", null
  {"rate": ..., "id": ...}    exchange rates
  {"amount": ...}             monetary values
  {"id": ...}                 references
  {"value": ...}              a wrapper around any of the above (unwrapped once)
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import ValidationError

from models.entry import EntryContext
from models.line_item import (
    ALL_FIELDS, CalculationMetadata, FieldDescriptor, FieldName, LineItem, LineItemStatus,
)
from models.payload import ResolverRequest
from .derivation import rederive
from .errors import ConfigurationUnavailable, RemoteError
from .numbers import format_money, is_blank, parse_number

logger = logging.getLogger(__name__)

PURCHASE_UNIT_QUANTITY_LABEL = "Quantity (Purchase Unit)"
UNEXPECTED_RESPONSE = "Unexpected field configuration response"


# ---------------------------------------------------------------------------
# Descriptor value shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class RateObject:
    rate: Any
    id: Optional[int] = None


@dataclass(frozen=True)
class AmountObject:
    amount: Any
    id: Optional[int] = None


@dataclass(frozen=True)
class ReferenceObject:
    id: Any


DescriptorValue = Union[Scalar, RateObject, AmountObject, ReferenceObject]


def _as_id(value: Any) -> Optional[int]:
    num = parse_number(value)
    return int(num) if num is not None else None


def parse_descriptor_value(raw: Any, _unwrap: bool = True) -> DescriptorValue:
    if not isinstance(raw, dict):
        return Scalar(raw)
    if raw.get("rate") is not None:
        return RateObject(rate=raw["rate"], id=_as_id(raw.get("id")))
    if raw.get("value") is not None:
        if _unwrap:
            return parse_descriptor_value(raw["value"], _unwrap=False)
        return Scalar(str(raw["value"]))
    if raw.get("amount") is not None:
        return AmountObject(amount=raw["amount"], id=_as_id(raw.get("id")))
    if raw.get("id") is not None:
        return ReferenceObject(id=raw["id"])
    return Scalar(str(raw))


def extract_value(raw: Any) -> str:
    """Canonical string form: rate, else unwrapped value, else amount, else id."""
    if raw is None:
        return ""
    parsed = parse_descriptor_value(raw)
    if isinstance(parsed, RateObject):
        return str(parsed.rate)
    if isinstance(parsed, AmountObject):
        return str(parsed.amount)
    if isinstance(parsed, ReferenceObject):
        return str(parsed.id)
    if parsed.value is None:
        return ""
    if isinstance(parsed.value, bool):
        return str(parsed.value).lower()
    return str(parsed.value)


def reference_id(raw: Any) -> Optional[int]:
    """The `id` carried by an object-shaped value, if any."""
    if isinstance(raw, dict):
        return _as_id(raw.get("id"))
    return None


# ---------------------------------------------------------------------------
# Resolution result
# ---------------------------------------------------------------------------

@dataclass
class ResolvedConfiguration:
    descriptors: list[FieldDescriptor]
    currency_is_base: bool
    metadata: CalculationMetadata

    def descriptor(self, name: str) -> Optional[FieldDescriptor]:
        return next((d for d in self.descriptors if d.name == name), None)


def parse_response(response: dict) -> ResolvedConfiguration:
    """Raises RemoteError when the response does not have the expected shape."""
    if not isinstance(response, dict):
        raise RemoteError(UNEXPECTED_RESPONSE)
    dynamic = response.get("dynamic_fields") or {}
    currency = response.get("currency") or {}
    if not isinstance(dynamic, dict) or not isinstance(currency, dict):
        raise RemoteError(UNEXPECTED_RESPONSE)
    for name, data in dynamic.items():
        if data is not None and not isinstance(data, dict):
            logger.error("Field configuration for %s is %r, expected an object", name, data)
            raise RemoteError(UNEXPECTED_RESPONSE)

    try:
        descriptors = [
            FieldDescriptor(
                name=name,
                label=(data or {}).get("label") or "",
                editable=bool((data or {}).get("editable")),
                visible=bool((data or {}).get("show", True)),
                value=(data or {}).get("value"),
            )
            for name, data in dynamic.items()
        ]
    except ValidationError as exc:
        logger.error("Invalid field configuration: %s", exc)
        raise RemoteError(UNEXPECTED_RESPONSE) from exc

    rate_value = (dynamic.get("exchange_rate") or {}).get("value")
    parsed_rate = parse_descriptor_value(rate_value)
    exchange_rate = 1.0
    if isinstance(parsed_rate, RateObject):
        exchange_rate = parse_number(parsed_rate.rate) or 1.0

    factor_value = (dynamic.get("conversion_factor") or {}).get("value")
    conversion_factor = parse_number(extract_value(factor_value)) or 1.0

    currency_is_base = bool(currency.get("is_base", False))
    return ResolvedConfiguration(
        descriptors=descriptors,
        currency_is_base=currency_is_base,
        metadata=CalculationMetadata(
            conversion_factor=conversion_factor,
            exchange_rate=exchange_rate,
            is_base_currency=currency_is_base,
        ),
    )


def build_request(context: EntryContext, item: LineItem) -> ResolverRequest:
    """Raise ConfigurationUnavailable unless every required value is present."""
    values = {
        "store": context.store,
        "product": item.get(FieldName.PRODUCT.value),
        "currency": item.get(FieldName.CURRENCY.value),
        "purchase_unit": item.get(FieldName.PURCHASE_UNIT.value),
        "supplier": context.supplier,
        "date_of_arrived": context.date_of_arrived,
    }
    missing = [name for name, value in values.items() if value in (None, "", 0)]
    if missing:
        raise ConfigurationUnavailable(missing)
    numeric = {k: int(parse_number(v) or 0) for k, v in values.items() if k != "date_of_arrived"}
    if not all(numeric.values()):
        raise ConfigurationUnavailable([k for k, v in numeric.items() if not v])
    return ResolverRequest(date_of_arrived=values["date_of_arrived"], **numeric)


class FieldConfigurationResolver:
    """
    Usage:
        resolver = FieldConfigurationResolver(client)
        config = await resolver.resolve(context, item)
        merge_configuration(item, config, preserve_values=False)
    """

    def __init__(self, client) -> None:
        self.client = client

    async def resolve(self, context: EntryContext, item: LineItem) -> ResolvedConfiguration:
        """
        Raises ConfigurationUnavailable before any request when the context
        is incomplete, RemoteError when the request fails.
        """
        request = build_request(context, item)
        logger.debug("Resolving field configuration for item %s: %s", item.id, request)
        response = await self.client.calculate_stock(request)
        config = parse_response(response)
        logger.info(
            "Resolved item %s: %d fields, factor=%s, rate=%s, base_currency=%s",
            item.id, len(config.descriptors), config.metadata.conversion_factor,
            config.metadata.exchange_rate, config.currency_is_base,
        )
        return config


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def _ensure_purchase_quantity_descriptor(item: LineItem, descriptors: list[FieldDescriptor]) -> list[FieldDescriptor]:
    name = FieldName.PURCHASE_UNIT_QUANTITY.value
    if any(d.name == name for d in descriptors):
        return descriptors
    return descriptors + [FieldDescriptor(
        name=name,
        label=PURCHASE_UNIT_QUANTITY_LABEL,
        editable=True,
        visible=True,
        value=item.get(name),
    )]


def merge_configuration(item: LineItem, config: ResolvedConfiguration, preserve_values: bool) -> None:
    """
    Merge a resolution into the item and mark it resolved.

    Derived descriptor values only fill fields that are still empty, so a
    value the item already holds is never replaced by a later resolution.
    Fresh merges (preserve_values=False) also refresh the exchange rate and
    re-derive the line; value-preserving merges leave stored values alone.
    """
    rate_name = FieldName.EXCHANGE_RATE.value
    fields = dict(item.fields)

    rate_descriptor = config.descriptor(rate_name)
    if rate_descriptor is not None and rate_descriptor.value is not None:
        if not preserve_values or is_blank(fields.get(rate_name)):
            fields[rate_name] = format_money(extract_value(rate_descriptor.value))
        rate_id = reference_id(rate_descriptor.value)
        if rate_id is not None:
            item.exchange_rate_id = rate_id

    for d in config.descriptors:
        if d.editable or d.value is None or d.name not in ALL_FIELDS or d.name == rate_name:
            continue
        if is_blank(fields.get(d.name)):
            fields[d.name] = extract_value(d.value)

    item.fields = fields
    item.field_descriptors = _ensure_purchase_quantity_descriptor(item, list(config.descriptors))
    item.calculation_metadata = config.metadata
    item.status = LineItemStatus.RESOLVED

    if not preserve_values:
        rederive(item)
