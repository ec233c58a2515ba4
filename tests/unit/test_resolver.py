"""
Unit tests for the field configuration resolver.
"""
import asyncio

import pytest

from models.entry import EntryContext
from models.line_item import FieldName, LineItem, LineItemStatus, empty_fields
from stock_entry.errors import ConfigurationUnavailable, RemoteError
from stock_entry.resolver import (
    AmountObject, FieldConfigurationResolver, RateObject, ReferenceObject, Scalar,
    build_request, extract_value, merge_configuration, parse_descriptor_value, parse_response,
)


class StubClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    async def calculate_stock(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def _context() -> EntryContext:
    return EntryContext(store=1, supplier=5, date_of_arrived="2024-03-01T09:30")


def _item(**values) -> LineItem:
    fields = empty_fields()
    fields.update({"product": "10", "currency": "2", "purchase_unit": "3"})
    fields.update(values)
    return LineItem(id="item-1", fields=fields)


@pytest.mark.unit
class TestValueExtraction:

    @pytest.mark.parametrize("raw,expected", [
        ({"id": 7, "rate": 12500}, "12500"),
        ({"value": {"amount": 5}}, "5"),
        ({"value": {"value": 3}}, "3"),
        ({"amount": "99.50", "id": 2}, "99.50"),
        ({"id": 9}, "9"),
        (12.5, "12.5"),
        ("abc", "abc"),
        (None, ""),
        (True, "true"),
    ])
    def test_extract_value(self, raw, expected):
        assert extract_value(raw) == expected

    def test_rate_wins_over_other_keys(self):
        assert extract_value({"rate": 1.5, "value": 2, "amount": 3, "id": 4}) == "1.5"

    def test_tagged_shapes(self):
        assert parse_descriptor_value({"rate": 1, "id": 2}) == RateObject(rate=1, id=2)
        assert parse_descriptor_value({"amount": 5}) == AmountObject(amount=5)
        assert parse_descriptor_value({"id": 3}) == ReferenceObject(id=3)
        assert parse_descriptor_value(4) == Scalar(4)


@pytest.mark.unit
class TestParseResponse:

    def test_usd_response(self, usd_calculation_response):
        config = parse_response(usd_calculation_response)
        assert config.currency_is_base is False
        assert config.metadata.exchange_rate == 12500
        assert config.metadata.conversion_factor == 1
        assert config.descriptor("quantity").editable is False
        assert config.descriptor("purchase_unit_quantity").editable is True

    def test_base_response(self, base_calculation_response):
        config = parse_response(base_calculation_response)
        assert config.currency_is_base is True
        assert config.metadata.is_base_currency is True
        assert config.metadata.conversion_factor == 2
        assert config.metadata.exchange_rate == 1

    def test_scalar_rate_defaults_to_one(self):
        config = parse_response({"dynamic_fields": {"exchange_rate": {"value": 12500}}})
        assert config.metadata.exchange_rate == 1

    @pytest.mark.parametrize("factor", [0, "abc", None])
    def test_bad_conversion_factor_defaults_to_one(self, factor):
        config = parse_response({"dynamic_fields": {"conversion_factor": {"value": factor}}})
        assert config.metadata.conversion_factor == 1

    def test_missing_currency_is_not_base(self):
        assert parse_response({"dynamic_fields": {}}).currency_is_base is False

    @pytest.mark.parametrize("response", [
        {"dynamic_fields": {"exchange_rate": 5}},
        {"dynamic_fields": {"quantity": {"label": 5, "editable": False}}},
        {"dynamic_fields": ["quantity"]},
        {"dynamic_fields": {}, "currency": "USD"},
        ["not", "an", "object"],
    ])
    def test_malformed_response_is_a_remote_error(self, response):
        with pytest.raises(RemoteError, match="Unexpected field configuration response"):
            parse_response(response)


@pytest.mark.unit
class TestResolve:

    def test_request_body(self):
        request = build_request(_context(), _item())
        assert request.model_dump() == {
            "store": 1, "product": 10, "currency": 2, "purchase_unit": 3,
            "supplier": 5, "date_of_arrived": "2024-03-01T09:30",
        }

    @pytest.mark.parametrize("missing", ["product", "currency", "purchase_unit"])
    def test_missing_line_value_raises(self, missing):
        with pytest.raises(ConfigurationUnavailable) as exc:
            build_request(_context(), _item(**{missing: ""}))
        assert exc.value.missing == [missing]

    def test_guard_skips_network(self, usd_calculation_response):
        client = StubClient(usd_calculation_response)
        resolver = FieldConfigurationResolver(client)
        context = EntryContext(store=1, date_of_arrived="2024-03-01T09:30")

        with pytest.raises(ConfigurationUnavailable) as exc:
            asyncio.run(resolver.resolve(context, _item()))
        assert exc.value.missing == ["supplier"]
        assert client.requests == []

    def test_resolve_returns_configuration(self, usd_calculation_response):
        client = StubClient(usd_calculation_response)
        config = asyncio.run(FieldConfigurationResolver(client).resolve(_context(), _item()))
        assert config.metadata.exchange_rate == 12500
        assert len(client.requests) == 1

    def test_remote_error_propagates(self):
        client = StubClient(error=RemoteError("boom", status_code=500))
        with pytest.raises(RemoteError):
            asyncio.run(FieldConfigurationResolver(client).resolve(_context(), _item()))


@pytest.mark.unit
class TestMerge:

    def test_fresh_merge_rederives(self, usd_calculation_response):
        item = _item(purchase_unit_quantity="10", price_per_unit_currency="2.00")
        merge_configuration(item, parse_response(usd_calculation_response), preserve_values=False)

        assert item.status == LineItemStatus.RESOLVED
        assert item.exchange_rate_id == 7
        assert item.get("exchange_rate") == "12500.00"
        assert item.get("quantity") == "10.00"
        assert item.get("total_price_in_uz") == "250000.00"

    def test_purchase_quantity_descriptor_is_always_present(self):
        item = _item(purchase_unit_quantity="3")
        response = {"dynamic_fields": {"quantity": {"label": "Qty", "editable": False, "value": None}}}
        merge_configuration(item, parse_response(response), preserve_values=False)

        descriptor = item.descriptor(FieldName.PURCHASE_UNIT_QUANTITY.value)
        assert descriptor is not None
        assert descriptor.editable is True
        assert descriptor.value == "3"
        assert descriptor.label == "Quantity (Purchase Unit)"

    def test_preserving_merge_never_overwrites_stored_values(self, usd_calculation_response):
        response = dict(usd_calculation_response)
        response["dynamic_fields"] = dict(response["dynamic_fields"])
        response["dynamic_fields"]["price_per_unit_uz"] = {
            "label": "Price UZS", "editable": False, "value": {"amount": 99999},
        }
        item = _item(purchase_unit_quantity="4", price_per_unit_currency="5.00",
                     price_per_unit_uz="62500.00", exchange_rate="12000")

        merge_configuration(item, parse_response(response), preserve_values=True)

        assert item.get("price_per_unit_uz") == "62500.00"
        assert item.get("exchange_rate") == "12000"
        assert item.get("quantity") == ""
        assert item.is_resolved

    def test_empty_derived_field_is_filled_from_descriptor(self):
        response = {"dynamic_fields": {
            "price_per_unit_uz": {"label": "Price", "editable": False, "value": {"amount": 99999}},
        }}
        item = _item()
        merge_configuration(item, parse_response(response), preserve_values=True)
        assert item.get("price_per_unit_uz") == "99999"

    def test_re_resolution_is_idempotent(self, usd_calculation_response):
        item = _item(purchase_unit_quantity="10", price_per_unit_currency="2.00")
        config = parse_response(usd_calculation_response)
        merge_configuration(item, config, preserve_values=False)
        first = dict(item.fields)
        merge_configuration(item, config, preserve_values=False)
        assert item.fields == first
