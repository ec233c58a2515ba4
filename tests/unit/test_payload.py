"""
Unit tests for the submission payload.
"""
import pytest

from models.entry import EntryContext, PaymentMode, PaymentSplit
from models.line_item import FieldDescriptor
from stock_entry.payload import build_payload, build_stock, exchange_rate_reference


def _context(**kwargs) -> EntryContext:
    data = {"store": 1, "supplier": 5, "date_of_arrived": "2024-03-01T09:30"}
    data.update(kwargs)
    return EntryContext(**data)


@pytest.fixture
def saved_line(make_item):
    item = make_item(
        product="11", currency="2", purchase_unit="3",
        purchase_unit_quantity="10", quantity="7.00",
        price_per_unit_currency="13.00", total_price_in_currency="130.00",
        price_per_unit_uz="162500.00", total_price_in_uz="1625000.00",
        base_unit_in_currency="13.00", base_unit_in_uzs="162500.00",
    )
    item.persisted_id = 102
    item.historical_quantity_override = 10.0
    item.exchange_rate_id = 7
    return item


@pytest.mark.unit
class TestStockLine:

    def test_historical_quantity_is_submitted(self, saved_line):
        stock = build_stock(saved_line)
        assert stock.quantity == 10
        assert stock.id == 102

    def test_live_quantity_without_override(self, saved_line):
        saved_line.historical_quantity_override = None
        assert build_stock(saved_line).quantity == 7

    def test_values_are_rounded(self, make_item):
        item = make_item(product="1", currency="1", purchase_unit="1",
                         purchase_unit_quantity="3.33333", price_per_unit_uz="10.006")
        stock = build_stock(item)
        assert stock.purchase_unit_quantity == 3.3333
        assert stock.price_per_unit_uz == 10.01
        assert stock.base_unit_in_uzs is None

    def test_rate_id_from_descriptor_wins(self, saved_line):
        saved_line.field_descriptors = [
            FieldDescriptor(name="exchange_rate", value={"id": 9, "rate": 12600}),
        ]
        assert exchange_rate_reference(saved_line) == 9

    def test_rate_id_falls_back_to_stored_reference(self, saved_line):
        assert exchange_rate_reference(saved_line) == 7

    def test_blank_stock_name_is_omitted(self, saved_line):
        saved_line.fields["stock_name"] = "   "
        assert "stock_name" not in build_stock(saved_line).model_dump(exclude_none=True)


@pytest.mark.unit
class TestEntryPayload:

    def test_payment_mode_payload(self, saved_line):
        context = _context(payments=[PaymentSplit(amount="1625000", payment_method="Наличные")])
        wire = build_payload(context, [saved_line]).to_wire()

        assert wire["store"] == 1
        assert wire["payments"] == [{"amount": 1625000.0, "payment_type": "Наличные"}]
        assert "is_debt" not in wire
        assert "use_supplier_balance" not in wire
        assert "deleted_stocks" not in wire
        assert wire["stocks"][0]["quantity"] == 10
        assert wire["stocks"][0]["exchange_rate"] == 7

    def test_debt_payload(self, saved_line):
        context = _context(payment_mode=PaymentMode.DEBT, amount_of_debt="1625000.00",
                           advance_of_debt="100", deposit_payment_method="Карта")
        wire = build_payload(context, [saved_line]).to_wire()

        assert wire["is_debt"] is True
        assert wire["amount_of_debt"] == 1625000.0
        assert wire["advance_of_debt"] == 100.0
        assert wire["deposit_payment_method"] == "Карта"
        assert "payments" not in wire

    def test_supplier_balance_payload(self, saved_line):
        context = _context(payment_mode=PaymentMode.SUPPLIER_BALANCE, supplier_balance_type="UZS")
        wire = build_payload(context, [saved_line], deleted_stock_ids=[101]).to_wire()

        assert wire["use_supplier_balance"] is True
        assert wire["supplier_balance_type"] == "UZS"
        assert wire["deleted_stocks"] == [101]

    def test_inventory_adjustment_payload(self, saved_line):
        context = _context(payment_mode=PaymentMode.INVENTORY_ADJUSTMENT)
        assert build_payload(context, [saved_line]).to_wire()["is_inventory_adjustment"] is True
