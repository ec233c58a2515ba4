"""
Unit tests for the supplier balance check.
"""
import pytest

from models.entry import SupplierBalanceSnapshot
from stock_entry.balance import check_balance, default_balance_currency, native_balance_currency


def _supplier(**kwargs) -> SupplierBalanceSnapshot:
    data = {"supplier_id": 5, "balance_type": "UZS", "balance": 0.0, "balance_in_usd": 0.0}
    data.update(kwargs)
    return SupplierBalanceSnapshot(**data)


@pytest.mark.unit
class TestBaseCurrencyCheck:

    def test_exact_equality_is_sufficient(self):
        result = check_balance(_supplier(balance=150), 150, "UZS", 12500)
        assert result.sufficient is True
        assert result.currency == "UZS"
        assert result.balance_after_purchase == 0

    def test_one_cent_short_is_insufficient(self):
        result = check_balance(_supplier(balance=150), 150.01, "UZS", 12500)
        assert result.sufficient is False

    def test_usd_without_rate_stays_in_base_currency(self):
        result = check_balance(_supplier(balance=1000, balance_in_usd=1), 900, "USD", None)
        assert result.currency == "UZS"
        assert result.required_total == 900
        assert result.sufficient is True

    def test_prior_usd_consumption_not_credited_without_rate(self):
        supplier = _supplier(balance_type="USD", balance=0, prior_consumed_amount=100)
        result = check_balance(supplier, 100, "UZS", None)
        assert result.prior_consumed_in_currency == 0
        assert result.available_balance == 0
        assert result.sufficient is False

    def test_prior_usd_consumption_converted_to_base(self):
        supplier = _supplier(balance_type="USD", balance=0, prior_consumed_amount=10)
        result = check_balance(supplier, 125000, "UZS", 12500)
        assert result.prior_consumed_in_currency == 125000
        assert result.sufficient is True


@pytest.mark.unit
class TestUsdCheck:

    def test_insufficient_usd_balance(self):
        """100 USD available, 150 USD required."""
        supplier = _supplier(balance_type="USD", balance_in_usd=100)
        result = check_balance(supplier, 150 * 12500, "USD", 12500)

        assert result.currency == "USD"
        assert result.required_total == 150
        assert result.available_balance == 100
        assert result.sufficient is False

    def test_exact_usd_balance_is_sufficient(self):
        supplier = _supplier(balance_type="USD", balance_in_usd=150)
        assert check_balance(supplier, 150 * 12500, "USD", 12500).sufficient is True

    def test_fraction_of_a_cent_short_is_insufficient(self):
        """1 250 050 at 12 500 is 100.004 USD against 100.00 available."""
        supplier = _supplier(balance_type="USD", balance_in_usd=100)
        result = check_balance(supplier, 1250050, "USD", 12500)
        assert result.required_total == pytest.approx(100.004)
        assert result.sufficient is False

    def test_prior_consumption_in_native_usd(self):
        supplier = _supplier(balance_type="USD", balance_in_usd=100, prior_consumed_amount=60)
        result = check_balance(supplier, 150 * 12500, "USD", 12500)
        assert result.prior_consumed_in_currency == 60
        assert result.available_balance == 160
        assert result.sufficient is True

    def test_prior_consumption_in_base_currency_divided_by_rate(self):
        supplier = _supplier(balance_type="UZS", balance_in_usd=0, prior_consumed_amount=125000)
        result = check_balance(supplier, 125000, "USD", 12500)
        assert result.prior_consumed_in_currency == 10
        assert result.sufficient is True


@pytest.mark.unit
class TestBalanceCurrency:

    @pytest.mark.parametrize("balance_type,expected", [
        ("USD", "USD"), ("UZS", "UZS"), ("EUR", "USD"), (None, "USD"),
    ])
    def test_default_balance_currency(self, balance_type, expected):
        assert default_balance_currency(_supplier(balance_type=balance_type)) == expected

    def test_default_without_supplier(self):
        assert default_balance_currency(None) == "USD"

    @pytest.mark.parametrize("balance_type,expected", [
        ("USD", "USD"), ("UZS", "UZS"), ("EUR", "UZS"), (None, "UZS"),
    ])
    def test_native_balance_currency(self, balance_type, expected):
        assert native_balance_currency(_supplier(balance_type=balance_type)) == expected
