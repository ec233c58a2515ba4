"""
Pytest configuration and shared fixtures for the stock-entry test suite.
"""
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="stock_entry_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    config = Config()
    config.api_base_url = "http://backend.test/api/v1/"
    config.api_token = None
    config.draft_db_path = temp_dir / "output" / "drafts.db"
    config.draft_debounce_seconds = 0.01
    config.drafts_enabled = True
    config.default_payment_method = "Наличные"
    return config


# ---------------------------------------------------------------------------
# Sample backend payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def usd_calculation_response() -> dict:
    """Resolver response for a USD line: factor 1, rate 12500."""
    return {
        "currency": {"id": 2, "name": "USD", "is_base": False},
        "dynamic_fields": {
            "purchase_unit_quantity": {"label": "Quantity", "editable": True, "show": True, "value": None},
            "quantity": {"label": "Base quantity", "editable": False, "show": True, "value": None},
            "exchange_rate": {"label": "Rate", "editable": False, "show": True,
                              "value": {"id": 7, "rate": 12500}},
            "conversion_factor": {"label": "Factor", "editable": False, "show": False, "value": 1},
            "price_per_unit_currency": {"label": "Price", "editable": True, "show": True, "value": None},
            "total_price_in_currency": {"label": "Total", "editable": True, "show": True, "value": None},
            "price_per_unit_uz": {"label": "Price UZS", "editable": False, "show": True, "value": None},
            "total_price_in_uz": {"label": "Total UZS", "editable": False, "show": True, "value": None},
        },
    }


@pytest.fixture
def base_calculation_response() -> dict:
    """Resolver response for a base-currency line: factor 2."""
    return {
        "currency": {"id": 1, "name": "UZS", "is_base": True},
        "dynamic_fields": {
            "purchase_unit_quantity": {"label": "Quantity", "editable": True, "show": True, "value": None},
            "quantity": {"label": "Base quantity", "editable": False, "show": True, "value": None},
            "conversion_factor": {"label": "Factor", "editable": False, "show": False, "value": {"value": "2"}},
            "price_per_unit_uz": {"label": "Price UZS", "editable": True, "show": True, "value": None},
            "total_price_in_uz": {"label": "Total UZS", "editable": True, "show": True, "value": None},
        },
    }


@pytest.fixture
def sample_stock_entry() -> dict:
    """A saved entry paid from the supplier's balance; its lines total 1 875 000 (150 USD)."""
    return {
        "id": 42,
        "store": {"id": 1, "name": "Main"},
        "supplier": {"id": 5, "name": "Textile Co"},
        "date_of_arrived": "2024-03-01T09:30:00",
        "is_debt": False,
        "use_supplier_balance": True,
        "supplier_balance_type": "USD",
        "is_inventory_adjustment": False,
        "from_balance_supplier": "0",
        "payments": [],
    }


@pytest.fixture
def sample_stocks() -> list[dict]:
    """Two saved lines; the second has been partly sold since it was entered."""
    return [
        {
            "id": 101,
            "product": {"id": 10, "product_name": "Cotton"},
            "currency": {"id": 2, "name": "USD"},
            "purchase_unit": {"id": 3, "name": "roll"},
            "exchange_rate": {"id": 7, "rate": 12500},
            "purchase_unit_quantity": "4.0000",
            "quantity": "4.00",
            "quantity_for_history": "4.00",
            "price_per_unit_currency": "5.00",
            "total_price_in_currency": "20.00",
            "price_per_unit_uz": "62500.00",
            "total_price_in_uz": "250000.00",
            "base_unit_in_currency": "5.00",
            "base_unit_in_uzs": "62500.00",
            "stock_name": "R-1",
        },
        {
            "id": 102,
            "product": {"id": 11, "product_name": "Linen"},
            "currency": {"id": 2, "name": "USD"},
            "purchase_unit": {"id": 3, "name": "roll"},
            "exchange_rate": {"id": 7, "rate": 12500},
            "purchase_unit_quantity": "10.0000",
            "quantity": "7.00",
            "quantity_for_history": "10.00",
            "price_per_unit_currency": "13.00",
            "total_price_in_currency": "130.00",
            "price_per_unit_uz": "162500.00",
            "total_price_in_uz": "1625000.00",
            "base_unit_in_currency": "13.00",
            "base_unit_in_uzs": "162500.00",
            "stock_name": "",
        },
    ]


@pytest.fixture
def sample_supplier() -> dict:
    return {"id": 5, "name": "Textile Co", "balance_type": "USD",
            "balance": "1250000", "balance_in_usd": "100"}


@pytest.fixture
def make_item():
    """
    Factory for a resolved line item.

    make_item(editable=("purchase_unit_quantity",), factor=1, rate=12500,
              base=False, price_per_unit_currency="2.00")
    """
    from models.line_item import (
        ALL_FIELDS, CalculationMetadata, FieldDescriptor, LineItem, LineItemStatus, empty_fields,
    )

    default_editable = (
        "purchase_unit_quantity", "price_per_unit_currency", "total_price_in_currency",
        "price_per_unit_uz", "total_price_in_uz",
    )

    def _make(item_id="item-1", editable=default_editable, factor=1.0, rate=12500.0,
              base=False, resolved=True, **values):
        fields = empty_fields()
        fields.update({k: str(v) for k, v in values.items()})
        return LineItem(
            id=item_id,
            fields=fields,
            field_descriptors=[
                FieldDescriptor(name=name, label=name, editable=name in editable)
                for name in ALL_FIELDS
            ] if resolved else [],
            calculation_metadata=CalculationMetadata(
                conversion_factor=factor, exchange_rate=rate, is_base_currency=base,
            ) if resolved else None,
            status=LineItemStatus.RESOLVED if resolved else LineItemStatus.UNRESOLVED,
        )
    return _make


# ---------------------------------------------------------------------------
# Mocked backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """
    Routes requests of an httpx.MockTransport to canned responses and
    records every request it sees.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, body=None, status: int = 200) -> None:
        self.routes[(method, path)] = lambda request: httpx.Response(status, json=body)

    def add_handler(self, method: str, path: str, handler) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def json_body(self, request: httpx.Request) -> dict:
        return json.loads(request.content.decode("utf-8"))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"detail": f"No route for {request.method} {request.url.path}"})
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_client(test_config, fake_backend):
    """Factory for a BackendClient wired to the fake backend; call inside a running loop."""
    from stock_entry.backend import BackendClient

    def _make():
        return BackendClient(test_config, transport=fake_backend.transport())
    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
