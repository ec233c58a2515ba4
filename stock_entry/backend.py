"""
HTTP client for the warehouse backend REST API.

One attempt per call: a failed request raises RemoteError carrying the
backend's own error message and is never retried here.

Endpoints used (relative to Config.api_base_url):
  POST items/stock/calculate/          field configuration for one line item
  GET  items/stock-entries/{id}/       one stock entry
  PUT  items/stock-entries/{id}/       update a stock entry with its lines
  POST items/stock-entries/            create a stock entry
  GET  items/stock/?stock_entry={id}   persisted lines of an entry (paginated)
  GET  suppliers/{id}/                 supplier with balances
  GET  currency/rates/                 latest currency rates, newest first
  GET  items/product/?barcode=...      product lookup by barcode
  GET  items/product/?product_name=... product search by name
"""
import logging
from typing import Any, Optional

import httpx

from config import Config
from models.payload import ResolverRequest
from .errors import RemoteError, parse_error_message

logger = logging.getLogger(__name__)

MAX_PAGES = 100


class BackendClient:
    """
    Thin async wrapper around httpx.AsyncClient.

    Usage:
        async with BackendClient(config) as client:
            entry = await client.get_stock_entry(42)
    """

    def __init__(self, config: Optional[Config] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or Config()
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        self._http = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            headers=headers,
            timeout=self.config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            message = parse_error_message(body)
            logger.error("%s %s -> HTTP %d: %s", method, url, response.status_code, message)
            raise RemoteError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Invalid JSON from {url}", status_code=response.status_code) from exc

    # ------------------------------------------------------------------
    # Field configuration
    # ------------------------------------------------------------------

    async def calculate_stock(self, request: ResolverRequest) -> dict:
        data = await self._request("POST", self.config.calculation_path, json=request.model_dump())
        if not isinstance(data, dict):
            raise RemoteError("Unexpected field configuration response")
        return data

    # ------------------------------------------------------------------
    # Stock entries
    # ------------------------------------------------------------------

    async def get_stock_entry(self, entry_id: int) -> dict:
        return await self._request("GET", f"{self.config.stock_entries_path}{entry_id}/")

    async def get_stocks(self, entry_id: int) -> list[dict]:
        """All persisted stock rows of an entry, following pagination."""
        results: list[dict] = []
        params: dict = {"stock_entry": entry_id, "page": 1}
        for _ in range(MAX_PAGES):
            data = await self._request("GET", self.config.stocks_path, params=params)
            if isinstance(data, list):
                return data
            results.extend((data or {}).get("results") or [])
            if not ((data or {}).get("links") or {}).get("next"):
                break
            params["page"] += 1
        return results

    async def update_stock_entry(self, entry_id: int, payload: dict) -> dict:
        logger.info("Updating stock entry %s (%d lines)", entry_id, len(payload.get("stocks", [])))
        return await self._request("PUT", f"{self.config.stock_entries_path}{entry_id}/", json=payload)

    async def create_stock_entry(self, payload: dict) -> dict:
        logger.info("Creating stock entry (%d lines)", len(payload.get("stocks", [])))
        return await self._request("POST", self.config.stock_entries_path, json=payload)

    # ------------------------------------------------------------------
    # Suppliers / currency
    # ------------------------------------------------------------------

    async def get_supplier(self, supplier_id: int) -> dict:
        return await self._request("GET", f"{self.config.suppliers_path}{supplier_id}/")

    async def get_currency_rates(self) -> list[dict]:
        data = await self._request("GET", self.config.currency_rates_path)
        if isinstance(data, dict):
            return data.get("results") or []
        return data or []

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def search_product_by_barcode(self, barcode: str) -> Optional[dict]:
        data = await self._request("GET", self.config.products_path, params={"barcode": barcode})
        results = data.get("results") if isinstance(data, dict) else data
        return results[0] if results else None

    async def search_products(self, name: str) -> list[dict]:
        data = await self._request("GET", self.config.products_path, params={"product_name": name})
        if isinstance(data, dict):
            return data.get("results") or []
        return data or []
