"""
Product lookup for barcode intake and the measurement conversion helper.

Lookup order for a scanned code:
  1. Exact barcode match on the backend
  2. Fuzzy name match (rapidfuzz) over the backend's name search results
"""
import logging
from typing import List, Optional

from rapidfuzz import fuzz

from models.product import Product
from .errors import RemoteError

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 60        # Minimum score (0-100) to count as a match


def conversion_number(product: Product, unit_id: int) -> Optional[float]:
    """
    `number` of the first measurement row touching the unit, from either side.
    None when the product has no such row or the number is not positive.
    """
    for row in product.measurement:
        from_id = row.from_unit.id if row.from_unit else None
        to_id = row.to_unit.id if row.to_unit else None
        if unit_id in (from_id, to_id):
            if row.number and row.number > 0:
                return row.number
            return None
    return None


def _score(term: str, name: str) -> float:
    return fuzz.token_sort_ratio(term.lower(), name.lower())


class ProductCatalog:
    """
    Usage:
        catalog = ProductCatalog(client)
        product = await catalog.by_barcode("4780001234567")
        matches = await catalog.search("cotton fabric")
    """

    def __init__(self, client, fuzzy_threshold: int = FUZZY_THRESHOLD):
        self.client = client
        self.fuzzy_threshold = fuzzy_threshold

    async def by_barcode(self, barcode: str) -> Optional[Product]:
        data = await self.client.search_product_by_barcode(barcode)
        if not data:
            logger.info("No product with barcode %s", barcode)
            return None
        return Product.model_validate(data)

    async def search(self, term: str, limit: int = 10) -> List[Product]:
        """Name search ranked by fuzzy score; results under the threshold are dropped."""
        term = (term or "").strip()
        if not term:
            return []
        try:
            candidates = await self.client.search_products(term)
        except RemoteError as exc:
            logger.warning("Product search for %r failed: %s", term, exc)
            return []
        return self.rank(term, [Product.model_validate(c) for c in candidates], limit)

    def rank(self, term: str, products: List[Product], limit: int = 10) -> List[Product]:
        scored = []
        for product in products:
            score = _score(term, product.product_name or "")
            if score >= self.fuzzy_threshold:
                scored.append((score, product))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        if scored:
            logger.debug("Best match for %r: %s (score=%.1f)", term, scored[0][1].product_name, scored[0][0])
        return [p for _, p in scored[:limit]]
