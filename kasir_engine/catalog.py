# Catalog - local product snapshot for the Kasir POS engine
# The server owns stock truth; this cache only backs advisory checks

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .models import Product

logger = logging.getLogger(__name__)


class Catalog:
    """In-memory catalog snapshot keyed by product id"""

    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {}
        self.refresh(products)

    def refresh(self, products: Iterable[Product]):
        """Replace the snapshot with a fresh product list"""
        self._products = {p.id: p for p in products}
        logger.debug("Catalog refreshed with %d products", len(self._products))

    def upsert(self, product: Product):
        self._products[product.id] = product

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def products(self) -> List[Product]:
        return list(self._products.values())

    def __iter__(self):
        return iter(self._products.values())

    def __len__(self):
        return len(self._products)

    @classmethod
    def from_rows(cls, rows: Iterable[Dict]) -> 'Catalog':
        """Build from catalog rows (``selling_price``, ``current_stock``, ``price_variants``...)"""
        return cls(Product.from_dict(row) for row in rows)

    @classmethod
    def load_json(cls, path) -> 'Catalog':
        """Load a catalog export; a missing or unreadable file gives an empty catalog"""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Catalog file {path} not found, starting with an empty catalog")
            return cls()
        try:
            with open(path, encoding='utf-8') as f:
                rows = json.load(f)
            return cls.from_rows(rows)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not read catalog {path}: {e}")
            return cls()
