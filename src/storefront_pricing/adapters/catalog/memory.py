from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from storefront_pricing.engine.pricing.models import CatalogProduct
from storefront_pricing.util.errors import ProductNotFoundError


class InMemoryCatalog:
    def __init__(self, products: Optional[Iterable[CatalogProduct]] = None) -> None:
        self._data: Dict[int, CatalogProduct] = {product.id: product for product in products or []}

    def put(self, product: CatalogProduct) -> None:
        self._data[product.id] = product

    def get_product(self, product_id: int) -> CatalogProduct:
        product = self._data.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def get_products(self) -> List[CatalogProduct]:
        return [self._data[product_id] for product_id in sorted(self._data)]
