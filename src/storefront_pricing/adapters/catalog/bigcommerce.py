from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from storefront_pricing.engine.pricing.models import CatalogProduct
from storefront_pricing.util.errors import ProductNotFoundError, TransientFetchError

DEFAULT_BASE_URL = "https://api.bigcommerce.com"


def _total_pages(body: Dict[str, Any]) -> int:
    meta = body.get("meta")
    pagination = meta.get("pagination") if isinstance(meta, dict) else None
    if not isinstance(pagination, dict):
        return 1
    try:
        return int(pagination.get("total_pages") or 1)
    except (TypeError, ValueError):
        return 1


class BigCommerceCatalog:
    def __init__(
        self,
        *,
        store_hash: str,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15,
        page_size: int = 250,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.store_hash = store_hash
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Auth-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _products_url(self) -> str:
        return f"{self.base_url}/stores/{self.store_hash}/v3/catalog/products"

    def _get(self, url: str, params: Dict[str, Any]) -> requests.Response:
        try:
            return self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransientFetchError(f"catalog request failed: {exc}") from exc

    def _body(self, response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise TransientFetchError(f"catalog returned a non-JSON body ({response.status_code})") from exc
        if not isinstance(body, dict):
            raise TransientFetchError(f"unexpected catalog payload of type {type(body).__name__}")
        return body

    def _parse(self, payload: Any) -> CatalogProduct:
        try:
            return CatalogProduct.model_validate(payload)
        except ValidationError as exc:
            raise TransientFetchError(f"unexpected catalog payload: {exc.errors()[0]['msg']}") from exc

    def get_product(self, product_id: int) -> CatalogProduct:
        response = self._get(f"{self._products_url()}/{product_id}", {"include": "variants"})
        if response.status_code == 404:
            raise ProductNotFoundError(product_id)
        if not response.ok:
            raise TransientFetchError(
                f"catalog returned {response.status_code} for product {product_id}"
            )
        return self._parse(self._body(response).get("data") or {})

    def get_products(self) -> List[CatalogProduct]:
        products: List[CatalogProduct] = []
        page = 1
        while True:
            response = self._get(
                self._products_url(),
                {"include": "variants", "limit": self.page_size, "page": page},
            )
            if not response.ok:
                raise TransientFetchError(f"catalog returned {response.status_code} listing products")
            body = self._body(response)
            items = body.get("data") or []
            if not isinstance(items, list):
                raise TransientFetchError("unexpected catalog listing payload")
            products.extend(self._parse(item) for item in items)
            if page >= _total_pages(body):
                return products
            page += 1
