from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from storefront_pricing.adapters.catalog.bigcommerce import BigCommerceCatalog
from storefront_pricing.engine.commission.recalculate import CommissionRecalculator
from storefront_pricing.engine.pricing.models import Requester
from storefront_pricing.engine.pricing.resolver import PricingResolver
from storefront_pricing.persistence.memory import InMemoryCommissions, InMemoryContractPrices
from storefront_pricing.util.errors import ProductNotFoundError, TransientFetchError


def _response(status_code: int = 200, body=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = body or {}
    return response


def _catalog(session: MagicMock) -> BigCommerceCatalog:
    return BigCommerceCatalog(store_hash="abc123", access_token="token", session=session)


def test_get_product_requests_variants_with_auth_header() -> None:
    session = MagicMock()
    session.get.return_value = _response(
        body={
            "data": {
                "id": 101,
                "name": "Test Kit",
                "price": 100.0,
                "cost_price": 60.0,
                "variants": [{"id": 9, "cost_price": 55.5}],
            }
        }
    )
    product = _catalog(session).get_product(101)

    assert product.price == Decimal("100.0")
    assert product.authoritative_cost() == Decimal("55.5")
    session.headers.update.assert_called_once()
    assert session.headers.update.call_args[0][0]["X-Auth-Token"] == "token"
    session.get.assert_called_once_with(
        "https://api.bigcommerce.com/stores/abc123/v3/catalog/products/101",
        params={"include": "variants"},
        timeout=15,
    )


def test_product_cost_used_when_variant_cost_missing() -> None:
    session = MagicMock()
    session.get.return_value = _response(
        body={"data": {"id": 101, "price": 100, "cost_price": 60, "variants": [{"id": 9, "cost_price": None}]}}
    )
    assert _catalog(session).get_product(101).authoritative_cost() == Decimal("60")


def test_missing_costs_default_to_zero() -> None:
    session = MagicMock()
    session.get.return_value = _response(body={"data": {"id": 101, "price": 100, "variants": None}})
    assert _catalog(session).get_product(101).authoritative_cost() == Decimal("0")


def test_not_found_is_distinguished() -> None:
    session = MagicMock()
    session.get.return_value = _response(404)
    with pytest.raises(ProductNotFoundError) as excinfo:
        _catalog(session).get_product(101)
    assert excinfo.value.product_id == 101


def test_server_error_is_transient() -> None:
    session = MagicMock()
    session.get.return_value = _response(503)
    with pytest.raises(TransientFetchError):
        _catalog(session).get_product(101)


def test_connection_error_is_transient() -> None:
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection reset")
    with pytest.raises(TransientFetchError):
        _catalog(session).get_product(101)


def test_unexpected_payload_is_transient() -> None:
    session = MagicMock()
    session.get.return_value = _response(body={"data": {"id": 101}})
    with pytest.raises(TransientFetchError):
        _catalog(session).get_product(101)


def test_get_products_follows_pagination() -> None:
    session = MagicMock()
    session.get.side_effect = [
        _response(body={"data": [{"id": 1, "price": 10}], "meta": {"pagination": {"total_pages": 2}}}),
        _response(body={"data": [{"id": 2, "price": 20}], "meta": {"pagination": {"total_pages": 2}}}),
    ]
    products = _catalog(session).get_products()

    assert [product.id for product in products] == [1, 2]
    pages = [call.kwargs["params"]["page"] for call in session.get.call_args_list]
    assert pages == [1, 2]


def test_non_json_body_is_transient() -> None:
    session = MagicMock()
    response = _response()
    response.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>maintenance</html>", 0)
    session.get.return_value = response
    with pytest.raises(TransientFetchError):
        _catalog(session).get_product(101)


@pytest.mark.parametrize("body", [[{"id": 101}], "maintenance", {"data": [{"id": 101, "price": 10}]}])
def test_unexpected_body_shape_is_transient(body) -> None:
    session = MagicMock()
    response = _response()
    response.json.return_value = body
    session.get.return_value = response
    with pytest.raises(TransientFetchError):
        _catalog(session).get_product(101)


def test_listing_with_unexpected_shape_is_transient() -> None:
    session = MagicMock()
    session.get.return_value = _response(body={"data": {"id": 1, "price": 10}})
    with pytest.raises(TransientFetchError):
        _catalog(session).get_products()


def test_malformed_pagination_stops_after_first_page() -> None:
    session = MagicMock()
    session.get.return_value = _response(body={"data": [{"id": 1, "price": 10}], "meta": "none"})
    assert [product.id for product in _catalog(session).get_products()] == [1]
    assert session.get.call_count == 1


def test_maintenance_page_degrades_quote_and_recalculation() -> None:
    session = MagicMock()
    response = _response()
    response.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>maintenance</html>", 0)
    session.get.return_value = response
    catalog = _catalog(session)

    quote = PricingResolver(rules=InMemoryContractPrices(), catalog=catalog).quote(
        101, 1, Requester(user_id="user-1")
    )
    assert quote.available is False
    assert quote.reason == "fetch_failed"

    commissions = InMemoryCommissions(
        [
            {
                "id": "c1",
                "commission_rate": 20,
                "margin_details": [{"productId": 101, "price": 150, "quantity": 1}],
            }
        ]
    )
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()
    assert report.results[0].status == "failed"
    assert report.results[0].reason == "fetch_failed"
