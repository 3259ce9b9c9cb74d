import json
import logging
from decimal import Decimal

import pytest

from storefront_pricing.adapters.catalog.memory import InMemoryCatalog
from storefront_pricing.engine.commission.models import CommissionRecord
from storefront_pricing.engine.commission.recalculate import (
    CommissionRecalculator,
    ProductCostTable,
    recalculate_one,
)
from storefront_pricing.persistence.memory import InMemoryCommissions
from storefront_pricing.util.errors import TransientFetchError


class CountingCatalog(InMemoryCatalog):
    def __init__(self, products, failing=()) -> None:
        super().__init__(products)
        self.failing = set(failing)
        self.calls = []

    def get_product(self, product_id: int):
        self.calls.append(product_id)
        if product_id in self.failing:
            raise TransientFetchError(f"catalog timeout for {product_id}")
        return super().get_product(product_id)


def _line(product_id: int = 101, **kwargs) -> dict:
    line = {
        "productId": product_id,
        "name": f"Product {product_id}",
        "price": 150,
        "retailPrice": 100,
        "cost": 10,
        "quantity": 2,
        "hasMarkup": True,
    }
    line.update(kwargs)
    return line


def _row(commission_id: str, *lines: dict, created_at: str = "2025-05-01T00:00:00+00:00", **kwargs) -> dict:
    row = {
        "id": commission_id,
        "order_id": f"order-{commission_id}",
        "sales_rep_id": "rep-1",
        "commission_rate": 20,
        "status": "pending",
        "margin_details": list(lines),
        "product_margin": "1.00",
        "commission_amount": "1.00",
        "created_at": created_at,
    }
    row.update(kwargs)
    return row


def test_recalculation_uses_catalog_cost_and_stored_rate(catalog) -> None:
    commissions = InMemoryCommissions([_row("c1", _line())])
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()

    assert report.summary() == {"records": 1, "updated": 1, "skipped": 0, "failed": 0}
    outcome = report.results[0]
    assert outcome.old_margin == Decimal("1.00")
    assert outcome.new_margin == Decimal("180.00")
    assert outcome.old_commission == Decimal("1.00")
    assert outcome.new_commission == Decimal("116.00")

    stored = commissions.get("c1")
    assert stored["product_margin"] == "180.00"
    assert stored["commission_amount"] == "116.00"
    assert stored["commission_rate"] == 20
    line = stored["margin_details"][0]
    assert line["cost"] == 60.0
    assert line["baseCommission"] == 16.0
    assert line["totalCommission"] == 116.0


def test_first_variant_cost_is_authoritative(catalog) -> None:
    commissions = InMemoryCommissions([_row("c1", _line(202, price=250, retailPrice=250, hasMarkup=False, quantity=1))])
    CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()
    stored = commissions.get("c1")
    assert stored["margin_details"][0]["cost"] == 140.0
    assert stored["product_margin"] == "110.00"
    assert stored["commission_amount"] == "22.00"


def test_recalculation_is_idempotent(catalog) -> None:
    record = CommissionRecord.model_validate(_row("c1", _line(), _line(202, price=300, retailPrice=250)))
    first = recalculate_one(record, ProductCostTable(catalog))
    second = recalculate_one(first, ProductCostTable(catalog))

    assert json.dumps(second.margin_details, sort_keys=True) == json.dumps(first.margin_details, sort_keys=True)
    assert second.product_margin == first.product_margin
    assert second.commission_amount == first.commission_amount


def test_running_twice_leaves_store_unchanged(catalog) -> None:
    commissions = InMemoryCommissions([_row("c1", _line())])
    recalculator = CommissionRecalculator(commissions=commissions, catalog=catalog)
    recalculator.recalculate_all()
    after_first = commissions.get("c1")
    recalculator.recalculate_all()
    assert commissions.get("c1") == after_first


def test_failure_on_one_record_does_not_stop_the_batch(catalog) -> None:
    failing_catalog = CountingCatalog(catalog.get_products(), failing={303})
    rows = [
        _row("c1", _line(101), created_at="2025-05-03T00:00:00+00:00"),
        _row("c2", _line(303), created_at="2025-05-02T00:00:00+00:00"),
        _row("c3", _line(202), created_at="2025-05-01T00:00:00+00:00"),
    ]
    commissions = InMemoryCommissions(rows)
    report = CommissionRecalculator(commissions=commissions, catalog=failing_catalog).recalculate_all()

    assert [(result.commission_id, result.status) for result in report.results] == [
        ("c1", "updated"),
        ("c2", "failed"),
        ("c3", "updated"),
    ]
    failed = report.results[1]
    assert failed.reason == "fetch_failed"
    assert failed.error_type == "TransientFetchError"
    assert commissions.get("c2") == rows[1]
    assert commissions.get("c3")["product_margin"] != "1.00"


def test_unknown_product_fails_the_record(catalog) -> None:
    commissions = InMemoryCommissions([_row("c1", _line(999))])
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()
    assert report.results[0].status == "failed"
    assert report.results[0].reason == "rejected"
    assert report.results[0].error_type == "ProductNotFoundError"
    assert commissions.get("c1")["product_margin"] == "1.00"


@pytest.mark.parametrize("details", [None, []])
def test_records_without_margin_details_are_skipped(catalog, details) -> None:
    row = _row("c1")
    row["margin_details"] = details
    commissions = InMemoryCommissions([row])
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()

    assert report.results[0].status == "skipped"
    assert report.results[0].reason == "no_margin_details"
    assert commissions.get("c1") == row


def test_malformed_margin_line_fails_only_that_record(catalog) -> None:
    bad = _line()
    del bad["quantity"]
    commissions = InMemoryCommissions(
        [
            _row("c1", _line(), bad, created_at="2025-05-02T00:00:00+00:00"),
            _row("c2", _line(), created_at="2025-05-01T00:00:00+00:00"),
        ]
    )
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()

    assert report.results[0].status == "failed"
    assert report.results[0].reason == "invalid_margin_details"
    assert commissions.get("c1")["product_margin"] == "1.00"
    assert report.results[1].status == "updated"


def test_each_product_is_fetched_once_per_run(catalog) -> None:
    counting = CountingCatalog(catalog.get_products())
    commissions = InMemoryCommissions(
        [
            _row("c1", _line(101), _line(101, quantity=5), _line(202), created_at="2025-05-02T00:00:00+00:00"),
            _row("c2", _line(202), _line(101), created_at="2025-05-01T00:00:00+00:00"),
        ]
    )
    CommissionRecalculator(commissions=commissions, catalog=counting).recalculate_all()
    assert sorted(counting.calls) == [101, 202]


def test_failed_fetch_is_retried_by_later_records(catalog) -> None:
    counting = CountingCatalog(catalog.get_products(), failing={101})
    costs = ProductCostTable(counting)
    with pytest.raises(TransientFetchError):
        costs.load([101])
    with pytest.raises(TransientFetchError):
        costs.load([101])
    assert counting.calls == [101, 101]
    assert len(costs) == 0


def test_listing_failure_aborts_the_run(catalog) -> None:
    class BrokenStore:
        def list_all(self):
            raise TransientFetchError("store unavailable")

    with pytest.raises(TransientFetchError):
        CommissionRecalculator(commissions=BrokenStore(), catalog=catalog).recalculate_all()


def test_blank_commission_rate_is_treated_as_zero(catalog) -> None:
    commissions = InMemoryCommissions([_row("c1", _line(hasMarkup=False, price=100), commission_rate=None)])
    CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()
    stored = commissions.get("c1")
    assert stored["commission_amount"] == "0.00"
    assert stored["product_margin"] == "80.00"


def test_unexpected_error_fails_only_that_record(catalog) -> None:
    class BrokenCatalog(InMemoryCatalog):
        def get_product(self, product_id: int):
            if product_id == 303:
                raise RuntimeError("catalog client crashed")
            return super().get_product(product_id)

    rows = [
        _row("c1", _line(101), created_at="2025-05-03T00:00:00+00:00"),
        _row("c2", _line(303), created_at="2025-05-02T00:00:00+00:00"),
        _row("c3", _line(202), created_at="2025-05-01T00:00:00+00:00"),
    ]
    commissions = InMemoryCommissions(rows)
    report = CommissionRecalculator(
        commissions=commissions,
        catalog=BrokenCatalog(catalog.get_products()),
    ).recalculate_all()

    assert [result.status for result in report.results] == ["updated", "failed", "updated"]
    assert report.results[1].reason == "unexpected_error"
    assert report.results[1].error_type == "RuntimeError"
    assert commissions.get("c2") == rows[1]


def test_update_failure_leaves_record_unchanged(catalog) -> None:
    class FailingUpdates(InMemoryCommissions):
        def update_figures(self, commission_id: str, **figures) -> None:
            if commission_id == "c1":
                raise TransientFetchError("store timeout")
            super().update_figures(commission_id, **figures)

    rows = [
        _row("c1", _line(101), created_at="2025-05-02T00:00:00+00:00"),
        _row("c2", _line(101), created_at="2025-05-01T00:00:00+00:00"),
    ]
    commissions = FailingUpdates(rows)
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()

    assert [result.status for result in report.results] == ["failed", "updated"]
    assert report.results[0].reason == "fetch_failed"
    assert commissions.get("c1") == rows[0]


def test_skips_and_failures_are_distinguishable_in_logs(catalog, caplog) -> None:
    skipped = _row("c1", created_at="2025-05-03T00:00:00+00:00")
    skipped["margin_details"] = []
    malformed = _line()
    del malformed["price"]
    commissions = InMemoryCommissions(
        [
            skipped,
            _row("c2", _line(999), created_at="2025-05-02T00:00:00+00:00"),
            _row("c3", malformed, created_at="2025-05-01T00:00:00+00:00"),
        ]
    )
    with caplog.at_level(logging.INFO, logger="CommissionRecalculator"):
        CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()

    events = {
        payload["commission_id"]: payload
        for payload in (
            json.loads(record.getMessage()) for record in caplog.records if record.name == "CommissionRecalculator"
        )
        if "commission_id" in payload
    }
    assert events["c1"]["event"] == "commission_skipped"
    assert events["c1"]["reason"] == "no_margin_details"
    assert events["c2"]["event"] == "commission_failed"
    assert events["c2"]["reason"] == "rejected"
    assert events["c2"]["error_type"] == "ProductNotFoundError"
    assert events["c3"]["event"] == "commission_invalid"
    assert events["c3"]["reason"] == "invalid_margin_details"
