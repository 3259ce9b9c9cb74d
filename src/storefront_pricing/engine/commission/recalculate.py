from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError

from storefront_pricing.engine.commission.margin import recalculate_lines
from storefront_pricing.engine.commission.models import (
    CommissionRecord,
    MarginLineItem,
    RecalculationReport,
    RecordOutcome,
)
from storefront_pricing.util.errors import InvalidMarginDetailsError, NonRetryableError, RetryableError
from storefront_pricing.util.logging import get_logger, log_event


class ProductCostTable(Mapping[int, Decimal]):
    """Authoritative product costs for one recalculation run.

    Each distinct product is fetched from the catalog once; failed fetches
    are not remembered so a later record can try again.
    """

    def __init__(self, catalog) -> None:
        self.catalog = catalog
        self._costs: Dict[int, Decimal] = {}

    def load(self, product_ids: Iterable[int]) -> None:
        for product_id in product_ids:
            if product_id not in self._costs:
                self._costs[product_id] = self.catalog.get_product(product_id).authoritative_cost()

    def __getitem__(self, product_id: int) -> Decimal:
        return self._costs[product_id]

    def __iter__(self):
        return iter(self._costs)

    def __len__(self) -> int:
        return len(self._costs)


def parse_margin_details(record: CommissionRecord) -> List[MarginLineItem]:
    items: List[MarginLineItem] = []
    for index, raw in enumerate(record.margin_details or []):
        try:
            items.append(MarginLineItem.model_validate(raw))
        except ValidationError as exc:
            raise InvalidMarginDetailsError(
                record.id, f"margin line {index} is malformed: {exc.errors()[0]['msg']}"
            ) from exc
    return items


def recalculate_one(record: CommissionRecord, costs: ProductCostTable) -> CommissionRecord:
    """Recompute margin details and totals for one commission.

    The stored ``commission_rate`` is used as-is. Records without margin
    details come back unchanged.
    """
    if not record.margin_details:
        return record
    items = parse_margin_details(record)
    costs.load(sorted({item.product_id for item in items}))
    lines, product_margin, commission_amount = recalculate_lines(items, costs, record.commission_rate)
    return record.model_copy(
        update={
            "margin_details": [line.to_json() for line in lines],
            "product_margin": product_margin,
            "commission_amount": commission_amount,
        }
    )


class CommissionRecalculator:
    def __init__(self, *, commissions, catalog) -> None:
        self.commissions = commissions
        self.catalog = catalog
        self.logger = get_logger(self.__class__.__name__)

    def recalculate_all(self) -> RecalculationReport:
        report = RecalculationReport(started_at=datetime.now(timezone.utc))
        rows = self.commissions.list_all()
        log_event(self.logger, "recalculation_started", records=len(rows))
        costs = ProductCostTable(self.catalog)
        for row in rows:
            report.results.append(self._process(row, costs))
        report.finished_at = datetime.now(timezone.utc)
        log_event(self.logger, "recalculation_finished", **report.summary())
        return report

    def _failed(self, commission_id: str, exc: Exception, reason: str) -> RecordOutcome:
        log_event(
            self.logger,
            "commission_invalid" if reason == "invalid_margin_details" else "commission_failed",
            commission_id=commission_id,
            reason=reason,
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        return RecordOutcome(
            commission_id=commission_id,
            status="failed",
            reason=reason,
            error_type=exc.__class__.__name__,
        )

    def _process(self, row: Mapping[str, Any], costs: ProductCostTable) -> RecordOutcome:
        commission_id = str(row.get("id"))
        try:
            record = CommissionRecord.model_validate(row)
        except ValidationError as exc:
            return self._failed(commission_id, exc, "invalid_record")

        if not record.margin_details:
            log_event(self.logger, "commission_skipped", commission_id=record.id, reason="no_margin_details")
            return RecordOutcome(commission_id=record.id, status="skipped", reason="no_margin_details")

        try:
            updated = recalculate_one(record, costs)
            self.commissions.update_figures(
                record.id,
                margin_details=updated.margin_details,
                product_margin=updated.product_margin,
                commission_amount=updated.commission_amount,
            )
        except InvalidMarginDetailsError as exc:
            return self._failed(record.id, exc, "invalid_margin_details")
        except RetryableError as exc:
            return self._failed(record.id, exc, "fetch_failed")
        except NonRetryableError as exc:
            return self._failed(record.id, exc, "rejected")
        except Exception as exc:  # noqa: BLE001
            return self._failed(record.id, exc, "unexpected_error")

        log_event(
            self.logger,
            "commission_updated",
            commission_id=record.id,
            old_margin=record.product_margin,
            new_margin=updated.product_margin,
            old_commission=record.commission_amount,
            new_commission=updated.commission_amount,
        )
        return RecordOutcome(
            commission_id=record.id,
            status="updated",
            old_margin=record.product_margin,
            new_margin=updated.product_margin,
            old_commission=record.commission_amount,
            new_commission=updated.commission_amount,
        )
