from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from storefront_pricing.engine.commission.margin import ZERO
from storefront_pricing.engine.commission.models import CommissionRecord, CommissionStatus


class CommissionSummary(BaseModel):
    total_commissions: Decimal = ZERO
    pending_amount: Decimal = ZERO
    approved_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    total_orders: int = 0


def summarize_commissions(records: Iterable[CommissionRecord]) -> CommissionSummary:
    summary = CommissionSummary()
    for record in records:
        amount = record.commission_amount or ZERO
        summary.total_orders += 1
        summary.total_commissions += amount
        if record.status == CommissionStatus.PENDING:
            summary.pending_amount += amount
        elif record.status == CommissionStatus.APPROVED:
            summary.approved_amount += amount
        elif record.status == CommissionStatus.PAID:
            summary.paid_amount += amount
    return summary
