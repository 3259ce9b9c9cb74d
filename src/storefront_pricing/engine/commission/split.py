from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from storefront_pricing.engine.commission.margin import HUNDRED, ZERO, recalculate_lines, round_currency
from storefront_pricing.engine.commission.models import (
    CommissionRecord,
    CommissionSplitType,
    RecalculatedLine,
)
from storefront_pricing.engine.commission.recalculate import parse_margin_details


class CommissionSplit(BaseModel):
    commission_amount: Decimal
    sales_rep_commission: Decimal
    distributor_commission: Decimal


class SplitTerms(BaseModel):
    """How a distributor shares commission with one of its sales reps."""

    commission_split_type: Optional[CommissionSplitType] = None
    sales_rep_rate: Decimal = Field(default=HUNDRED, ge=0, le=100)
    distributor_override_rate: Decimal = Field(default=ZERO, ge=0, le=100)


def split_commission(
    *,
    lines: Iterable[RecalculatedLine],
    commission_amount: Decimal,
    split_type: Optional[CommissionSplitType],
    has_distributor: bool,
    sales_rep_rate: Decimal = HUNDRED,
    distributor_override_rate: Decimal = ZERO,
) -> CommissionSplit:
    """Divide an order's commission between the sales rep and the distributor.

    ``percentage_of_distributor`` hands the rep ``sales_rep_rate`` percent of
    the total and the distributor the rest. ``fixed_with_override`` works per
    line: markup lines go entirely to the rep, other lines pay the rep
    ``sales_rep_rate`` percent of margin and the distributor
    ``distributor_override_rate`` percent. Lines without positive margin earn
    nothing under that scheme.
    """
    if not has_distributor or split_type in (None, CommissionSplitType.NONE):
        total = round_currency(commission_amount)
        return CommissionSplit(commission_amount=total, sales_rep_commission=total, distributor_commission=ZERO)

    if split_type == CommissionSplitType.PERCENTAGE_OF_DISTRIBUTOR:
        rep = commission_amount * (sales_rep_rate / HUNDRED)
        return CommissionSplit(
            commission_amount=round_currency(commission_amount),
            sales_rep_commission=round_currency(rep),
            distributor_commission=round_currency(commission_amount - rep),
        )

    rep = ZERO
    distributor = ZERO
    for line in lines:
        if line.margin <= 0:
            continue
        if line.has_markup:
            rep += line.margin
        else:
            rep += line.margin * (sales_rep_rate / HUNDRED)
            distributor += line.margin * (distributor_override_rate / HUNDRED)
    return CommissionSplit(
        commission_amount=round_currency(rep + distributor),
        sales_rep_commission=round_currency(rep),
        distributor_commission=round_currency(distributor),
    )


def split_for_record(record: CommissionRecord, terms: SplitTerms) -> CommissionSplit:
    """Apply ``terms`` to a stored commission, using the costs recorded on its lines.

    The record's own split type wins over the one in ``terms`` when set.
    """
    items = parse_margin_details(record)
    costs = {item.product_id: item.cost if item.cost is not None else ZERO for item in items}
    lines, _, line_total = recalculate_lines(items, costs, record.commission_rate)
    amount = record.commission_amount if record.commission_amount is not None else line_total
    return split_commission(
        lines=lines,
        commission_amount=amount,
        split_type=record.commission_split_type or terms.commission_split_type,
        has_distributor=record.distributor_id is not None,
        sales_rep_rate=terms.sales_rep_rate,
        distributor_override_rate=terms.distributor_override_rate,
    )
