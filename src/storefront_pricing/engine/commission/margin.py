from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Mapping, Tuple

from storefront_pricing.engine.commission.models import MarginLineItem, RecalculatedLine

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def round_currency(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class LineFigures:
    base_margin: Decimal
    base_commission: Decimal
    markup_amount: Decimal
    markup_commission: Decimal
    total_commission: Decimal
    margin: Decimal


def compute_line(item: MarginLineItem, cost: Decimal, commission_rate: Decimal) -> LineFigures:
    """Unrounded margin and commission for one line.

    The base margin earns ``commission_rate`` percent; on a markup line the
    amount charged above the retail price goes to the rep in full.
    """
    retail_price = item.retail_price if item.retail_price is not None else item.price
    base_margin = (retail_price - cost) * item.quantity
    base_commission = base_margin * (commission_rate / HUNDRED)
    markup_amount = ZERO
    markup_commission = ZERO
    if item.has_markup:
        markup_amount = (item.price - retail_price) * item.quantity
        markup_commission = markup_amount
    return LineFigures(
        base_margin=base_margin,
        base_commission=base_commission,
        markup_amount=markup_amount,
        markup_commission=markup_commission,
        total_commission=base_commission + markup_commission,
        margin=base_margin + markup_amount,
    )


def recalculate_lines(
    items: Iterable[MarginLineItem],
    costs: Mapping[int, Decimal],
    commission_rate: Decimal,
) -> Tuple[List[RecalculatedLine], Decimal, Decimal]:
    """Return the rewritten lines plus the order's margin and commission totals.

    Totals are summed from unrounded line figures and rounded once.
    """
    lines: List[RecalculatedLine] = []
    total_margin = ZERO
    total_commission = ZERO
    for item in items:
        cost = costs.get(item.product_id, ZERO)
        figures = compute_line(item, cost, commission_rate)
        total_margin += figures.margin
        total_commission += figures.total_commission
        lines.append(
            RecalculatedLine(
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                retail_price=item.retail_price if item.retail_price is not None else item.price,
                cost=cost,
                quantity=item.quantity,
                has_markup=item.has_markup,
                base_margin=round_currency(figures.base_margin),
                markup_amount=round_currency(figures.markup_amount),
                base_commission=round_currency(figures.base_commission),
                markup_commission=round_currency(figures.markup_commission),
                total_commission=round_currency(figures.total_commission),
                margin=round_currency(figures.margin),
            )
        )
    return lines, round_currency(total_margin), round_currency(total_commission)
