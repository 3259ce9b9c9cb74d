from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from storefront_pricing.engine.pricing.models import (
    CatalogProduct,
    ContractPrice,
    EffectivePrice,
    PriceQuote,
    PriceSource,
    Requester,
    ensure_utc,
)
from storefront_pricing.util.errors import ProductNotFoundError, TransientFetchError
from storefront_pricing.util.logging import get_logger, log_event

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

PRICE_UNAVAILABLE = "price unavailable"


def _recency_key(rule: ContractPrice) -> tuple[datetime, str]:
    return (rule.created_at or _OLDEST, rule.id or "")


def select_rule(rules: Iterable[ContractPrice], quantity: int, as_of: datetime) -> Optional[ContractPrice]:
    """Pick the rule that applies to ``quantity`` at ``as_of``.

    Rules carrying neither a contract nor a markup price never match. When
    several rules match (overlapping ranges slipped past write-time
    validation) the most recently created one wins, then the highest id.
    """
    candidates = [
        rule
        for rule in rules
        if rule.has_price and rule.covers_quantity(quantity) and rule.is_active(as_of)
    ]
    if not candidates:
        return None
    return max(candidates, key=_recency_key)


def price_from_rule(rule: ContractPrice, product: CatalogProduct, source: PriceSource) -> EffectivePrice:
    if rule.markup_price is not None:
        retail = rule.contract_price if rule.contract_price is not None else product.price
        return EffectivePrice(
            unit_price=rule.markup_price,
            retail_price=retail,
            regular_price=product.price,
            has_markup=True,
            source=source,
            rule_id=rule.id,
        )
    return EffectivePrice(
        unit_price=rule.contract_price,
        retail_price=rule.contract_price,
        regular_price=product.price,
        has_markup=False,
        source=source,
        rule_id=rule.id,
    )


class PricingResolver:
    def __init__(self, *, rules, catalog, metrics=None) -> None:
        self.rules = rules
        self.catalog = catalog
        self.metrics = metrics
        self.logger = get_logger(self.__class__.__name__)

    def resolve(
        self,
        product_id: int,
        quantity: int,
        requester: Requester,
        as_of: Optional[datetime] = None,
    ) -> EffectivePrice:
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        moment = ensure_utc(as_of) if as_of else datetime.now(timezone.utc)
        product = self.catalog.get_product(product_id)
        for scope in requester.scopes():
            rule = select_rule(self.rules.list_rules(scope, product_id), quantity, moment)
            if rule is not None:
                return price_from_rule(rule, product, PriceSource(scope.kind))
        return EffectivePrice(
            unit_price=product.price,
            retail_price=product.price,
            regular_price=product.price,
            has_markup=False,
            source=PriceSource.BASE,
        )

    def _unavailable(
        self,
        product_id: int,
        quantity: int,
        exc: Exception,
        reason: str,
        level: int = logging.INFO,
    ) -> PriceQuote:
        log_event(
            self.logger,
            "price_unavailable",
            level=level,
            product_id=product_id,
            quantity=quantity,
            reason=reason,
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        if self.metrics:
            self.metrics.record_price_unavailable(reason=reason)
        return PriceQuote(
            product_id=product_id,
            quantity=quantity,
            available=False,
            message=PRICE_UNAVAILABLE,
            reason=reason,
        )

    def quote(
        self,
        product_id: int,
        quantity: int,
        requester: Requester,
        as_of: Optional[datetime] = None,
    ) -> PriceQuote:
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        try:
            price = self.resolve(product_id, quantity, requester, as_of)
        except ProductNotFoundError as exc:
            return self._unavailable(product_id, quantity, exc, "product_not_found")
        except TransientFetchError as exc:
            return self._unavailable(product_id, quantity, exc, "fetch_failed")
        except Exception as exc:  # noqa: BLE001
            return self._unavailable(product_id, quantity, exc, "unexpected_error", level=logging.ERROR)
        return PriceQuote(
            product_id=product_id,
            quantity=quantity,
            available=True,
            price=price,
            savings=price.savings,
        )
