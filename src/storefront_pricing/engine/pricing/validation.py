from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from storefront_pricing.engine.pricing.models import CatalogProduct, ContractPrice
from storefront_pricing.util.errors import PricingConflictError, PricingValidationError


def find_conflicts(
    rule: ContractPrice,
    existing: Iterable[ContractPrice],
    as_of: datetime,
) -> List[ContractPrice]:
    conflicts: List[ContractPrice] = []
    for other in existing:
        if rule.id is not None and other.id == rule.id:
            continue
        if other.scope != rule.scope or other.product_id != rule.product_id:
            continue
        if other.is_expired(as_of):
            continue
        if rule.overlaps(other):
            conflicts.append(other)
    return conflicts


def _check_shape(rule: ContractPrice) -> None:
    if rule.min_quantity < 1:
        raise PricingValidationError("min_quantity must be >= 1")
    if rule.max_quantity is not None and rule.max_quantity < rule.min_quantity:
        raise PricingValidationError("max_quantity must be >= min_quantity")
    if rule.effective_date and rule.expiry_date and rule.expiry_date < rule.effective_date:
        raise PricingValidationError("expiry_date must not precede effective_date")
    if not rule.has_price:
        raise PricingValidationError("a contract price or a markup price is required")
    for name in ("contract_price", "markup_price"):
        value: Optional[Decimal] = getattr(rule, name)
        if value is not None and value <= 0:
            raise PricingValidationError(f"{name} must be positive")


def _check_against_catalog(rule: ContractPrice, product: CatalogProduct) -> None:
    if rule.contract_price is not None and rule.contract_price >= product.price:
        raise PricingValidationError(
            f"contract price {rule.contract_price} must be below the regular price {product.price}"
        )
    if rule.allow_below_cost:
        return
    cost = product.authoritative_cost()
    for name in ("contract_price", "markup_price"):
        value: Optional[Decimal] = getattr(rule, name)
        if value is not None and value < cost:
            raise PricingValidationError(
                f"{name} {value} is below product cost {cost}; set allow_below_cost to override"
            )


def validate_contract_price(
    rule: ContractPrice,
    existing: Iterable[ContractPrice],
    product: CatalogProduct,
    as_of: datetime,
) -> None:
    """Raise if ``rule`` may not be stored.

    Overlapping quantity ranges against the scope's live rules raise
    :class:`PricingConflictError`; every other rejection raises
    :class:`PricingValidationError`.
    """
    _check_shape(rule)
    _check_against_catalog(rule, product)
    conflicts = find_conflicts(rule, existing, as_of)
    if conflicts:
        labels = [conflict.range_label() for conflict in conflicts]
        raise PricingConflictError(
            f"quantity range {rule.range_label()} overlaps existing tiers: {', '.join(labels)}",
            conflicts=labels,
        )


def save_contract_price(
    repository,
    catalog,
    rule: ContractPrice,
    as_of: Optional[datetime] = None,
) -> ContractPrice:
    moment = as_of or datetime.now(timezone.utc)
    product = catalog.get_product(rule.product_id)
    existing = repository.list_rules(rule.scope, rule.product_id)
    validate_contract_price(rule, existing, product, moment)
    return repository.save(rule)
