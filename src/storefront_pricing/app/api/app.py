from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import Depends, FastAPI, HTTPException
from pydantic import ValidationError

from storefront_pricing.app.auth.api_key import ApiKeyAuth, keys_from_env
from storefront_pricing.app.config.loader import load_service_config_from_env
from storefront_pricing.app.wiring import build_backends
from storefront_pricing.engine.commission.models import CommissionRecord
from storefront_pricing.engine.commission.split import CommissionSplit, SplitTerms, split_for_record
from storefront_pricing.engine.commission.summary import CommissionSummary, summarize_commissions
from storefront_pricing.engine.pricing.models import ContractPrice, PriceQuote, PricingRequest, make_scope
from storefront_pricing.engine.pricing.resolver import PricingResolver
from storefront_pricing.engine.pricing.validation import save_contract_price
from storefront_pricing.util.errors import (
    InvalidMarginDetailsError,
    PricingConflictError,
    PricingValidationError,
    ProductNotFoundError,
    TransientFetchError,
)
from storefront_pricing.util.metrics import CloudWatchMetrics

logger = logging.getLogger("storefront_pricing.api")


def _scope_or_404(scope_kind: str, scope_id: str):
    try:
        return make_scope(scope_kind, scope_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def create_app(
    *,
    catalog,
    contract_prices,
    commissions,
    storefront_keys: set[str] | None = None,
    admin_keys: set[str] | None = None,
    metrics: CloudWatchMetrics | None = None,
) -> FastAPI:
    resolver = PricingResolver(rules=contract_prices, catalog=catalog, metrics=metrics)
    admin_auth = ApiKeyAuth(admin_keys or set())
    storefront_auth = ApiKeyAuth(storefront_keys or set(), also_accept=admin_keys or set())

    app = FastAPI()

    @app.get("/v1/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/prices/quote", dependencies=[Depends(storefront_auth)])
    def quote_price(request: PricingRequest) -> PriceQuote:
        return resolver.quote(request.product_id, request.quantity, request.requester, request.as_of)

    @app.get(
        "/v1/contract-prices/{scope_kind}/{scope_id}/{product_id}",
        dependencies=[Depends(admin_auth)],
    )
    def list_contract_prices(scope_kind: str, scope_id: str, product_id: int) -> List[ContractPrice]:
        scope = _scope_or_404(scope_kind, scope_id)
        try:
            return contract_prices.list_rules(scope, product_id)
        except TransientFetchError as exc:
            raise HTTPException(status_code=503, detail="Pricing store unavailable") from exc

    @app.post("/v1/contract-prices", dependencies=[Depends(admin_auth)])
    def create_contract_price(rule: ContractPrice) -> ContractPrice:
        try:
            return save_contract_price(contract_prices, catalog, rule)
        except ProductNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except PricingConflictError as exc:
            raise HTTPException(
                status_code=409,
                detail={"message": str(exc), "conflicts": exc.conflicts},
            ) from exc
        except PricingValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except TransientFetchError as exc:
            logger.exception("contract_price_save_failed")
            raise HTTPException(status_code=503, detail="Pricing store unavailable") from exc

    @app.delete(
        "/v1/contract-prices/{scope_kind}/{scope_id}/{rule_id}",
        dependencies=[Depends(admin_auth)],
    )
    def delete_contract_price(scope_kind: str, scope_id: str, rule_id: str) -> Dict[str, str]:
        scope = _scope_or_404(scope_kind, scope_id)
        try:
            deleted = contract_prices.delete(scope, rule_id)
        except TransientFetchError as exc:
            raise HTTPException(status_code=503, detail="Pricing store unavailable") from exc
        if not deleted:
            raise HTTPException(status_code=404, detail="Contract price not found")
        return {"deleted": rule_id}

    @app.get(
        "/v1/sales-reps/{sales_rep_id}/commission-summary",
        dependencies=[Depends(admin_auth)],
    )
    def commission_summary(sales_rep_id: str) -> CommissionSummary:
        try:
            rows = commissions.list_for_sales_rep(sales_rep_id)
        except TransientFetchError as exc:
            raise HTTPException(status_code=503, detail="Commission store unavailable") from exc
        records = []
        for row in rows:
            try:
                records.append(CommissionRecord.model_validate(row))
            except ValidationError:
                logger.warning("commission_row_invalid", extra={"commission_id": row.get("id")})
        return summarize_commissions(records)

    @app.post(
        "/v1/commissions/{commission_id}/split",
        dependencies=[Depends(admin_auth)],
    )
    def commission_split(commission_id: str, terms: SplitTerms) -> CommissionSplit:
        try:
            row = commissions.get(commission_id)
        except TransientFetchError as exc:
            raise HTTPException(status_code=503, detail="Commission store unavailable") from exc
        if row is None:
            raise HTTPException(status_code=404, detail="Commission not found")
        try:
            return split_for_record(CommissionRecord.model_validate(row), terms)
        except (InvalidMarginDetailsError, ValidationError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    return app


def create_app_from_env() -> FastAPI:
    backends = build_backends(load_service_config_from_env())
    return create_app(
        catalog=backends.catalog,
        contract_prices=backends.contract_prices,
        commissions=backends.commissions,
        storefront_keys=keys_from_env("API_KEYS"),
        admin_keys=keys_from_env("ADMIN_API_KEYS"),
        metrics=CloudWatchMetrics.from_env(),
    )
