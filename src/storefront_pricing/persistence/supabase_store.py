from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from storefront_pricing.engine.pricing.models import ContractPrice, make_scope
from storefront_pricing.util.errors import TransientFetchError
from storefront_pricing.util.logging import get_logger, log_event


@dataclass(frozen=True)
class ScopeTable:
    table: str
    column: str


DEFAULT_SCOPE_TABLES: Dict[str, ScopeTable] = {
    "individual": ScopeTable(table="contract_pricing", column="user_id"),
    "location": ScopeTable(table="location_pricing", column="location_id"),
    "organization": ScopeTable(table="organization_pricing", column="organization_id"),
}

RULE_COLUMNS = (
    "product_id",
    "contract_price",
    "markup_price",
    "min_quantity",
    "max_quantity",
    "effective_date",
    "expiry_date",
    "allow_below_cost",
)


def connect(url: str, key: str) -> Client:
    return create_client(url, key)


def _execute(query, action: str):
    try:
        return query.execute()
    except (APIError, httpx.HTTPError) as exc:
        raise TransientFetchError(f"{action} failed: {exc}") from exc


def _serialize(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def rule_to_row(rule: ContractPrice, scope_table: ScopeTable) -> Dict[str, Any]:
    row: Dict[str, Any] = {scope_table.column: rule.scope.entity_id}
    for column in RULE_COLUMNS:
        row[column] = _serialize(getattr(rule, column))
    if rule.id is not None:
        row["id"] = rule.id
    return row


def row_to_rule(row: Mapping[str, Any], kind: str, scope_table: ScopeTable) -> ContractPrice:
    if row.get(scope_table.column) is None:
        raise ValueError(f"{scope_table.table} row has no {scope_table.column}")
    payload = {column: row.get(column) for column in RULE_COLUMNS if row.get(column) is not None}
    return ContractPrice(
        id=str(row["id"]) if row.get("id") is not None else None,
        scope=make_scope(kind, str(row[scope_table.column])),
        created_at=row.get("created_at"),
        **payload,
    )


def figures_payload(
    *,
    margin_details: List[Dict[str, Any]],
    product_margin: Decimal,
    commission_amount: Decimal,
) -> Dict[str, Any]:
    return {
        "margin_details": margin_details,
        "product_margin": str(product_margin),
        "commission_amount": str(commission_amount),
    }


class SupabaseContractPrices:
    def __init__(self, client: Client, tables: Optional[Mapping[str, ScopeTable]] = None) -> None:
        self.client = client
        self.tables = dict(tables or DEFAULT_SCOPE_TABLES)
        self.logger = get_logger(self.__class__.__name__)

    def list_rules(self, scope, product_id: int) -> List[ContractPrice]:
        scope_table = self.tables[scope.kind]
        response = _execute(
            self.client.table(scope_table.table)
            .select("*")
            .eq(scope_table.column, scope.entity_id)
            .eq("product_id", product_id),
            f"listing {scope.kind} pricing",
        )
        rules: List[ContractPrice] = []
        for row in response.data or []:
            try:
                rules.append(row_to_rule(row, scope.kind, scope_table))
            except (KeyError, ValueError) as exc:
                log_event(
                    self.logger,
                    "contract_price_row_invalid",
                    level=logging.WARNING,
                    table=scope_table.table,
                    rule_id=row.get("id"),
                    error=str(exc),
                )
        return rules

    def save(self, rule: ContractPrice) -> ContractPrice:
        scope_table = self.tables[rule.scope.kind]
        response = _execute(
            self.client.table(scope_table.table).upsert(rule_to_row(rule, scope_table)),
            f"saving {rule.scope.kind} pricing",
        )
        rows = response.data or []
        if not rows:
            return rule
        return row_to_rule(rows[0], rule.scope.kind, scope_table)

    def delete(self, scope, rule_id: str) -> bool:
        scope_table = self.tables[scope.kind]
        response = _execute(
            self.client.table(scope_table.table)
            .delete()
            .eq("id", rule_id)
            .eq(scope_table.column, scope.entity_id),
            f"deleting {scope.kind} pricing",
        )
        return bool(response.data)


class SupabaseCommissions:
    def __init__(self, client: Client, table: str = "commissions") -> None:
        self.client = client
        self.table = table

    def list_all(self) -> List[Dict[str, Any]]:
        response = _execute(
            self.client.table(self.table).select("*").order("created_at", desc=True),
            "listing commissions",
        )
        return list(response.data or [])

    def list_for_sales_rep(self, sales_rep_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            self.client.table(self.table)
            .select("*")
            .eq("sales_rep_id", sales_rep_id)
            .order("created_at", desc=True)
        )
        if status:
            query = query.eq("status", status)
        return list(_execute(query, "listing sales rep commissions").data or [])

    def get(self, commission_id: str) -> Optional[Dict[str, Any]]:
        response = _execute(
            self.client.table(self.table).select("*").eq("id", commission_id).limit(1),
            "fetching commission",
        )
        rows = response.data or []
        return rows[0] if rows else None

    def update_figures(
        self,
        commission_id: str,
        *,
        margin_details: List[Dict[str, Any]],
        product_margin: Decimal,
        commission_amount: Decimal,
    ) -> None:
        payload = figures_payload(
            margin_details=margin_details,
            product_margin=product_margin,
            commission_amount=commission_amount,
        )
        _execute(
            self.client.table(self.table).update(payload).eq("id", commission_id),
            f"updating commission {commission_id}",
        )
