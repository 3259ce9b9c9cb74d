from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from storefront_pricing.engine.pricing.models import ContractPrice
from storefront_pricing.persistence.supabase_store import figures_payload


class InMemoryContractPrices:
    def __init__(self, rules: Optional[Iterable[ContractPrice]] = None) -> None:
        self._data: Dict[str, ContractPrice] = {}
        for rule in rules or []:
            self.save(rule)

    def list_rules(self, scope, product_id: int) -> List[ContractPrice]:
        return [
            rule
            for rule in self._data.values()
            if rule.scope == scope and rule.product_id == product_id
        ]

    def save(self, rule: ContractPrice) -> ContractPrice:
        update: Dict[str, Any] = {}
        if rule.id is None:
            update["id"] = str(uuid.uuid4())
        if rule.created_at is None:
            previous = self._data.get(rule.id) if rule.id is not None else None
            update["created_at"] = previous.created_at if previous is not None else datetime.now(timezone.utc)
        stored = rule.model_copy(update=update) if update else rule
        self._data[stored.id] = stored
        return stored

    def delete(self, scope, rule_id: str) -> bool:
        rule = self._data.get(rule_id)
        if rule is None or rule.scope != scope:
            return False
        del self._data[rule_id]
        return True


class InMemoryCommissions:
    def __init__(self, rows: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        for row in rows or []:
            self._data[str(row["id"])] = copy.deepcopy(row)

    def list_all(self) -> List[Dict[str, Any]]:
        rows = sorted(self._data.values(), key=lambda row: str(row.get("created_at") or ""), reverse=True)
        return [copy.deepcopy(row) for row in rows]

    def list_for_sales_rep(self, sales_rep_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            row
            for row in self.list_all()
            if row.get("sales_rep_id") == sales_rep_id and (status is None or row.get("status") == status)
        ]

    def get(self, commission_id: str) -> Optional[Dict[str, Any]]:
        row = self._data.get(commission_id)
        return copy.deepcopy(row) if row is not None else None

    def update_figures(
        self,
        commission_id: str,
        *,
        margin_details: List[Dict[str, Any]],
        product_margin: Decimal,
        commission_amount: Decimal,
    ) -> None:
        row = self._data.get(commission_id)
        if row is None:
            return
        row.update(
            copy.deepcopy(
                figures_payload(
                    margin_details=margin_details,
                    product_margin=product_margin,
                    commission_amount=commission_amount,
                )
            )
        )
