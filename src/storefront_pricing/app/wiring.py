from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from storefront_pricing.adapters.catalog.bigcommerce import BigCommerceCatalog
from storefront_pricing.adapters.catalog.memory import InMemoryCatalog
from storefront_pricing.app.config.loader import require_secret
from storefront_pricing.app.models.config import ServiceConfig
from storefront_pricing.persistence.memory import InMemoryCommissions, InMemoryContractPrices
from storefront_pricing.persistence.supabase_store import (
    ScopeTable,
    SupabaseCommissions,
    SupabaseContractPrices,
    connect,
)


@dataclass
class Backends:
    catalog: Any
    contract_prices: Any
    commissions: Any


def build_catalog(config: ServiceConfig, *, required: bool = False):
    if required or (config.catalog.store_hash and os.getenv("BC_ACCESS_TOKEN")):
        return BigCommerceCatalog(
            store_hash=config.catalog.store_hash or require_secret("BC_STORE_HASH"),
            access_token=require_secret("BC_ACCESS_TOKEN"),
            base_url=config.catalog.base_url,
            timeout=config.catalog.timeout_seconds,
            page_size=config.catalog.page_size,
        )
    return InMemoryCatalog()


def build_backends(config: ServiceConfig, *, required: bool = False) -> Backends:
    """Wire catalog and store clients.

    With ``required`` the real services must be configured; otherwise
    missing credentials fall back to empty in-memory twins.
    """
    catalog = build_catalog(config, required=required)
    if required or (config.store.url and os.getenv("SUPABASE_SERVICE_ROLE_KEY")):
        client = connect(
            config.store.url or require_secret("SUPABASE_URL"),
            require_secret("SUPABASE_SERVICE_ROLE_KEY"),
        )
        tables = {
            kind: ScopeTable(table=table.table, column=table.column)
            for kind, table in config.store.contract_price_tables.items()
        }
        return Backends(
            catalog=catalog,
            contract_prices=SupabaseContractPrices(client, tables),
            commissions=SupabaseCommissions(client, config.store.commissions_table),
        )
    return Backends(
        catalog=catalog,
        contract_prices=InMemoryContractPrices(),
        commissions=InMemoryCommissions(),
    )
