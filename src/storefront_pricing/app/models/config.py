from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class CatalogConfig(BaseModel):
    store_hash: str = ""
    base_url: str = "https://api.bigcommerce.com"
    timeout_seconds: float = 15
    page_size: int = Field(default=250, ge=1, le=250)


class ScopeTableConfig(BaseModel):
    table: str
    column: str


def _default_scope_tables() -> Dict[str, ScopeTableConfig]:
    return {
        "individual": ScopeTableConfig(table="contract_pricing", column="user_id"),
        "location": ScopeTableConfig(table="location_pricing", column="location_id"),
        "organization": ScopeTableConfig(table="organization_pricing", column="organization_id"),
    }


class StoreConfig(BaseModel):
    url: str = ""
    commissions_table: str = "commissions"
    contract_price_tables: Dict[str, ScopeTableConfig] = Field(default_factory=_default_scope_tables)


class ReportsConfig(BaseModel):
    bucket: Optional[str] = None
    prefix: str = ""


class ServiceConfig(BaseModel):
    schema_version: int = 1
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)
