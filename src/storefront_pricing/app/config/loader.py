from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from storefront_pricing.app.models.config import ServiceConfig
from storefront_pricing.util.errors import ConfigurationError

SUPPORTED_SCHEMA_VERSIONS = {1}
CONFIG_PATH_ENV = "STOREFRONT_PRICING_CONFIG"


def _apply_env(config: ServiceConfig) -> ServiceConfig:
    catalog = config.catalog
    store = config.store
    reports = config.reports
    if os.getenv("BC_STORE_HASH"):
        catalog = catalog.model_copy(update={"store_hash": os.environ["BC_STORE_HASH"]})
    if os.getenv("BC_API_BASE_URL"):
        catalog = catalog.model_copy(update={"base_url": os.environ["BC_API_BASE_URL"]})
    if os.getenv("SUPABASE_URL"):
        store = store.model_copy(update={"url": os.environ["SUPABASE_URL"]})
    if os.getenv("REPORT_BUCKET"):
        reports = reports.model_copy(update={"bucket": os.environ["REPORT_BUCKET"]})
    if os.getenv("REPORT_PREFIX"):
        reports = reports.model_copy(update={"prefix": os.environ["REPORT_PREFIX"]})
    return config.model_copy(update={"catalog": catalog, "store": store, "reports": reports})


def load_service_config(path: str | Path) -> ServiceConfig:
    data: Dict[str, Any]
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    config = ServiceConfig.model_validate(data)
    if config.schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"Unsupported schema_version {config.schema_version}")
    return _apply_env(config)


def load_service_config_from_env() -> ServiceConfig:
    path = os.getenv(CONFIG_PATH_ENV)
    if path:
        return load_service_config(path)
    return _apply_env(ServiceConfig())


def require_secret(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"missing required environment variable {name}")
    return value
