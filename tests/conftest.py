import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from freezegun import freeze_time

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from storefront_pricing.adapters.catalog.memory import InMemoryCatalog  # noqa: E402
from storefront_pricing.engine.pricing.models import CatalogProduct, CatalogVariant  # noqa: E402

DEFAULT_ENV = {
    "AWS_ACCESS_KEY_ID": "test-access-key",
    "AWS_SECRET_ACCESS_KEY": "test-secret-key",
    "AWS_SESSION_TOKEN": "test-session",
    "AWS_DEFAULT_REGION": "us-east-1",
}

CLEARED_ENV = (
    "STOREFRONT_PRICING_CONFIG",
    "BC_STORE_HASH",
    "BC_ACCESS_TOKEN",
    "BC_API_BASE_URL",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "REPORT_BUCKET",
    "REPORT_PREFIX",
    "API_KEYS",
    "ADMIN_API_KEYS",
    "CLOUDWATCH_METRICS_ENABLED",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    for key in CLEARED_ENV:
        monkeypatch.delenv(key, raising=False)
    for key, value in DEFAULT_ENV.items():
        monkeypatch.setenv(key, value)
    yield


@pytest.fixture
def as_of() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        [
            CatalogProduct(id=101, name="Test Kit", price=Decimal("100"), cost_price=Decimal("60")),
            CatalogProduct(
                id=202,
                name="Panel",
                price=Decimal("250"),
                cost_price=Decimal("150"),
                variants=[CatalogVariant(id=1, cost_price=Decimal("140"))],
            ),
        ]
    )


@pytest.fixture
def freezer():
    with freeze_time("2025-06-01T12:00:00Z") as frozen_datetime:
        yield frozen_datetime
