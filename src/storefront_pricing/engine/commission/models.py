from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront_pricing.util.numbers import to_decimal


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class CommissionSplitType(str, Enum):
    NONE = "none"
    PERCENTAGE_OF_DISTRIBUTOR = "percentage_of_distributor"
    FIXED_WITH_OVERRIDE = "fixed_with_override"


class MarginLineItem(BaseModel):
    """One line of ``margin_details`` as read from the store.

    The stored JSON is loose: ids may be strings, prices floats or strings,
    and ``retailPrice``/``hasMarkup`` may be missing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: int = Field(alias="productId")
    name: Optional[str] = None
    price: Decimal
    retail_price: Optional[Decimal] = Field(default=None, alias="retailPrice")
    cost: Optional[Decimal] = None
    quantity: int = Field(ge=0)
    has_markup: bool = Field(default=False, alias="hasMarkup")

    @field_validator("price", mode="before")
    @classmethod
    def coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("retail_price", "cost", mode="before")
    @classmethod
    def blank_is_missing(cls, value: Any) -> Any:
        value = to_decimal(value)
        return None if value == "" else value

    @field_validator("has_markup", mode="before")
    @classmethod
    def default_markup(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def default_retail_price(self) -> "MarginLineItem":
        if not self.retail_price:
            self.retail_price = self.price
        return self


class RecalculatedLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    name: Optional[str] = None
    price: Decimal
    retail_price: Decimal = Field(alias="retailPrice")
    cost: Decimal
    quantity: int
    has_markup: bool = Field(alias="hasMarkup")
    base_margin: Decimal = Field(alias="baseMargin")
    markup_amount: Decimal = Field(alias="markupAmount")
    base_commission: Decimal = Field(alias="baseCommission")
    markup_commission: Decimal = Field(alias="markupCommission")
    total_commission: Decimal = Field(alias="totalCommission")
    margin: Decimal

    def to_json(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True)
        return {
            key: float(value) if isinstance(value, Decimal) else value
            for key, value in payload.items()
        }


class CommissionRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order_id: Optional[str] = None
    sales_rep_id: Optional[str] = None
    distributor_id: Optional[str] = None
    organization_id: Optional[str] = None
    commission_rate: Decimal = Decimal("0")
    commission_split_type: Optional[CommissionSplitType] = None
    status: CommissionStatus = CommissionStatus.PENDING
    margin_details: Optional[List[Dict[str, Any]]] = None
    product_margin: Optional[Decimal] = None
    commission_amount: Optional[Decimal] = None
    sales_rep_commission: Optional[Decimal] = None
    distributor_commission: Optional[Decimal] = None
    created_at: Optional[datetime] = None

    @field_validator("id", "order_id", "sales_rep_id", "distributor_id", "organization_id", mode="before")
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        return str(value) if value is not None else None

    @field_validator(
        "product_margin",
        "commission_amount",
        "sales_rep_commission",
        "distributor_commission",
        mode="before",
    )
    @classmethod
    def coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("commission_rate", mode="before")
    @classmethod
    def default_rate(cls, value: Any) -> Any:
        if value is None or value == "":
            return Decimal("0")
        return to_decimal(value)


class RecordOutcome(BaseModel):
    commission_id: str
    status: str
    reason: Optional[str] = None
    error_type: Optional[str] = None
    old_margin: Optional[Decimal] = None
    new_margin: Optional[Decimal] = None
    old_commission: Optional[Decimal] = None
    new_commission: Optional[Decimal] = None


class RecalculationReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[RecordOutcome] = Field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for result in self.results if result.status == status)

    @property
    def updated(self) -> int:
        return self._count("updated")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def failed(self) -> int:
        return self._count("failed")

    def summary(self) -> Dict[str, Any]:
        return {
            "records": len(self.results),
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
        }
