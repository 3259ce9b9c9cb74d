from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront_pricing.util.numbers import to_decimal

UNBOUNDED_QUANTITY = 999_999_999


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class IndividualScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["individual"] = "individual"
    user_id: str

    @property
    def entity_id(self) -> str:
        return self.user_id


class LocationScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["location"] = "location"
    location_id: str

    @property
    def entity_id(self) -> str:
        return self.location_id


class OrganizationScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["organization"] = "organization"
    organization_id: str

    @property
    def entity_id(self) -> str:
        return self.organization_id


Scope = Annotated[
    Union[IndividualScope, LocationScope, OrganizationScope],
    Field(discriminator="kind"),
]

SCOPE_KINDS = ("individual", "location", "organization")


def make_scope(kind: str, entity_id: str) -> Union[IndividualScope, LocationScope, OrganizationScope]:
    if kind == "individual":
        return IndividualScope(user_id=entity_id)
    if kind == "location":
        return LocationScope(location_id=entity_id)
    if kind == "organization":
        return OrganizationScope(organization_id=entity_id)
    raise ValueError(f"unknown scope kind '{kind}'")


class PriceSource(str, Enum):
    INDIVIDUAL = "individual"
    LOCATION = "location"
    ORGANIZATION = "organization"
    BASE = "base"


class ContractPrice(BaseModel):
    id: Optional[str] = None
    scope: Scope
    product_id: int
    contract_price: Optional[Decimal] = None
    markup_price: Optional[Decimal] = None
    min_quantity: int = 1
    max_quantity: Optional[int] = None
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    allow_below_cost: bool = False
    created_at: Optional[datetime] = None

    @field_validator("contract_price", "markup_price", mode="before")
    @classmethod
    def coerce_decimal(cls, value: object) -> object:
        return to_decimal(value)

    @field_validator("effective_date", "expiry_date", "created_at")
    @classmethod
    def normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def has_price(self) -> bool:
        return self.contract_price is not None or self.markup_price is not None

    @property
    def upper_quantity(self) -> int:
        return self.max_quantity if self.max_quantity is not None else UNBOUNDED_QUANTITY

    def covers_quantity(self, quantity: int) -> bool:
        return self.min_quantity <= quantity <= self.upper_quantity

    def is_expired(self, as_of: datetime) -> bool:
        return self.expiry_date is not None and ensure_utc(as_of) > self.expiry_date

    def is_active(self, as_of: datetime) -> bool:
        moment = ensure_utc(as_of)
        if self.effective_date is not None and moment < self.effective_date:
            return False
        return not self.is_expired(moment)

    def overlaps(self, other: "ContractPrice") -> bool:
        return self.min_quantity <= other.upper_quantity and self.upper_quantity >= other.min_quantity

    def range_label(self) -> str:
        if self.max_quantity is None:
            return f"{self.min_quantity}+"
        return f"{self.min_quantity}-{self.max_quantity}"


class Requester(BaseModel):
    user_id: str
    organization_id: Optional[str] = None
    location_id: Optional[str] = None

    def scopes(self) -> List[Union[IndividualScope, LocationScope, OrganizationScope]]:
        """Scopes in precedence order: individual, location, organization."""
        ordered: List[Union[IndividualScope, LocationScope, OrganizationScope]] = [
            IndividualScope(user_id=self.user_id)
        ]
        if self.location_id:
            ordered.append(LocationScope(location_id=self.location_id))
        if self.organization_id:
            ordered.append(OrganizationScope(organization_id=self.organization_id))
        return ordered


class PricingRequest(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)
    requester: Requester
    as_of: Optional[datetime] = None


class EffectivePrice(BaseModel):
    unit_price: Decimal
    retail_price: Decimal
    regular_price: Decimal
    has_markup: bool = False
    source: PriceSource
    rule_id: Optional[str] = None

    @property
    def savings(self) -> Decimal:
        difference = self.regular_price - self.unit_price
        return difference if difference > 0 else Decimal("0")


class PriceQuote(BaseModel):
    product_id: int
    quantity: int
    available: bool
    price: Optional[EffectivePrice] = None
    savings: Optional[Decimal] = None
    message: Optional[str] = None
    reason: Optional[str] = None


class CatalogVariant(BaseModel):
    id: Optional[int] = None
    cost_price: Optional[Decimal] = None

    @field_validator("cost_price", mode="before")
    @classmethod
    def coerce_decimal(cls, value: object) -> object:
        return to_decimal(value)


class CatalogProduct(BaseModel):
    id: int
    name: Optional[str] = None
    price: Decimal
    cost_price: Optional[Decimal] = None
    variants: List[CatalogVariant] = Field(default_factory=list)

    @field_validator("price", "cost_price", mode="before")
    @classmethod
    def coerce_decimal(cls, value: object) -> object:
        return to_decimal(value)

    @model_validator(mode="before")
    @classmethod
    def drop_null_variants(cls, data: object) -> object:
        if isinstance(data, dict) and data.get("variants") is None:
            data = {**data, "variants": []}
        return data

    def authoritative_cost(self) -> Decimal:
        if self.variants and self.variants[0].cost_price is not None:
            return self.variants[0].cost_price
        if self.cost_price is not None:
            return self.cost_price
        return Decimal("0")
