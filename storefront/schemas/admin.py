"""
Admin API schemas: create/update payloads for back-office resources.
Update models have every field optional; only fields sent are applied.
"""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


SLUG_PATTERN = r"^[a-z0-9-]+$"


class Pagination(BaseModel):
    """Pagination block of the list envelope."""
    limit: int
    offset: int
    total: int


# ---------- Categories ----------


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: str | None = None
    parent_id: str | None = None
    image_url: str | None = None
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: str | None = None
    parent_id: str | None = None
    image_url: str | None = None
    sort_order: int | None = None
    is_active: bool | None = None


class CategoryOut(CategoryIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ---------- Products ----------


ProductStatus = Literal["draft", "published", "archived"]


class ProductIn(BaseModel):
    category_id: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=200, pattern=SLUG_PATTERN)
    description: str | None = None
    thumbnail: str | None = None
    price_cents: int = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    status: ProductStatus = "draft"


class ProductUpdate(BaseModel):
    category_id: str | None = None
    name: str | None = Field(None, min_length=1, max_length=200)
    slug: str | None = Field(None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    description: str | None = None
    thumbnail: str | None = None
    price_cents: int | None = Field(None, ge=0)
    stock_quantity: int | None = Field(None, ge=0)
    status: ProductStatus | None = None


class ProductOut(ProductIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ---------- Plans ----------


class PlanIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    price_cents: int = Field(..., ge=0)
    interval: Literal["month", "year"] = "month"
    features: dict[str, Any] = Field(default_factory=dict)
    quotas: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class PlanUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    price_cents: int | None = Field(None, ge=0)
    interval: Literal["month", "year"] | None = None
    features: dict[str, Any] | None = None
    quotas: dict[str, Any] | None = None
    is_active: bool | None = None


class PlanOut(PlanIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ---------- Credit products ----------


class CreditProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    credits_amount: int = Field(..., ge=0)
    price_cents: int = Field(..., ge=0)
    duration_days: int | None = Field(None, ge=1)
    is_active: bool = True


class CreditProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    credits_amount: int | None = Field(None, ge=0)
    price_cents: int | None = Field(None, ge=0)
    duration_days: int | None = Field(None, ge=1)
    is_active: bool | None = None


class CreditProductOut(CreditProductIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ---------- Orders ----------


class OrderUpdate(BaseModel):
    status: Literal["pending", "processing", "completed", "failed", "cancelled"] | None = None


# ---------- Licenses ----------


LicenseStatus = Literal["active", "revoked", "expired"]


class LicenseIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    product_id: str | None = None
    key_value: str = Field(..., min_length=1)
    status: LicenseStatus = "active"
    expires_at: datetime | None = None


class LicenseUpdate(BaseModel):
    status: LicenseStatus | None = None
    expires_at: datetime | None = None


# ---------- Subscriptions ----------


class SubscriptionUpdate(BaseModel):
    plan_id: str | None = None
    status: Literal["active", "cancelled", "expired", "past_due"] | None = None
    current_period_end: datetime | None = None


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    plan_id: str
    status: str
    current_period_end: datetime | None
    created_at: datetime
    updated_at: datetime


# ---------- User credits ----------


class UserCreditsUpdate(BaseModel):
    balance: int = Field(..., ge=0)


class UserCreditsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    balance: int
    updated_at: datetime


# ---------- Cron logs ----------


class CronJobLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_name: str
    status: str
    message: str | None
    details: Any = None
    duration_ms: int | None
    created_at: datetime
