"""
Request/response contracts for /payments. Field aliases follow the storefront
client (camelCase bodies); responses are snake_case ORM projections.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


ProviderName = Literal["paypal", "tokenpay"]
OrderType = Literal["subscription", "credits", "product", "license"]
CURRENCY_PATTERN = r"^[A-Z]{3}$"


# ----- Provider metadata (tagged by provider name) -----


class PayPalMetadata(BaseModel):
    """PayPal keeps everything in provider_order_id; nothing extra is stored."""

    provider: Literal["paypal"] = "paypal"


class TokenPayMetadata(BaseModel):
    """Deposit instructions returned by TokenPay CreateOrder (gateway field names)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Literal["tokenpay"] = "tokenpay"
    id: str = Field(..., alias="Id")
    to_address: str | None = Field(None, alias="ToAddress")
    amount: str | float | None = Field(None, alias="Amount")
    currency_name: str | None = Field(None, alias="CurrencyName")
    actual_amount: str | float | None = Field(None, alias="ActualAmount")
    base_currency: str | None = Field(None, alias="BaseCurrency")
    block_chain_name: str | None = Field(None, alias="BlockChainName")
    expire_time: datetime | None = Field(None, alias="ExpireTime")
    qr_code_link: str | None = Field(None, alias="QrCodeLink")


ProviderMetadata = Annotated[
    Union[PayPalMetadata, TokenPayMetadata],
    Field(discriminator="provider"),
]


class CartSnapshotItem(BaseModel):
    id: str
    name: str
    price_cents: int
    quantity: int
    type: str = "product"


class OrderMetadata(BaseModel):
    """Typed view over Order.meta."""

    model_config = ConfigDict(extra="ignore")

    provider_data: ProviderMetadata | None = None
    cart_items: list[CartSnapshotItem] = Field(default_factory=list)
    pay_currency: str | None = None
    failure_reason: str | None = None

    def to_column(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ----- Requests -----


class CreateOrderIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["subscription", "credits"]
    product_id: str = Field(..., min_length=1, alias="productId")
    provider: ProviderName = "paypal"
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    pay_currency: str | None = Field(None, alias="payCurrency")


class CartItemIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = ""
    price_cents: int = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    type: Literal["product", "subscription", "credits"] = "product"
    thumbnail: str | None = None


class CheckoutIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[CartItemIn] = Field(default_factory=list)
    payment_method: ProviderName = Field("paypal", alias="paymentMethod")
    currency: str = Field("USD", pattern=CURRENCY_PATTERN)
    shipping_address_id: str | None = Field(None, alias="shippingAddressId")
    pay_currency: str | None = Field(None, alias="payCurrency")


class CaptureOrderIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., min_length=1, alias="orderId")
    provider_order_id: str | None = Field(None, alias="providerOrderId")


# ----- Responses -----


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    product_name: str
    product_thumbnail: str | None = None
    quantity: int
    unit_price_cents: int
    total_price_cents: int


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    provider: str
    provider_order_id: str | None
    status: str
    amount_cents: int
    currency: str
    product_id: str | None
    product_type: str | None
    product_name: str | None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    shipping_address_id: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    items: list[OrderItemOut] = Field(default_factory=list)


class LicenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    product_id: str | None
    key_value: str
    status: str
    expires_at: datetime | None
    created_at: datetime
