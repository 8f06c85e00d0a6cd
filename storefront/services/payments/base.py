"""
Base classes and types for payment providers.
Used by factory and all providers (paypal, tokenpay).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from storefront.schemas.payments import PayPalMetadata, TokenPayMetadata


# Normalized capture statuses. "error" means the gateway was unreachable or its
# answer unreadable, so nothing is known about the payment.
CAPTURE_STATUSES = ("pending", "processing", "completed", "failed", "error")


@dataclass
class ProviderOrderRequest:
    """What an adapter needs to open a payment for a local order."""
    order_id: str
    user_id: str
    amount_cents: int
    currency: str
    type: str
    description: str = ""
    pay_currency: str | None = None  # crypto asset for tokenpay


@dataclass
class ProviderCreateResult:
    success: bool
    provider_order_id: str | None = None
    redirect_url: str | None = None
    metadata: PayPalMetadata | TokenPayMetadata | None = None
    error: str | None = None


@dataclass
class ProviderCaptureResult:
    """status: normalized; raw_status: gateway vocabulary (for logs/outbox)."""
    success: bool
    status: str
    raw_status: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status not in CAPTURE_STATUSES:
            raise ValueError(f"Unknown capture status: {self.status}")


class PaymentProvider(ABC):
    """
    Base class for payment providers.

    Adapters fail closed: create_order/capture_order never raise for gateway or
    network problems, they return success=False. A capture the gateway answered
    maps to pending/completed/failed; a transport or parse failure maps to
    "error" and says nothing about the order. Only missing configuration
    raises, from the constructor.
    """

    name: str = ""

    def __init__(self, config: dict, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self.timeout = config.get("timeout", 10.0)
        self._transport = transport

    def _http(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured."""
        pass

    @abstractmethod
    def create_order(self, request: ProviderOrderRequest) -> ProviderCreateResult:
        pass

    @abstractmethod
    def capture_order(self, provider_order_id: str) -> ProviderCaptureResult:
        pass
