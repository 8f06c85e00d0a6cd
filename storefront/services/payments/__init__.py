from storefront.services.payments.base import (
    PaymentProvider,
    ProviderCaptureResult,
    ProviderCreateResult,
    ProviderOrderRequest,
)
from storefront.services.payments.factory import PaymentProviderFactory

__all__ = [
    "PaymentProvider",
    "PaymentProviderFactory",
    "ProviderCaptureResult",
    "ProviderCreateResult",
    "ProviderOrderRequest",
]
