"""
Factory for creating payment providers from settings.
"""
import logging

import httpx

from storefront.core.config import settings
from storefront.core.errors import ValidationError
from storefront.services.payments.base import PaymentProvider
from storefront.services.payments.providers.paypal import PayPalProvider
from storefront.services.payments.providers.tokenpay import TokenPayProvider

logger = logging.getLogger(__name__)


class PaymentProviderFactory:
    """Factory for creating payment providers."""

    PROVIDERS = {
        "paypal": PayPalProvider,
        "tokenpay": TokenPayProvider,
    }

    @classmethod
    def create(
        cls,
        provider_name: str,
        config: dict,
        transport: httpx.BaseTransport | None = None,
    ) -> PaymentProvider:
        """
        Create provider instance by name.

        Raises:
            ValidationError: unknown provider name
            ProviderConfigurationError: provider credentials missing
        """
        provider_class = cls.PROVIDERS.get((provider_name or "").lower())
        if not provider_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValidationError(
                f"Unknown payment provider: {provider_name}. Available providers: {available}"
            )
        logger.debug("payment_provider_created", extra={"provider": provider_name})
        return provider_class(config, transport=transport)

    @classmethod
    def create_from_settings(cls, provider_name: str) -> PaymentProvider:
        return cls.create(provider_name, cls.config_for(provider_name))

    @staticmethod
    def config_for(provider_name: str) -> dict:
        if provider_name == "paypal":
            return {
                "client_id": settings.paypal_client_id,
                "secret": settings.paypal_secret,
                "api_base": settings.paypal_api_base,
                "app_url": settings.public_app_url,
                "timeout": settings.http_client_timeout,
            }
        if provider_name == "tokenpay":
            return {
                "api_url": settings.tokenpay_api_url,
                "api_token": settings.tokenpay_api_token,
                "default_currency": settings.tokenpay_default_currency,
                "app_url": settings.public_app_url,
                "notify_url": f"{settings.public_app_url}{settings.api_prefix}/payments/tokenpay/notify",
                "timeout": settings.http_client_timeout_long,
            }
        return {}
