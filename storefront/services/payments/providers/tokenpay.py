"""
TokenPay crypto gateway provider.

Requests are signed: md5 over the alphabetically sorted, non-empty
parameters joined as k=v&k=v, followed directly by the shared secret.
The same scheme authenticates the asynchronous notify callback.
"""
import hashlib
import logging
import secrets
import time
from typing import Any

import httpx

from storefront.core.errors import ProviderConfigurationError
from storefront.schemas.payments import TokenPayMetadata
from storefront.services.payments.base import (
    PaymentProvider,
    ProviderCaptureResult,
    ProviderCreateResult,
    ProviderOrderRequest,
)
from storefront.utils.currency import format_cents
from storefront.utils.metrics import record_provider_request

logger = logging.getLogger(__name__)


SUPPORTED_CURRENCIES = (
    "EVM_ETH_ETH",
    "EVM_ETH_USDT_ERC20",
    "EVM_ETH_USDC_ERC20",
    "EVM_BSC_BNB",
    "EVM_BSC_USDT_BEP20",
    "EVM_BSC_USDC_BEP20",
)
DEFAULT_CURRENCY = "EVM_BSC_USDT_BEP20"

# TokenPay order status (name or numeric code) -> normalized status
STATUS_MAP = {
    "Pending": "pending",
    "0": "pending",
    "Paid": "completed",
    "1": "completed",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def sign_params(params: dict[str, Any], secret: str) -> str:
    """Lowercase hex md5 of sorted non-empty params (Signature excluded) + secret."""
    pairs = sorted(
        (k, _stringify(v))
        for k, v in params.items()
        if k != "Signature" and v is not None and _stringify(v) != ""
    )
    query = "&".join(f"{k}={v}" for k, v in pairs)
    return hashlib.md5((query + secret).encode("utf-8")).hexdigest()


def verify_signature(params: dict[str, Any], secret: str) -> bool:
    provided = str(params.get("Signature") or "").lower()
    if not provided:
        return False
    return secrets.compare_digest(provided, sign_params(params, secret))


def normalize_status(raw: Any) -> str:
    if raw is None:
        return "failed"
    return STATUS_MAP.get(str(raw), "failed")


class TokenPayProvider(PaymentProvider):
    """TokenPay REST provider (EVM chains)."""

    name = "tokenpay"

    def __init__(self, config: dict, transport: httpx.BaseTransport | None = None):
        super().__init__(config, transport)
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.secret = config.get("api_token") or ""
        self.default_currency = config.get("default_currency") or DEFAULT_CURRENCY
        self.notify_url = config.get("notify_url") or ""
        self.app_url = (config.get("app_url") or "").rstrip("/")
        if not self.is_available():
            raise ProviderConfigurationError("TokenPay configuration missing")

    def is_available(self) -> bool:
        return bool(self.api_url and self.secret)

    def create_order(self, request: ProviderOrderRequest) -> ProviderCreateResult:
        params: dict[str, Any] = {
            "OutOrderId": request.order_id,
            "OrderUserKey": request.user_id,
            "ActualAmount": format_cents(request.amount_cents),
            "Currency": request.pay_currency or self.default_currency,
            "NotifyUrl": self.notify_url,
            "RedirectUrl": f"{self.app_url}/payment/success?order_id={request.order_id}",
        }
        params["Signature"] = sign_params(params, self.secret)

        start = time.time()
        try:
            with self._http() as client:
                response = client.post(f"{self.api_url}/CreateOrder", json=params)
                response.raise_for_status()
                body = response.json()
            if not body.get("success"):
                raise ValueError(body.get("message") or "Failed to create TokenPay order")
            data = body.get("data") or {}
            metadata = TokenPayMetadata.model_validate(data)
        except (httpx.HTTPError, ValueError) as e:
            # pydantic ValidationError is a ValueError
            record_provider_request(self.name, "create", "error", time.time() - start)
            logger.warning(
                "tokenpay_create_order_failed",
                extra={"order_id": request.order_id, "error": str(e)},
            )
            return ProviderCreateResult(success=False, error=str(e))

        record_provider_request(self.name, "create", "success", time.time() - start)
        return ProviderCreateResult(
            success=True,
            provider_order_id=metadata.id,
            redirect_url=data.get("PayUrl") or metadata.qr_code_link,
            metadata=metadata,
        )

    def capture_order(self, provider_order_id: str) -> ProviderCaptureResult:
        # Crypto payments settle on-chain; "capture" is a status query
        params: dict[str, Any] = {"Id": provider_order_id}
        params["Signature"] = sign_params(params, self.secret)

        start = time.time()
        try:
            with self._http() as client:
                response = client.get(f"{self.api_url}/Query", params=params)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            # no answer about the order; it keeps its last known status
            record_provider_request(self.name, "capture", "error", time.time() - start)
            logger.warning(
                "tokenpay_query_failed",
                extra={"provider_order_id": provider_order_id, "error": str(e)},
            )
            return ProviderCaptureResult(success=False, status="error", raw_status="ERROR", error=str(e))

        record_provider_request(self.name, "capture", "success", time.time() - start)
        if not body.get("success"):
            return ProviderCaptureResult(
                success=False,
                status="failed",
                raw_status="ERROR",
                error=body.get("message") or "TokenPay query failed",
            )
        raw = (body.get("data") or {}).get("Status")
        status = normalize_status(raw)
        return ProviderCaptureResult(
            success=status == "completed",
            status=status,
            raw_status=None if raw is None else str(raw),
        )
