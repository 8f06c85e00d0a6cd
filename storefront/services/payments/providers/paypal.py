"""
PayPal Orders v2 provider (card network).
Access token is fetched per call via client-credentials; no token cache.
"""
import logging
import time

import httpx

from storefront.core.errors import ProviderConfigurationError
from storefront.schemas.payments import PayPalMetadata
from storefront.services.payments.base import (
    PaymentProvider,
    ProviderCaptureResult,
    ProviderCreateResult,
    ProviderOrderRequest,
)
from storefront.utils.currency import format_cents
from storefront.utils.metrics import record_provider_request

logger = logging.getLogger(__name__)

# PayPal order status -> normalized status
STATUS_MAP = {
    "COMPLETED": "completed",
    "APPROVED": "pending",
    "CREATED": "pending",
    "SAVED": "pending",
    "PAYER_ACTION_REQUIRED": "pending",
}


class PayPalAPIError(Exception):
    def __init__(self, status_code: int, body: str):
        super().__init__(body or f"PayPal API error {status_code}")
        self.status_code = status_code


class PayPalProvider(PaymentProvider):
    """PayPal REST provider."""

    name = "paypal"

    def __init__(self, config: dict, transport: httpx.BaseTransport | None = None):
        super().__init__(config, transport)
        self.client_id = config.get("client_id")
        self.secret = config.get("secret")
        self.api_base = (config.get("api_base") or "https://api-m.sandbox.paypal.com").rstrip("/")
        self.app_url = (config.get("app_url") or "").rstrip("/")
        if not self.is_available():
            raise ProviderConfigurationError("PayPal credentials missing")

    def is_available(self) -> bool:
        return bool(self.client_id and self.secret)

    def _access_token(self, client: httpx.Client) -> str:
        response = client.post(
            f"{self.api_base}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
        )
        data = self._handle_response(response)
        token = data.get("access_token")
        if not token:
            raise ValueError("PayPal token response without access_token")
        return token

    @staticmethod
    def _handle_response(response: httpx.Response) -> dict:
        if response.status_code in (200, 201):
            return response.json()
        raise PayPalAPIError(response.status_code, response.text)

    def create_order(self, request: ProviderOrderRequest) -> ProviderCreateResult:
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": request.order_id,
                    "amount": {
                        "currency_code": request.currency,
                        "value": format_cents(request.amount_cents),
                    },
                }
            ],
            "application_context": {
                "return_url": f"{self.app_url}/payment/success?order_id={request.order_id}",
                "cancel_url": f"{self.app_url}/payment/cancel?order_id={request.order_id}",
            },
        }
        if request.description:
            payload["purchase_units"][0]["description"] = request.description[:127]

        start = time.time()
        try:
            with self._http() as client:
                token = self._access_token(client)
                response = client.post(
                    f"{self.api_base}/v2/checkout/orders",
                    headers={
                        "Authorization": f"Bearer {token}",
                        # PayPal dedupes retries carrying the same request id
                        "PayPal-Request-Id": request.order_id,
                    },
                    json=payload,
                )
                data = self._handle_response(response)
        except (httpx.HTTPError, PayPalAPIError, ValueError) as e:
            record_provider_request(self.name, "create", "error", time.time() - start)
            logger.warning(
                "paypal_create_order_failed",
                extra={"order_id": request.order_id, "error": str(e)},
            )
            return ProviderCreateResult(success=False, error=str(e))

        record_provider_request(self.name, "create", "success", time.time() - start)
        approve_url = next(
            (
                link.get("href")
                for link in data.get("links") or []
                if link.get("rel") in ("approve", "payer-action")
            ),
            None,
        )
        return ProviderCreateResult(
            success=True,
            provider_order_id=data.get("id"),
            redirect_url=approve_url,
            metadata=PayPalMetadata(),
        )

    def capture_order(self, provider_order_id: str) -> ProviderCaptureResult:
        start = time.time()
        response = None
        try:
            with self._http() as client:
                token = self._access_token(client)
                response = client.post(
                    f"{self.api_base}/v2/checkout/orders/{provider_order_id}/capture",
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                    },
                )
            data = self._handle_response(response)
        except (httpx.HTTPError, PayPalAPIError, ValueError) as e:
            record_provider_request(self.name, "capture", "error", time.time() - start)
            # Only a 4xx on the capture call itself is PayPal refusing the order;
            # token failures, 5xx and unreadable bodies leave the payment unknown.
            refused = (
                response is not None
                and isinstance(e, PayPalAPIError)
                and e.status_code < 500
            )
            status = "failed" if refused else "error"
            logger.warning(
                "paypal_capture_failed",
                extra={"provider_order_id": provider_order_id, "status": status, "error": str(e)},
            )
            return ProviderCaptureResult(success=False, status=status, raw_status="ERROR", error=str(e))

        record_provider_request(self.name, "capture", "success", time.time() - start)
        raw = data.get("status") or "UNKNOWN"
        status = STATUS_MAP.get(raw, "failed")
        return ProviderCaptureResult(success=status == "completed", status=status, raw_status=raw)
