"""Tests for TokenPayProvider: request signing, CreateOrder, Query status mapping."""
import hashlib
import json

import httpx
import pytest

from storefront.core.errors import ProviderConfigurationError
from storefront.services.payments.base import ProviderOrderRequest
from storefront.services.payments.providers.tokenpay import (
    TokenPayProvider,
    normalize_status,
    sign_params,
    verify_signature,
)

SECRET = "tp-secret"
CONFIG = {
    "api_url": "https://tokenpay.example",
    "api_token": SECRET,
    "app_url": "https://shop.example.com",
    "notify_url": "https://shop.example.com/api/v1/payments/tokenpay/notify",
}


def _request(**kwargs):
    values = dict(order_id="order-1", user_id="user-1", amount_cents=1999, currency="USD", type="credits")
    values.update(kwargs)
    return ProviderOrderRequest(**values)


class TestSigning:
    def test_sorted_non_empty_params_then_secret(self):
        params = {"b": "2", "a": "1", "empty": "", "none": None, "Signature": "ignored"}
        expected = hashlib.md5(b"a=1&b=2" + SECRET.encode()).hexdigest()
        assert sign_params(params, SECRET) == expected

    def test_signature_is_lowercase_hex(self):
        sig = sign_params({"Id": "X"}, SECRET)
        assert sig == sig.lower()
        assert len(sig) == 32

    def test_verify_signature(self):
        params = {"Id": "T-1", "Status": 1, "OutOrderId": "order-1"}
        params["Signature"] = sign_params(params, SECRET)
        assert verify_signature(params, SECRET) is True

        params["Status"] = 0
        assert verify_signature(params, SECRET) is False

    def test_verify_signature_missing(self):
        assert verify_signature({"Id": "T-1"}, SECRET) is False


class TestStatusMapping:
    @pytest.mark.parametrize(
        "raw,expected",
        [("Paid", "completed"), (1, "completed"), ("Pending", "pending"), (0, "pending"), ("Expired", "failed"), (2, "failed"), (None, "failed")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_status(raw) == expected


class TestConfiguration:
    def test_missing_config_raises(self):
        with pytest.raises(ProviderConfigurationError):
            TokenPayProvider({"api_url": "", "api_token": ""})


class TestCreateOrder:
    def test_create_order_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "message": "ok",
                    "data": {
                        "Id": "TP-100",
                        "ToAddress": "0xdeadbeef",
                        "Amount": 19.99,
                        "CurrencyName": "USDT",
                        "ActualAmount": 19.99,
                        "BaseCurrency": "USD",
                        "BlockChainName": "BSC",
                        "ExpireTime": "2030-01-01T00:00:00",
                        "QrCodeLink": "https://tokenpay.example/qr/TP-100",
                    },
                },
            )

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        result = provider.create_order(_request(pay_currency="EVM_ETH_USDT_ERC20"))

        assert result.success is True
        assert result.provider_order_id == "TP-100"
        assert result.metadata.to_address == "0xdeadbeef"
        assert result.metadata.block_chain_name == "BSC"
        assert seen["url"] == "https://tokenpay.example/CreateOrder"
        body = seen["body"]
        assert body["OutOrderId"] == "order-1"
        assert body["OrderUserKey"] == "user-1"
        assert body["ActualAmount"] == "19.99"
        assert body["Currency"] == "EVM_ETH_USDT_ERC20"
        assert body["NotifyUrl"] == CONFIG["notify_url"]
        assert verify_signature(body, SECRET)

    def test_create_order_default_currency(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"Id": "TP-1"}})

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        provider.create_order(_request())
        assert seen["body"]["Currency"] == "EVM_BSC_USDT_BEP20"

    def test_create_order_gateway_refusal(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "Currency not supported"})

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        result = provider.create_order(_request())
        assert result.success is False
        assert result.error == "Currency not supported"

    def test_create_order_network_error_fails_closed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        result = provider.create_order(_request())
        assert result.success is False
        assert result.provider_order_id is None

    def test_create_order_bad_json_fails_closed(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>bad gateway</html>")

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        assert provider.create_order(_request()).success is False


class TestCapture:
    def _provider(self, body=None, status_code=200):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(status_code, json=body or {})

        return TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler)), seen

    def test_paid_is_completed(self):
        provider, seen = self._provider({"success": True, "data": {"Id": "TP-1", "Status": "Paid"}})
        result = provider.capture_order("TP-1")
        assert result.success is True
        assert result.status == "completed"
        params = dict(seen["request"].url.params)
        assert seen["request"].url.path == "/Query"
        assert params["Id"] == "TP-1"
        assert verify_signature(params, SECRET)

    def test_pending(self):
        provider, _ = self._provider({"success": True, "data": {"Status": 0}})
        result = provider.capture_order("TP-1")
        assert result.success is False
        assert result.status == "pending"

    def test_unknown_order_is_failed(self):
        provider, _ = self._provider({"success": False, "message": "Order not found"})
        result = provider.capture_order("TP-404")
        assert result.status == "failed"
        assert result.error == "Order not found"

    def test_http_error_is_error(self):
        provider, _ = self._provider({"error": "boom"}, status_code=500)
        result = provider.capture_order("TP-1")
        assert result.success is False
        assert result.status == "error"

    def test_unreachable_gateway_is_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = TokenPayProvider(CONFIG, transport=httpx.MockTransport(handler))
        result = provider.capture_order("TP-1")
        assert result.success is False
        assert result.status == "error"
        assert "connection refused" in result.error
