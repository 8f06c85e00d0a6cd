"""Tests for PayPalProvider: token per call, order payload, capture status mapping."""
import json

import httpx
import pytest

from storefront.core.errors import ProviderConfigurationError
from storefront.services.payments.base import ProviderOrderRequest
from storefront.services.payments.providers.paypal import PayPalProvider

CONFIG = {
    "client_id": "client",
    "secret": "secret",
    "api_base": "https://api.paypal.test",
    "app_url": "https://shop.example.com",
}


class FakePayPal:
    """Routes requests by path; records them for assertions."""

    def __init__(self, order_response=None, capture_response=None):
        self.requests = []
        self.order_response = order_response or httpx.Response(
            201,
            json={
                "id": "PP-ORDER-1",
                "status": "CREATED",
                "links": [
                    {"rel": "self", "href": "https://api.paypal.test/v2/checkout/orders/PP-ORDER-1"},
                    {"rel": "approve", "href": "https://paypal.test/checkoutnow?token=PP-ORDER-1"},
                ],
            },
        )
        self.capture_response = capture_response or httpx.Response(201, json={"id": "PP-ORDER-1", "status": "COMPLETED"})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21-token", "expires_in": 32400})
        if request.url.path == "/v2/checkout/orders":
            return self.order_response
        if request.url.path.endswith("/capture"):
            return self.capture_response
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})


def _provider(fake: FakePayPal) -> PayPalProvider:
    return PayPalProvider(CONFIG, transport=httpx.MockTransport(fake))


def _request():
    return ProviderOrderRequest(
        order_id="order-1",
        user_id="user-1",
        amount_cents=1999,
        currency="USD",
        type="subscription",
        description="Pro",
    )


def test_missing_credentials_raise():
    with pytest.raises(ProviderConfigurationError):
        PayPalProvider({"client_id": "", "secret": ""})


def test_create_order_builds_capture_intent():
    fake = FakePayPal()
    result = _provider(fake).create_order(_request())

    assert result.success is True
    assert result.provider_order_id == "PP-ORDER-1"
    assert result.redirect_url == "https://paypal.test/checkoutnow?token=PP-ORDER-1"

    token_req, order_req = fake.requests
    assert token_req.headers["Authorization"].startswith("Basic ")
    assert order_req.headers["Authorization"] == "Bearer A21-token"
    assert order_req.headers["PayPal-Request-Id"] == "order-1"
    body = json.loads(order_req.content)
    assert body["intent"] == "CAPTURE"
    unit = body["purchase_units"][0]
    assert unit["amount"] == {"currency_code": "USD", "value": "19.99"}
    assert unit["reference_id"] == "order-1"
    assert body["application_context"]["return_url"].startswith("https://shop.example.com/payment/success")


def test_token_is_fetched_per_call():
    fake = FakePayPal()
    provider = _provider(fake)
    provider.create_order(_request())
    provider.capture_order("PP-ORDER-1")
    token_calls = [r for r in fake.requests if r.url.path == "/v1/oauth2/token"]
    assert len(token_calls) == 2


def test_create_order_api_error_fails_closed():
    fake = FakePayPal(order_response=httpx.Response(400, json={"name": "INVALID_REQUEST"}))
    result = _provider(fake).create_order(_request())
    assert result.success is False
    assert "INVALID_REQUEST" in result.error


@pytest.mark.parametrize(
    "paypal_status,expected",
    [
        ("COMPLETED", "completed"),
        ("APPROVED", "pending"),
        ("CREATED", "pending"),
        ("SAVED", "pending"),
        ("PAYER_ACTION_REQUIRED", "pending"),
        ("VOIDED", "failed"),
    ],
)
def test_capture_status_mapping(paypal_status, expected):
    fake = FakePayPal(capture_response=httpx.Response(201, json={"id": "PP-ORDER-1", "status": paypal_status}))
    result = _provider(fake).capture_order("PP-ORDER-1")
    assert result.status == expected
    assert result.success is (expected == "completed")
    assert result.raw_status == paypal_status


def test_capture_rejection_is_failed():
    fake = FakePayPal(capture_response=httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY", "details": [{"issue": "ORDER_NOT_APPROVED"}]}))
    result = _provider(fake).capture_order("PP-ORDER-1")
    assert result.success is False
    assert result.status == "failed"


def test_capture_network_error_is_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = PayPalProvider(CONFIG, transport=httpx.MockTransport(handler)).capture_order("PP-ORDER-1")
    assert result.success is False
    assert result.status == "error"


def test_capture_server_error_is_error():
    fake = FakePayPal(capture_response=httpx.Response(503, json={"name": "SERVICE_UNAVAILABLE"}))
    result = _provider(fake).capture_order("PP-ORDER-1")
    assert result.success is False
    assert result.status == "error"


def test_capture_token_failure_is_error():
    def handler(request):
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(401, json={"error": "invalid_client"})
        raise AssertionError("capture must not be attempted without a token")

    result = PayPalProvider(CONFIG, transport=httpx.MockTransport(handler)).capture_order("PP-ORDER-1")
    assert result.status == "error"


def test_capture_unreadable_body_is_error():
    fake = FakePayPal(capture_response=httpx.Response(201, content=b"<html>"))
    result = _provider(fake).capture_order("PP-ORDER-1")
    assert result.status == "error"
