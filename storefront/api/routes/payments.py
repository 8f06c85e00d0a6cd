"""
Payments API: create order, cart checkout, capture, order history,
TokenPay notify callback. Responses use the {success, data, error} envelope.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.errors import (
    AppError,
    AuthError,
    ConflictError,
    NotFoundError,
    ProviderConfigurationError,
    ProviderError,
)
from storefront.db.session import get_db
from storefront.models.order import Order
from storefront.schemas.payments import (
    CaptureOrderIn,
    CheckoutIn,
    CreateOrderIn,
    LicenseOut,
    OrderOut,
    OrderType,
)
from storefront.services.auth.identity import Identity, get_identity
from storefront.services.idempotency import IdempotencyStore
from storefront.services.orders.service import CaptureOutcome, CreatedOrder, OrderService
from storefront.services.payments.providers.tokenpay import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_idempotency_store() -> IdempotencyStore:
    return IdempotencyStore()


def _order_out(order: Order) -> dict[str, Any]:
    return OrderOut.model_validate(order).model_dump(mode="json")


def _created_out(created: CreatedOrder) -> dict[str, Any]:
    order = created.order
    return {
        "order_id": order.id,
        "provider": order.provider,
        "provider_order_id": order.provider_order_id,
        "redirect_url": created.redirect_url,
        "order": _order_out(order),
    }


def _capture_out(outcome: CaptureOutcome) -> dict[str, Any]:
    return {
        "order": _order_out(outcome.order),
        "already_completed": outcome.already_completed,
        "licenses": [LicenseOut.model_validate(lic).model_dump(mode="json") for lic in outcome.licenses],
    }


class _IdempotencyClaim:
    """Reserve Idempotency-Key for the caller; released again if the attempt fails."""

    def __init__(self, store: IdempotencyStore, identity: Identity, key: str | None) -> None:
        self.store = store
        self.key = f"order:{identity.user_id}:{key}" if key else None

    def __enter__(self):
        if self.key and not self.store.check_and_set(self.key):
            raise ConflictError("Duplicate request")
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None and self.key:
            self.store.release(self.key)
        return False


@router.post("/create-order")
def create_order(
    payload: CreateOrderIn,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
    store: IdempotencyStore = Depends(get_idempotency_store),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """Subscription / credits order; price comes from the catalog."""
    with _IdempotencyClaim(store, identity, idempotency_key):
        created = svc.create_order(
            identity,
            payload.type,
            payload.product_id,
            provider=payload.provider,
            currency=payload.currency,
            pay_currency=payload.pay_currency,
        )
    return {"success": True, "data": _created_out(created)}


@router.post("/checkout")
def checkout(
    payload: CheckoutIn,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
    store: IdempotencyStore = Depends(get_idempotency_store),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    with _IdempotencyClaim(store, identity, idempotency_key):
        created = svc.checkout(
            identity,
            payload.items,
            provider=payload.payment_method,
            currency=payload.currency,
            shipping_address_id=payload.shipping_address_id,
            pay_currency=payload.pay_currency,
        )
    return {"success": True, "data": _created_out(created)}


@router.post("/capture-order")
def capture_order(
    payload: CaptureOrderIn,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
):
    outcome = svc.capture_order(identity, payload.order_id, payload.provider_order_id)
    return {"success": True, "data": _capture_out(outcome)}


@router.get("/orders")
def list_orders(
    type: OrderType | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
):
    orders, total = svc.list_orders(identity, order_type=type, limit=limit, offset=offset)
    return {
        "success": True,
        "data": [_order_out(o) for o in orders],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
):
    return {"success": True, "data": _order_out(svc.get_order(identity, order_id))}


@router.post("/orders/{order_id}/capture")
def capture_order_by_id(
    order_id: str,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_order_service),
):
    outcome = svc.capture_order(identity, order_id)
    return {"success": True, "data": _capture_out(outcome)}


@router.post("/tokenpay/notify", response_class=PlainTextResponse)
def tokenpay_notify(
    payload: dict[str, Any] = Body(...),
    svc: OrderService = Depends(get_order_service),
):
    """
    TokenPay payment callback. The body only triggers a capture; the paid
    status is re-read from the gateway before anything is fulfilled.
    """
    if not settings.tokenpay_api_token:
        raise ProviderConfigurationError("TokenPay configuration missing")
    if not verify_signature(payload, settings.tokenpay_api_token):
        logger.warning("tokenpay_notify_bad_signature", extra={"provider_order_id": payload.get("Id")})
        raise AuthError("Invalid signature")

    order = None
    if payload.get("Id"):
        order = svc.get_by_provider_reference("tokenpay", str(payload["Id"]))
    if order is None:
        raise NotFoundError("Order not found")

    try:
        svc.capture(order)
    except ProviderError as e:
        logger.info(
            "tokenpay_notify_not_captured",
            extra={"order_id": order.id, "status": order.status, "error": e.message},
        )
    except AppError as e:
        logger.info("tokenpay_notify_ignored", extra={"order_id": order.id, "error": e.message})
    return "ok"
