"""
OrderService: payment order lifecycle: create → redirect → capture → fulfillment.

Invariants:
- An Order row is written only after the provider accepted the order.
- amount_cents / currency are read from the stored order, never from the caller.
- Status moves pending → processing → completed|failed|cancelled; nothing
  leaves completed or failed.
- A confirmed provider capture is recorded in order_captures before
  fulfillment; an unapplied capture is re-applied without calling the
  provider again.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.errors import NotFoundError, ProviderError, ValidationError
from storefront.db.gateway import Gateway
from storefront.models.credit_product import CreditProduct
from storefront.models.license_key import LicenseKey
from storefront.models.order import Order, OrderItem
from storefront.models.order_capture import OrderCapture
from storefront.models.plan import Plan
from storefront.models.product import Product
from storefront.models.shipping_address import ShippingAddress
from storefront.schemas.payments import CartItemIn, CartSnapshotItem, OrderMetadata
from storefront.services.auth.identity import Identity
from storefront.services.fulfillment.service import FulfillmentService
from storefront.services.payments.base import PaymentProvider, ProviderOrderRequest
from storefront.services.payments.factory import PaymentProviderFactory
from storefront.services.payments.providers.tokenpay import SUPPORTED_CURRENCIES
from storefront.utils.metrics import order_captures_total, orders_created_total

logger = logging.getLogger(__name__)


@dataclass
class CreatedOrder:
    order: Order
    redirect_url: str | None = None


@dataclass
class CaptureOutcome:
    order: Order
    already_completed: bool = False
    licenses: list[LicenseKey] = field(default_factory=list)


class OrderService:
    def __init__(
        self,
        db: Session,
        providers: dict[str, PaymentProvider] | None = None,
        fulfillment: FulfillmentService | None = None,
    ) -> None:
        self.db = db
        self.gateway = Gateway(db)
        self._providers = dict(providers or {})
        self.fulfillment = fulfillment or FulfillmentService(db)

    def provider(self, name: str) -> PaymentProvider:
        """Adapter by name; built lazily from settings unless injected."""
        if name not in self._providers:
            self._providers[name] = PaymentProviderFactory.create_from_settings(name)
        return self._providers[name]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order(
        self,
        identity: Identity,
        order_type: str,
        product_id: str,
        provider: str = "paypal",
        currency: str | None = None,
        pay_currency: str | None = None,
    ) -> CreatedOrder:
        """Subscription / credits order priced from the catalog."""
        catalog = self.gateway.as_system()
        if order_type == "subscription":
            item = catalog.query(Plan).filter(Plan.id == product_id, Plan.is_active.is_(True)).one_or_none()
        elif order_type == "credits":
            item = (
                catalog.query(CreditProduct)
                .filter(CreditProduct.id == product_id, CreditProduct.is_active.is_(True))
                .one_or_none()
            )
        else:
            raise ValidationError(f"Invalid order type: {order_type}")
        if item is None:
            raise NotFoundError("Product not found")

        return self._open_order(
            identity,
            order_type=order_type,
            provider=provider,
            amount_cents=item.price_cents,
            currency=currency or settings.default_currency,
            pay_currency=self._pay_currency(provider, pay_currency),
            product_id=item.id,
            product_type=order_type,
            product_name=item.name,
        )

    def checkout(
        self,
        identity: Identity,
        items: list[CartItemIn],
        provider: str = "paypal",
        currency: str | None = None,
        shipping_address_id: str | None = None,
        pay_currency: str | None = None,
    ) -> CreatedOrder:
        """Cart checkout. Nothing is written unless every line passes validation."""
        if not items:
            raise ValidationError("Cart is empty")

        first = items[0]
        if first.type in ("subscription", "credits"):
            if len(items) != 1:
                raise ValidationError("Subscription and credit purchases must be checked out alone")
            return self.create_order(
                identity,
                first.type,
                first.id,
                provider=provider,
                currency=currency,
                pay_currency=pay_currency,
            )

        if any(line.type != "product" for line in items):
            raise ValidationError("Subscription and credit purchases must be checked out alone")

        if shipping_address_id:
            address = self.gateway.as_caller(identity).get(ShippingAddress, shipping_address_id)
            if address is None:
                raise NotFoundError("Shipping address not found")

        catalog = self.gateway.as_system()
        lines: list[tuple[CartItemIn, Product]] = []
        for line in items:
            product = (
                catalog.query(Product)
                .filter(Product.id == line.id, Product.status == "published")
                .one_or_none()
            )
            if product is None:
                raise NotFoundError("Product not found")
            if product.stock_quantity < line.quantity:
                raise ValidationError(f"Insufficient stock for {product.name}")
            lines.append((line, product))

        amount_cents = sum(line.price_cents * line.quantity for line, _ in lines)
        if len(lines) == 1:
            product_id, product_name = lines[0][1].id, lines[0][1].name
        else:
            product_id, product_name = None, f"{len(lines)} items"

        return self._open_order(
            identity,
            order_type="product",
            provider=provider,
            amount_cents=amount_cents,
            currency=currency or settings.default_currency,
            pay_currency=self._pay_currency(provider, pay_currency),
            product_id=product_id,
            product_type="product",
            product_name=product_name,
            shipping_address_id=shipping_address_id,
            lines=lines,
        )

    @staticmethod
    def _pay_currency(provider: str, pay_currency: str | None) -> str | None:
        if provider != "tokenpay":
            return None
        if pay_currency is None:
            return settings.tokenpay_default_currency
        if pay_currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"Unsupported pay currency: {pay_currency}")
        return pay_currency

    def _open_order(
        self,
        identity: Identity,
        order_type: str,
        provider: str,
        amount_cents: int,
        currency: str,
        pay_currency: str | None,
        product_id: str | None,
        product_type: str | None,
        product_name: str | None,
        shipping_address_id: str | None = None,
        lines: list[tuple[CartItemIn, Product]] | None = None,
    ) -> CreatedOrder:
        lines = lines or []
        adapter = self.provider(provider)
        order_id = str(uuid4())

        result = adapter.create_order(
            ProviderOrderRequest(
                order_id=order_id,
                user_id=identity.user_id,
                amount_cents=amount_cents,
                currency=currency,
                type=order_type,
                description=product_name or "",
                pay_currency=pay_currency,
            )
        )
        if not result.success:
            logger.warning(
                "order_provider_create_failed",
                extra={"user_id": identity.user_id, "provider": provider, "error": result.error},
            )
            raise ProviderError(result.error or "Failed to create payment order")

        meta = OrderMetadata(
            provider_data=result.metadata,
            cart_items=[
                CartSnapshotItem(
                    id=line.id,
                    name=product.name,
                    price_cents=line.price_cents,
                    quantity=line.quantity,
                    type=line.type,
                )
                for line, product in lines
            ],
            pay_currency=pay_currency,
        )
        order = Order(
            id=order_id,
            user_id=identity.user_id,
            type=order_type,
            provider=provider,
            provider_order_id=result.provider_order_id,
            status="pending",
            amount_cents=amount_cents,
            currency=currency,
            product_id=product_id,
            product_type=product_type,
            product_name=product_name,
            meta=meta.to_column(),
            shipping_address_id=shipping_address_id,
        )
        for line, product in lines:
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_thumbnail=line.thumbnail or product.thumbnail,
                    quantity=line.quantity,
                    unit_price_cents=line.price_cents,
                    total_price_cents=line.price_cents * line.quantity,
                )
            )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)

        orders_created_total.labels(type=order_type, provider=provider).inc()
        logger.info(
            "order_created",
            extra={
                "order_id": order.id,
                "user_id": identity.user_id,
                "provider": provider,
                "provider_order_id": order.provider_order_id,
                "type": order_type,
                "amount_cents": amount_cents,
            },
        )
        return CreatedOrder(order=order, redirect_url=result.redirect_url)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_order(
        self,
        identity: Identity,
        order_id: str,
        provider_order_id: str | None = None,
    ) -> CaptureOutcome:
        """Caller-initiated capture of one of the caller's own orders."""
        order = self.gateway.as_caller(identity).get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if provider_order_id is not None and order.provider_order_id != provider_order_id:
            raise ValidationError("Provider order id does not match")

        outcome = self.capture(order)
        outcome.licenses = self.licenses_for(identity, outcome.order)
        return outcome

    def capture(self, order: Order) -> CaptureOutcome:
        """System capture path, shared by user capture, notify callback and reconciliation.

        The order is re-read under a row lock, so concurrent captures of the
        same order (double submit, notify racing the buyer) serialize and the
        later one sees the earlier one's result.
        """
        order = self._locked(order.id)
        if order.status == "completed":
            self.db.rollback()
            order_captures_total.labels(provider=order.provider, outcome="already_completed").inc()
            return CaptureOutcome(order=order, already_completed=True)
        if order.status in ("failed", "cancelled"):
            self.db.rollback()
            raise ValidationError(f"Order is in {order.status} state")
        if not order.provider_order_id:
            self.db.rollback()
            raise ValidationError("Order has no provider reference")

        capture = self._capture_record(order.id)
        if capture is not None and capture.applied_at is None:
            logger.info("order_capture_reapply", extra={"order_id": order.id})
            return self.apply(order, capture)

        result = self.provider(order.provider).capture_order(order.provider_order_id)

        if result.status == "completed":
            capture = OrderCapture(
                order_id=order.id,
                provider=order.provider,
                provider_order_id=order.provider_order_id,
                provider_status=result.raw_status or result.status,
            )
            self.db.add(capture)
            order.status = "processing"
            try:
                self.db.commit()
            except IntegrityError:
                # another request recorded the capture first
                self.db.rollback()
                logger.info("order_capture_concurrent", extra={"order_id": order.id})
                capture = self._capture_record(order.id)
                if capture is None:
                    raise
            return self.apply(order, capture)

        if result.status in ("pending", "processing"):
            self.db.rollback()
            order_captures_total.labels(provider=order.provider, outcome="pending").inc()
            logger.info(
                "order_capture_not_completed",
                extra={"order_id": order.id, "provider": order.provider, "status": result.status},
            )
            raise ProviderError(f"Payment not completed: {result.status}")

        if result.status == "error":
            self.db.rollback()
            order_captures_total.labels(provider=order.provider, outcome="error").inc()
            logger.warning(
                "order_capture_provider_unavailable",
                extra={"order_id": order.id, "provider": order.provider, "error": result.error},
            )
            raise ProviderError(result.error or "Payment provider unavailable")

        order.status = "failed"
        self.db.commit()
        order_captures_total.labels(provider=order.provider, outcome="failed").inc()
        logger.warning(
            "order_capture_failed",
            extra={
                "order_id": order.id,
                "provider": order.provider,
                "status": result.raw_status,
                "error": result.error,
            },
        )
        raise ProviderError(result.error or "Payment capture failed")

    def apply(self, order: Order, capture: OrderCapture) -> CaptureOutcome:
        """Fulfill and complete in one transaction, at most once per capture."""
        order = self._locked(order.id)
        capture = self._capture_record(order.id) or capture
        if order.status == "completed" or capture.applied_at is not None:
            self.db.rollback()
            order_captures_total.labels(provider=order.provider, outcome="already_completed").inc()
            return CaptureOutcome(order=order, already_completed=True)
        try:
            self.fulfillment.fulfill(order)
            now = datetime.now(timezone.utc)
            order.status = "completed"
            order.completed_at = now
            capture.applied_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("order_fulfillment_failed", extra={"order_id": order.id, "type": order.type})
            raise
        self.db.refresh(order)
        order_captures_total.labels(provider=order.provider, outcome="completed").inc()
        logger.info(
            "order_completed",
            extra={"order_id": order.id, "user_id": order.user_id, "provider": order.provider},
        )
        return CaptureOutcome(order=order)

    def _locked(self, order_id: str) -> Order:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .populate_existing()
            .with_for_update()
            .one()
        )

    def _capture_record(self, order_id: str) -> OrderCapture | None:
        return (
            self.db.query(OrderCapture)
            .filter(OrderCapture.order_id == order_id)
            .populate_existing()
            .one_or_none()
        )

    def licenses_for(self, identity: Identity, order: Order) -> list[LicenseKey]:
        if not order.product_id:
            return []
        return (
            self.gateway.as_caller(identity)
            .query(LicenseKey)
            .filter(LicenseKey.product_id == order.product_id, LicenseKey.status == "active")
            .order_by(LicenseKey.created_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_orders(
        self,
        identity: Identity,
        order_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Order], int]:
        q = self.gateway.as_caller(identity).query(Order)
        if order_type:
            q = q.filter(Order.type == order_type)
        total = q.count()
        orders = q.order_by(Order.created_at.desc()).offset(offset).limit(limit).all()
        return orders, total

    def get_order(self, identity: Identity, order_id: str) -> Order:
        order = self.gateway.as_caller(identity).get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_by_provider_reference(self, provider: str, provider_order_id: str) -> Order | None:
        return (
            self.gateway.as_system()
            .query(Order)
            .filter(Order.provider == provider, Order.provider_order_id == provider_order_id)
            .one_or_none()
        )
