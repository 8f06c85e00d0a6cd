"""
FulfillmentService: grants the entitlement an order paid for.

Handlers only stage changes on the session; the caller (OrderService.apply)
commits them together with the order's completed status.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.errors import NotFoundError, ValidationError
from storefront.db.gateway import Gateway
from storefront.models.credit_product import CreditProduct
from storefront.models.order import Order
from storefront.models.plan import Plan
from storefront.models.subscription import Subscription
from storefront.models.user_credits import UserCredits

logger = logging.getLogger(__name__)


class FulfillmentService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.scope = Gateway(db).as_system()

    def fulfill(self, order: Order) -> None:
        handler = {
            "credits": self.fulfill_credits,
            "subscription": self.fulfill_subscription,
            "product": self.fulfill_product,
        }.get(order.type)
        if handler is None:
            raise ValidationError(f"Unsupported order type: {order.type}")
        handler(order)

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    def fulfill_credits(self, order: Order) -> None:
        product = self.scope.get(CreditProduct, order.product_id)
        if product is None:
            raise NotFoundError("Product not found")
        self.add_credits(order.user_id, product.credits_amount)
        logger.info(
            "credits_granted",
            extra={"order_id": order.id, "user_id": order.user_id, "credits": product.credits_amount},
        )

    def add_credits(self, user_id: str, delta: int) -> None:
        """Atomic increment; concurrent grants for one user never lose an update."""
        if self._increment(user_id, delta):
            return
        try:
            with self.db.begin_nested():
                self.db.add(UserCredits(user_id=user_id, balance=delta))
                self.db.flush()
        except IntegrityError:
            # another transaction created the row first
            if not self._increment(user_id, delta):
                raise

    def _increment(self, user_id: str, delta: int) -> bool:
        result = self.db.execute(
            update(UserCredits)
            .where(UserCredits.user_id == user_id)
            .values(
                balance=UserCredits.balance + delta,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def fulfill_subscription(self, order: Order) -> None:
        plan = self.scope.get(Plan, order.product_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        if plan.price_cents != order.amount_cents:
            logger.warning(
                "subscription_amount_mismatch",
                extra={"order_id": order.id, "amount_cents": order.amount_cents},
            )
            raise ValidationError("Amount mismatch")
        if plan.interval != "month":
            logger.warning(
                "subscription_interval_not_monthly",
                extra={"order_id": order.id, "type": plan.interval},
            )

        period_end = datetime.now(timezone.utc) + timedelta(days=settings.subscription_period_days)
        sub = (
            self.scope.query(Subscription)
            .filter(Subscription.user_id == order.user_id)
            .with_for_update()
            .one_or_none()
        )
        if sub is None:
            sub = Subscription(user_id=order.user_id)
            self.db.add(sub)
        sub.plan_id = plan.id
        sub.status = "active"
        sub.current_period_end = period_end
        self.db.flush()
        logger.info(
            "subscription_activated",
            extra={"order_id": order.id, "user_id": order.user_id},
        )

    # ------------------------------------------------------------------
    # Product
    # ------------------------------------------------------------------

    def fulfill_product(self, order: Order) -> None:
        # Items were written at checkout; stock is not decremented
        logger.info("product_order_fulfilled", extra={"order_id": order.id, "user_id": order.user_id})
