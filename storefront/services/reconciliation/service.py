"""
ReconciliationService: sweep of pending TokenPay orders.

Crypto payments settle without the buyer coming back to the site, so pending
orders are re-captured on a schedule. Expired orders are failed without a
provider call. Each order is handled independently: an error on one order is
recorded in the results and the sweep continues.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm import Session

from storefront.core.errors import ProviderError
from storefront.models.order import Order
from storefront.models.order_capture import OrderCapture
from storefront.schemas.payments import OrderMetadata, TokenPayMetadata
from storefront.services.cron.logger import CronLogger
from storefront.services.orders.service import OrderService
from storefront.utils.currency import ensure_aware
from storefront.utils.metrics import reconciliation_results_total

logger = logging.getLogger(__name__)

JOB_NAME = "sync-pending-orders"


class ReconciliationService:
    def __init__(
        self,
        db: Session,
        session_factory: Callable[[], Session],
        order_service: OrderService | None = None,
    ) -> None:
        self.db = db
        self.orders = order_service or OrderService(db)
        self.cron = CronLogger(JOB_NAME, session_factory)

    def sync_pending(self) -> dict[str, Any]:
        self.cron.start()
        try:
            results = [self._sync_one(order) for order in self._pending_orders()]
            recovered = self._recover_unapplied()
        except Exception as e:
            self.db.rollback()
            self.cron.failure(e)
            raise

        summary = {"processed": len(results), "results": results, "recovered": recovered}
        self.cron.success(details=summary)
        logger.info(
            "reconciliation_done",
            extra={"job_name": JOB_NAME, "processed": len(results)},
        )
        return summary

    def _pending_orders(self) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.provider == "tokenpay", Order.status == "pending")
            .order_by(Order.created_at.asc())
            .all()
        )

    def _sync_one(self, order: Order) -> dict[str, Any]:
        order_id = order.id
        try:
            if order.status == "pending" and self._is_expired(order):
                return self._expire(order_id)

            outcome = self.orders.capture(order)
            return self._result(order_id, outcome.order.status)
        except ProviderError as e:
            self.db.refresh(order)
            return self._result(order_id, order.status, e.message)
        except Exception as e:
            self.db.rollback()
            logger.exception("pending_order_sync_failed", extra={"order_id": order_id})
            return self._result(order_id, "error", str(e))

    def _expire(self, order_id: str) -> dict[str, Any]:
        # re-read under lock; a notify callback may have captured it meanwhile
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .populate_existing()
            .with_for_update()
            .one()
        )
        if order.status != "pending":
            status = order.status
            self.db.rollback()
            return self._result(order_id, status)
        meta = OrderMetadata.model_validate(order.meta or {})
        meta.failure_reason = "Order expired"
        order.meta = meta.to_column()
        order.status = "failed"
        self.db.commit()
        logger.info("pending_order_expired", extra={"order_id": order_id})
        return self._result(order_id, "failed", "Expired")

    @staticmethod
    def _is_expired(order: Order) -> bool:
        meta = OrderMetadata.model_validate(order.meta or {})
        data = meta.provider_data
        if not isinstance(data, TokenPayMetadata) or data.expire_time is None:
            return False
        return ensure_aware(data.expire_time) < datetime.now(timezone.utc)

    def _recover_unapplied(self) -> list[dict[str, Any]]:
        """Processing orders whose capture was recorded but never applied."""
        rows = (
            self.db.query(Order)
            .join(OrderCapture, OrderCapture.order_id == Order.id)
            .filter(Order.status == "processing", OrderCapture.applied_at.is_(None))
            .order_by(Order.created_at.asc())
            .all()
        )
        return [self._sync_one(order) for order in rows]

    @staticmethod
    def _result(order_id: str, status: str, message: str | None = None) -> dict[str, Any]:
        reconciliation_results_total.labels(status=status).inc()
        result: dict[str, Any] = {"orderId": order_id, "status": status}
        if message:
            result["message"] = message
        return result
