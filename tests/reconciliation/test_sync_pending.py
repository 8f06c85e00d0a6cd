"""Tests for ReconciliationService.sync_pending: expiry, capture, per-order errors, cron logs."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest

from storefront.models.cron_job_log import CronJobLog
from storefront.models.order import Order
from storefront.models.order_capture import OrderCapture
from storefront.models.user_credits import UserCredits
from storefront.schemas.payments import OrderMetadata, TokenPayMetadata
from storefront.services.orders.service import OrderService
from storefront.services.payments.providers.tokenpay import TokenPayProvider
from storefront.services.reconciliation.service import ReconciliationService


BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _tokenpay_order(make_order, expire_time, created_offset=0, **kwargs):
    provider_order_id = kwargs.pop("provider_order_id", f"TP-{created_offset}")
    meta = OrderMetadata(
        provider_data=TokenPayMetadata(Id=provider_order_id, ToAddress="0xabc", ExpireTime=expire_time),
        pay_currency="EVM_BSC_USDT_BEP20",
    )
    return make_order(
        provider="tokenpay",
        provider_order_id=provider_order_id,
        meta=meta.to_column(),
        created_at=BASE + timedelta(minutes=created_offset),
        **kwargs,
    )


def _service(db, session_factory, providers):
    return ReconciliationService(db, session_factory=session_factory, order_service=OrderService(db, providers=providers))


def test_expired_and_pending_orders(db, session_factory, providers, make_order):
    providers["tokenpay"].capture_status = "pending"
    now = datetime.now(timezone.utc)
    expired = _tokenpay_order(make_order, now - timedelta(minutes=5), created_offset=0)
    waiting = _tokenpay_order(make_order, now + timedelta(minutes=30), created_offset=1)

    summary = _service(db, session_factory, providers).sync_pending()

    assert summary["processed"] == 2
    assert summary["results"] == [
        {"orderId": expired.id, "status": "failed", "message": "Expired"},
        {"orderId": waiting.id, "status": "pending", "message": "Payment not completed: pending"},
    ]
    db.expire_all()
    stored_expired = db.query(Order).filter(Order.id == expired.id).one()
    assert stored_expired.status == "failed"
    assert stored_expired.meta["failure_reason"] == "Order expired"
    assert db.query(Order).filter(Order.id == waiting.id).one().status == "pending"
    # expired order is never sent to the gateway
    assert providers["tokenpay"].captured == [waiting.provider_order_id]


def test_paid_order_completed_and_credited(db, session_factory, providers, make_order, make_credit_product):
    product = make_credit_product(credits_amount=75)
    order = _tokenpay_order(
        make_order, datetime.now(timezone.utc) + timedelta(minutes=30), product_id=product.id
    )

    summary = _service(db, session_factory, providers).sync_pending()

    assert summary["results"] == [{"orderId": order.id, "status": "completed"}]
    db.expire_all()
    assert db.query(UserCredits).filter(UserCredits.user_id == "user-1").one().balance == 75


def test_paypal_and_non_pending_orders_ignored(db, session_factory, providers, make_order):
    make_order(provider="paypal")
    _tokenpay_order(make_order, datetime.now(timezone.utc) + timedelta(minutes=30), status="completed")

    summary = _service(db, session_factory, providers).sync_pending()

    assert summary["processed"] == 0
    assert providers["tokenpay"].captured == []


def test_gateway_outage_leaves_orders_pending(db, session_factory, make_order):
    def unreachable(request):
        raise httpx.ConnectError("gateway unreachable", request=request)

    tokenpay = TokenPayProvider(
        {"api_url": "https://tokenpay.example", "api_token": "tp-secret", "app_url": "https://shop.example.com"},
        transport=httpx.MockTransport(unreachable),
    )
    order = _tokenpay_order(make_order, datetime.now(timezone.utc) + timedelta(minutes=30))
    service = ReconciliationService(
        db, session_factory=session_factory, order_service=OrderService(db, providers={"tokenpay": tokenpay})
    )

    summary = service.sync_pending()

    assert summary["results"] == [{"orderId": order.id, "status": "pending", "message": "gateway unreachable"}]
    db.expire_all()
    assert db.query(Order).filter(Order.id == order.id).one().status == "pending"


def test_error_on_one_order_does_not_stop_sweep(db, session_factory, providers, make_order):
    future = datetime.now(timezone.utc) + timedelta(minutes=30)
    broken = _tokenpay_order(make_order, future, created_offset=0, provider_order_id="TP-BROKEN")
    fine = _tokenpay_order(make_order, future, created_offset=1, provider_order_id="TP-FINE")
    providers["tokenpay"].capture_status = "pending"
    original = providers["tokenpay"].capture_order

    def flaky(provider_order_id):
        if provider_order_id == "TP-BROKEN":
            raise RuntimeError("socket closed")
        return original(provider_order_id)

    with patch.object(providers["tokenpay"], "capture_order", side_effect=flaky):
        summary = _service(db, session_factory, providers).sync_pending()

    statuses = {r["orderId"]: r["status"] for r in summary["results"]}
    assert statuses == {broken.id: "error", fine.id: "pending"}
    db.expire_all()
    assert db.query(Order).filter(Order.id == broken.id).one().status == "pending"


def test_unapplied_capture_recovered(db, session_factory, providers, make_order, make_credit_product):
    product = make_credit_product(credits_amount=5)
    order = make_order(provider="tokenpay", status="processing", product_id=product.id)
    db.add(OrderCapture(order_id=order.id, provider="tokenpay", provider_order_id=order.provider_order_id, provider_status="Paid"))
    db.commit()

    summary = _service(db, session_factory, providers).sync_pending()

    assert summary["recovered"] == [{"orderId": order.id, "status": "completed"}]
    assert providers["tokenpay"].captured == []


def test_expired_order_with_recorded_capture_is_recovered(db, session_factory, providers, make_order, make_credit_product):
    product = make_credit_product(credits_amount=5)
    order = _tokenpay_order(
        make_order, datetime.now(timezone.utc) - timedelta(hours=1), status="processing", product_id=product.id
    )
    db.add(OrderCapture(order_id=order.id, provider="tokenpay", provider_order_id=order.provider_order_id, provider_status="Paid"))
    db.commit()

    summary = _service(db, session_factory, providers).sync_pending()

    assert summary["recovered"] == [{"orderId": order.id, "status": "completed"}]
    db.expire_all()
    assert db.query(UserCredits).filter(UserCredits.user_id == "user-1").one().balance == 5


def test_cron_log_start_and_success(db, session_factory, providers):
    _service(db, session_factory, providers).sync_pending()

    db.expire_all()
    logs = db.query(CronJobLog).all()
    assert sorted(log.status for log in logs) == ["started", "success"]
    success = next(log for log in logs if log.status == "success")
    assert success.job_name == "sync-pending-orders"
    assert success.details["processed"] == 0
    assert success.duration_ms is not None


def test_sweep_failure_logged_and_raised(db, session_factory, providers):
    svc = _service(db, session_factory, providers)

    with patch.object(svc, "_pending_orders", side_effect=RuntimeError("database gone")):
        with pytest.raises(RuntimeError):
            svc.sync_pending()

    db.expire_all()
    statuses = [log.status for log in db.query(CronJobLog).all()]
    assert "failed" in statuses
    assert "success" not in statuses
