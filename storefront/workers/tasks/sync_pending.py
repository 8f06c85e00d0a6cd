"""
Celery beat task: reconcile pending crypto orders (same sweep as GET /cron_job/sync-pending).
"""
import logging

from storefront.core.celery_app import celery_app
from storefront.db.session import SessionLocal
from storefront.services.reconciliation.service import ReconciliationService

logger = logging.getLogger(__name__)


@celery_app.task(
    name="storefront.workers.tasks.sync_pending.sync_pending_orders",
    time_limit=300,
    soft_time_limit=280,
)
def sync_pending_orders() -> dict:
    db = SessionLocal()
    try:
        summary = ReconciliationService(db, session_factory=SessionLocal).sync_pending()
        return {"ok": True, "processed": summary["processed"], "results": summary["results"]}
    except Exception:
        db.rollback()
        logger.exception("sync_pending_orders_failed")
        raise
    finally:
        db.close()
