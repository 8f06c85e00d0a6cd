from fastapi import APIRouter, Depends

from storefront.api.routes.payments import get_order_service
from storefront.db.session import get_session_factory
from storefront.services.auth.identity import require_cron_secret
from storefront.services.orders.service import OrderService
from storefront.services.reconciliation.service import ReconciliationService


router = APIRouter(prefix="/cron_job", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.get("/sync-pending")
def sync_pending(
    session_factory=Depends(get_session_factory),
    svc: OrderService = Depends(get_order_service),
):
    """Reconcile pending TokenPay orders. A sweep-level failure surfaces as 500."""
    summary = ReconciliationService(svc.db, session_factory=session_factory, order_service=svc).sync_pending()
    return {"success": True, **summary}
