"""
Admin API: categories, products, plans, credit products, orders, licenses,
subscriptions, user credits, cron logs, audit.
Every route requires an admin identity; mutations are written to audit_logs.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.models.category import Category
from storefront.models.credit_product import CreditProduct
from storefront.models.cron_job_log import CronJobLog
from storefront.models.license_key import LicenseKey
from storefront.models.order import Order
from storefront.models.plan import Plan
from storefront.models.product import Product
from storefront.models.subscription import Subscription
from storefront.models.user_credits import UserCredits
from storefront.schemas.admin import (
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    CreditProductIn,
    CreditProductOut,
    CreditProductUpdate,
    CronJobLogOut,
    LicenseIn,
    LicenseUpdate,
    OrderUpdate,
    PlanIn,
    PlanOut,
    PlanUpdate,
    ProductIn,
    ProductOut,
    ProductUpdate,
    SubscriptionOut,
    SubscriptionUpdate,
    UserCreditsOut,
    UserCreditsUpdate,
)
from storefront.schemas.payments import LicenseOut, OrderOut
from storefront.services.audit.service import AuditService
from storefront.services.auth.identity import Identity, require_admin
from storefront.services.catalog.service import CatalogAdminService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

MAX_LIMIT = 100
MAX_LOG_LIMIT = 200
SLUG_CONFLICT = "slug already exists"


def _page(rows: list, total: int, limit: int, offset: int, schema: type[BaseModel]) -> dict[str, Any]:
    return {
        "success": True,
        "data": [schema.model_validate(r).model_dump(mode="json") for r in rows],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


def _one(row, schema: type[BaseModel]) -> dict[str, Any]:
    return {"success": True, "data": schema.model_validate(row).model_dump(mode="json")}


def _audit(db: Session, admin: Identity, action: str, entity_type: str, entity_id: str | None, payload: dict | None = None) -> None:
    AuditService(db).log("admin", admin.user_id, action, entity_type, entity_id, payload)


# ---------- Categories ----------
@router.get("/categories")
def categories_list(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    parent_id: str | None = None,
    is_active: bool | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        Category,
        limit,
        offset,
        filters={"parent_id": parent_id, "is_active": is_active},
        order_by=Category.sort_order.asc(),
    )
    return _page(rows, total, limit, offset, CategoryOut)


@router.get("/categories/{category_id}")
def categories_get(category_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(Category, category_id, "Category"), CategoryOut)


@router.post("/categories", status_code=201)
def categories_create(payload: CategoryIn, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    row = CatalogAdminService(db).create(Category, payload.model_dump(), "Category", unique_message=SLUG_CONFLICT)
    _audit(db, admin, "create", "category", row.id, {"slug": row.slug})
    return _one(row, CategoryOut)


@router.put("/categories/{category_id}")
def categories_update(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(Category, category_id, changes, "Category", unique_message=SLUG_CONFLICT)
    _audit(db, admin, "update", "category", row.id, changes)
    return _one(row, CategoryOut)


@router.delete("/categories/{category_id}")
def categories_delete(category_id: str, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    CatalogAdminService(db).delete(
        Category,
        category_id,
        "Category",
        in_use_message="Cannot delete category because it has associated products",
    )
    _audit(db, admin, "delete", "category", category_id)
    return {"success": True}


# ---------- Products ----------
@router.get("/products")
def products_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    category_id: str | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        Product, limit, offset, filters={"category_id": category_id, "status": status}
    )
    return _page(rows, total, limit, offset, ProductOut)


@router.get("/products/{product_id}")
def products_get(product_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(Product, product_id, "Product"), ProductOut)


@router.post("/products", status_code=201)
def products_create(payload: ProductIn, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    row = CatalogAdminService(db).create(Product, payload.model_dump(), "Product", unique_message=SLUG_CONFLICT)
    _audit(db, admin, "create", "product", row.id, {"slug": row.slug})
    return _one(row, ProductOut)


@router.put("/products/{product_id}")
def products_update(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(Product, product_id, changes, "Product", unique_message=SLUG_CONFLICT)
    _audit(db, admin, "update", "product", row.id, changes)
    return _one(row, ProductOut)


@router.delete("/products/{product_id}")
def products_delete(product_id: str, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    CatalogAdminService(db).delete(Product, product_id, "Product")
    _audit(db, admin, "delete", "product", product_id)
    return {"success": True}


# ---------- Plans ----------
@router.get("/plans")
def plans_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    is_active: bool | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        Plan, limit, offset, filters={"is_active": is_active}, order_by=Plan.price_cents.asc()
    )
    return _page(rows, total, limit, offset, PlanOut)


@router.get("/plans/{plan_id}")
def plans_get(plan_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(Plan, plan_id, "Plan"), PlanOut)


@router.post("/plans", status_code=201)
def plans_create(payload: PlanIn, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    row = CatalogAdminService(db).create(Plan, payload.model_dump(), "Plan")
    _audit(db, admin, "create", "plan", row.id, {"price_cents": row.price_cents})
    return _one(row, PlanOut)


@router.put("/plans/{plan_id}")
def plans_update(
    plan_id: str,
    payload: PlanUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(Plan, plan_id, changes, "Plan")
    _audit(db, admin, "update", "plan", row.id, changes)
    return _one(row, PlanOut)


@router.delete("/plans/{plan_id}")
def plans_delete(plan_id: str, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    CatalogAdminService(db).delete(
        Plan, plan_id, "Plan", in_use_message="Cannot delete plan because it has subscriptions"
    )
    _audit(db, admin, "delete", "plan", plan_id)
    return {"success": True}


# ---------- Credit products ----------
@router.get("/credit-products")
def credit_products_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    is_active: bool | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        CreditProduct, limit, offset, filters={"is_active": is_active}, order_by=CreditProduct.price_cents.asc()
    )
    return _page(rows, total, limit, offset, CreditProductOut)


@router.get("/credit-products/{product_id}")
def credit_products_get(product_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(CreditProduct, product_id, "Credit product"), CreditProductOut)


@router.post("/credit-products", status_code=201)
def credit_products_create(payload: CreditProductIn, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    row = CatalogAdminService(db).create(CreditProduct, payload.model_dump(), "Credit product")
    _audit(db, admin, "create", "credit_product", row.id, {"price_cents": row.price_cents})
    return _one(row, CreditProductOut)


@router.put("/credit-products/{product_id}")
def credit_products_update(
    product_id: str,
    payload: CreditProductUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(CreditProduct, product_id, changes, "Credit product")
    _audit(db, admin, "update", "credit_product", row.id, changes)
    return _one(row, CreditProductOut)


@router.delete("/credit-products/{product_id}")
def credit_products_delete(product_id: str, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    CatalogAdminService(db).delete(
        CreditProduct,
        product_id,
        "Credit product",
        in_use_message="Cannot delete credit product because it has license keys",
    )
    _audit(db, admin, "delete", "credit_product", product_id)
    return {"success": True}


# ---------- Orders ----------
@router.get("/orders")
def orders_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    status: str | None = None,
    type: str | None = None,
    provider: str | None = None,
    user_id: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        Order,
        limit,
        offset,
        filters={"status": status, "type": type, "provider": provider, "user_id": user_id},
    )
    return _page(rows, total, limit, offset, OrderOut)


@router.get("/orders/{order_id}")
def orders_get(order_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(Order, order_id, "Order"), OrderOut)


@router.put("/orders/{order_id}")
def orders_update(
    order_id: str,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    svc = CatalogAdminService(db)
    if payload.status is None:
        return _one(svc.get(Order, order_id, "Order"), OrderOut)
    row = svc.update_order_status(order_id, payload.status)
    _audit(db, admin, "update_status", "order", row.id, {"status": payload.status})
    return _one(row, OrderOut)


# ---------- Licenses ----------
@router.get("/licenses")
def licenses_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    status: str | None = None,
    user_id: str | None = None,
    product_id: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    criteria = []
    if search:
        # key fragment or exact user id
        criteria.append(or_(LicenseKey.key_value.ilike(f"%{search}%"), LicenseKey.user_id == search))
    rows, total = CatalogAdminService(db).list(
        LicenseKey,
        limit,
        offset,
        filters={"status": status, "user_id": user_id, "product_id": product_id},
        criteria=criteria,
    )
    return _page(rows, total, limit, offset, LicenseOut)


@router.get("/licenses/{license_id}")
def licenses_get(license_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(LicenseKey, license_id, "License"), LicenseOut)


@router.post("/licenses", status_code=201)
def licenses_create(payload: LicenseIn, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    row = CatalogAdminService(db).create(
        LicenseKey, payload.model_dump(), "License", unique_message="License key already exists"
    )
    _audit(db, admin, "create", "license", row.id, {"user_id": row.user_id})
    return _one(row, LicenseOut)


@router.put("/licenses/{license_id}")
def licenses_update(
    license_id: str,
    payload: LicenseUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(LicenseKey, license_id, changes, "License")
    _audit(db, admin, "update", "license", row.id, changes)
    return _one(row, LicenseOut)


@router.delete("/licenses/{license_id}")
def licenses_delete(license_id: str, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    CatalogAdminService(db).delete(LicenseKey, license_id, "License")
    _audit(db, admin, "delete", "license", license_id)
    return {"success": True}


# ---------- Subscriptions ----------
@router.get("/subscriptions")
def subscriptions_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    status: str | None = None,
    plan_id: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        Subscription, limit, offset, filters={"status": status, "plan_id": plan_id}
    )
    return _page(rows, total, limit, offset, SubscriptionOut)


@router.get("/subscriptions/{subscription_id}")
def subscriptions_get(subscription_id: str, db: Session = Depends(get_db)):
    return _one(CatalogAdminService(db).get(Subscription, subscription_id, "Subscription"), SubscriptionOut)


@router.put("/subscriptions/{subscription_id}")
def subscriptions_update(
    subscription_id: str,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    row = CatalogAdminService(db).update(Subscription, subscription_id, changes, "Subscription")
    _audit(db, admin, "update", "subscription", row.id, changes)
    return _one(row, SubscriptionOut)


# ---------- User credits ----------
@router.get("/user-credits")
def user_credits_list(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    user_id: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LIMIT)
    rows, total = CatalogAdminService(db).list(
        UserCredits, limit, offset, filters={"user_id": user_id}, order_by=UserCredits.updated_at.desc()
    )
    return _page(rows, total, limit, offset, UserCreditsOut)


@router.put("/user-credits/{credits_id}")
def user_credits_update(
    credits_id: str,
    payload: UserCreditsUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    svc = CatalogAdminService(db)
    before = svc.get(UserCredits, credits_id, "User credits").balance
    row = svc.update(UserCredits, credits_id, {"balance": payload.balance}, "User credits")
    _audit(db, admin, "set_balance", "user_credits", row.id, {"user_id": row.user_id, "before": before, "after": row.balance})
    return _one(row, UserCreditsOut)


# ---------- Logs ----------
@router.get("/logs")
def cron_logs_list(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    job_name: str | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LOG_LIMIT)
    rows, total = CatalogAdminService(db).list(
        CronJobLog, limit, offset, filters={"job_name": job_name, "status": status}
    )
    return _page(rows, total, limit, offset, CronJobLogOut)


@router.get("/audit")
def audit_list(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    entity_type: str | None = None,
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_LOG_LIMIT)
    rows, total = AuditService(db).list(limit, offset, entity_type=entity_type)
    return {
        "success": True,
        "data": [
            {
                "id": r.id,
                "actor_type": r.actor_type,
                "actor_id": r.actor_id,
                "action": r.action,
                "entity_type": r.entity_type,
                "entity_id": r.entity_id,
                "payload": r.payload,
                "created_at": r.created_at,
            }
            for r in rows
        ],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }
