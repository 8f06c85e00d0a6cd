"""
CatalogAdminService: back-office CRUD over catalog and account tables.

Constraint violations are mapped to ConflictError with a resource-specific
message; everything else propagates.
"""
import logging
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from storefront.core.errors import ConflictError, NotFoundError, ValidationError, integrity_kind
from storefront.db.gateway import Gateway
from storefront.models.order import STATUS_TRANSITIONS, Order

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class CatalogAdminService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.scope = Gateway(db).as_system()

    def list(
        self,
        model: type[ModelT],
        limit: int,
        offset: int,
        filters: dict[str, Any] | None = None,
        order_by=None,
        criteria: list | None = None,
    ) -> tuple[list[ModelT], int]:
        """filters are equality matches (None skipped); criteria are extra SQL expressions."""
        q: Query = self.scope.query(model)
        for name, value in (filters or {}).items():
            if value is not None:
                q = q.filter(getattr(model, name) == value)
        for criterion in criteria or []:
            q = q.filter(criterion)
        total = q.count()
        q = q.order_by(order_by if order_by is not None else model.created_at.desc())
        return q.offset(offset).limit(limit).all(), total

    def get(self, model: type[ModelT], entity_id: str, label: str) -> ModelT:
        row = self.scope.get(model, entity_id)
        if row is None:
            raise NotFoundError(f"{label} not found")
        return row

    def create(
        self, model: type[ModelT], data: dict[str, Any], label: str, unique_message: str | None = None
    ) -> ModelT:
        row = model(**data)
        self.db.add(row)
        self._commit(label, unique_message=unique_message)
        self.db.refresh(row)
        return row

    def update(
        self,
        model: type[ModelT],
        entity_id: str,
        changes: dict[str, Any],
        label: str,
        unique_message: str | None = None,
    ) -> ModelT:
        row = self.get(model, entity_id, label)
        for name, value in changes.items():
            setattr(row, name, value)
        self._commit(label, unique_message=unique_message)
        self.db.refresh(row)
        return row

    def delete(self, model: type[ModelT], entity_id: str, label: str, in_use_message: str | None = None) -> None:
        row = self.get(model, entity_id, label)
        self.db.delete(row)
        self._commit(label, in_use_message=in_use_message)

    def _commit(self, label: str, unique_message: str | None = None, in_use_message: str | None = None) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            kind = integrity_kind(e)
            logger.info("admin_integrity_conflict", extra={"type": label, "error": kind})
            if kind == "unique":
                raise ConflictError(unique_message or f"{label} already exists")
            if kind == "foreign_key":
                raise ConflictError(in_use_message or f"{label} references a missing or in-use record")
            raise

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def update_order_status(self, order_id: str, status: str) -> Order:
        """Admin status override. Orders only move forward; terminal orders stay where they are."""
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .populate_existing()
            .with_for_update()
            .one_or_none()
        )
        if order is None:
            raise NotFoundError("Order not found")
        if status == order.status:
            self.db.rollback()
            return order
        if order.is_terminal:
            self.db.rollback()
            raise ValidationError(f"Order is in {order.status} state")
        if status not in STATUS_TRANSITIONS.get(order.status, ()):
            current = order.status
            self.db.rollback()
            raise ValidationError(f"Cannot move order from {current} to {status}")
        order.status = status
        if status == "completed" and order.completed_at is None:
            order.completed_at = datetime.now(timezone.utc)
        self._commit("Order")
        self.db.refresh(order)
        logger.info("admin_order_status_updated", extra={"order_id": order.id, "status": status})
        return order
