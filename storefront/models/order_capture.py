"""
OrderCapture: durable record of a confirmed provider capture.
Written before fulfillment; applied_at is set in the same transaction that
grants the entitlement, so an unapplied row means "paid but not yet fulfilled".
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String

from storefront.db.base import Base


class OrderCapture(Base):
    __tablename__ = "order_captures"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, ForeignKey("orders.id"), unique=True, nullable=False)
    provider = Column(String, nullable=False)
    provider_order_id = Column(String, nullable=False)
    provider_status = Column(String, nullable=False)
    captured_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    applied_at = Column(DateTime(timezone=True), nullable=True)
