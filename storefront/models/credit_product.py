"""
CreditProduct: credit packs and license products sold through /payments/create-order.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from storefront.db.base import Base


class CreditProduct(Base):
    __tablename__ = "credit_products"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    credits_amount = Column(Integer, nullable=False, default=0)
    price_cents = Column(Integer, nullable=False)
    duration_days = Column(Integer, nullable=True)  # license validity; null = lifetime
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
