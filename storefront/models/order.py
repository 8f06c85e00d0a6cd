"""
Order model: one row per checkout attempt against a payment provider.
provider_order_id is the gateway's reference (PayPal order id / TokenPay Id).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db.base import Base, JSONType


TERMINAL_STATUSES = ("completed", "failed", "cancelled")
# Status only moves forward: pending -> processing -> terminal
STATUS_TRANSITIONS = {
    "pending": ("processing",) + TERMINAL_STATUSES,
    "processing": TERMINAL_STATUSES,
}


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (CheckConstraint("amount_cents >= 0", name="ck_orders_amount_non_negative"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)                       # subscription / credits / product / license
    provider = Column(String, nullable=False, default="paypal")
    provider_order_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    product_id = Column(String, nullable=True)
    product_type = Column(String, nullable=True)
    product_name = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes; see OrderMetadata in schemas
    meta = Column("metadata", JSONType, nullable=False, default=dict)
    shipping_address_id = Column(String, ForeignKey("shipping_addresses.id"), nullable=True)
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
    completed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=False)       # snapshot at checkout
    product_thumbnail = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    total_price_cents = Column(Integer, nullable=False)  # quantity * unit_price_cents
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    order = relationship("Order", back_populates="items")
