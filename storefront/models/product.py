from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text

from storefront.db.base import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    # RESTRICT: a category with products cannot be deleted
    category_id = Column(String, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    thumbnail = Column(String, nullable=True)
    price_cents = Column(Integer, nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="draft")
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
