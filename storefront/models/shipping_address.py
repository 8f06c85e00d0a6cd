from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String

from storefront.db.base import Base


class ShippingAddress(Base):
    __tablename__ = "shipping_addresses"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    recipient = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    line1 = Column(String, nullable=False)
    line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    region = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String(2), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
