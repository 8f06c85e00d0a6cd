from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from storefront.db.base import Base


class LicenseKey(Base):
    __tablename__ = "license_keys"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    product_id = Column(String, ForeignKey("credit_products.id"), nullable=True)
    key_value = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="active")
    expires_at = Column(DateTime(timezone=True), nullable=True)  # null = lifetime
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    product = relationship("CreditProduct")
