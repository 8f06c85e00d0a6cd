"""
LicenseService: public key verification and the caller's licenses.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationError
from storefront.db.gateway import Gateway
from storefront.models.license_key import LicenseKey
from storefront.services.auth.identity import Identity
from storefront.utils.currency import ensure_aware

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    valid: bool
    license: LicenseKey
    status: str
    error: str | None = None


class LicenseService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.gateway = Gateway(db)

    def verify(self, key: str | None) -> VerifyResult:
        """
        Check a key. An active key past expires_at is flipped to expired here
        (persisted once); later calls see the stored status.
        """
        key = (key or "").strip()
        if not key:
            raise ValidationError("License key is required")

        lic = (
            self.gateway.as_system()
            .query(LicenseKey)
            .filter(LicenseKey.key_value == key)
            .one_or_none()
        )
        if lic is None:
            raise NotFoundError("Invalid license key")

        if lic.status != "active":
            return VerifyResult(valid=False, license=lic, status=lic.status, error="License is not active")

        expires_at = ensure_aware(lic.expires_at)
        if expires_at is not None and expires_at < datetime.now(timezone.utc):
            lic.status = "expired"
            self.db.commit()
            self.db.refresh(lic)
            logger.info("license_expired", extra={"user_id": lic.user_id, "status": "expired"})
            return VerifyResult(valid=False, license=lic, status="expired", error="License has expired")

        return VerifyResult(valid=True, license=lic, status=lic.status)

    def list_for_user(self, identity: Identity) -> list[LicenseKey]:
        return (
            self.gateway.as_caller(identity)
            .query(LicenseKey)
            .order_by(LicenseKey.created_at.desc())
            .all()
        )
