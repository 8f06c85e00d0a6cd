from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError
from storefront.db.session import get_db
from storefront.schemas.payments import LicenseOut
from storefront.services.auth.identity import Identity, get_identity
from storefront.services.licenses.service import LicenseService


router = APIRouter(tags=["licenses"])


@router.get("/licenses/verify")
def verify_license(key: str | None = Query(None), db: Session = Depends(get_db)):
    """Public: check a license key. Expired active keys are flipped to expired."""
    try:
        result = LicenseService(db).verify(key)
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"success": False, "valid": False, "error": e.message})

    lic = result.license
    if not result.valid:
        return {"success": True, "valid": False, "status": result.status, "error": result.error}
    return {
        "success": True,
        "valid": True,
        "data": {
            "key": lic.key_value,
            "product_name": lic.product.name if lic.product else None,
            "expires_at": lic.expires_at,
            "status": lic.status,
            "created_at": lic.created_at,
        },
    }


@router.get("/user/licenses")
def user_licenses(identity: Identity = Depends(get_identity), db: Session = Depends(get_db)):
    rows = LicenseService(db).list_for_user(identity)
    return {"success": True, "data": [LicenseOut.model_validate(r).model_dump(mode="json") for r in rows]}
