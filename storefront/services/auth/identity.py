"""
Identity gate: resolves the caller from a Supabase-issued access token.

The token comes from the Authorization header (Bearer) or the session cookie.
The resulting Identity is passed explicitly into services; nothing reads the
current user from ambient state.
"""
import logging
import secrets
from dataclasses import dataclass

import jwt
from fastapi import Depends, Request

from storefront.core.config import settings
from storefront.core.errors import AuthError, ForbiddenError

logger = logging.getLogger("auth")


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str | None = None
    is_admin: bool = False


def decode_access_token(token: str) -> Identity:
    """Verify signature/expiry/audience and build Identity. Raises AuthError."""
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Unauthorized", {"reason": "token_expired"})
    except jwt.InvalidTokenError as e:
        logger.info("invalid_access_token", extra={"error": str(e)})
        raise AuthError("Unauthorized", {"reason": "token_invalid"})

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Unauthorized", {"reason": "no_subject"})
    app_metadata = payload.get("app_metadata") or {}
    return Identity(
        user_id=str(user_id),
        email=payload.get("email"),
        is_admin=app_metadata.get("is_admin") is True,
    )


def extract_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name) or None


def get_identity(request: Request) -> Identity:
    """FastAPI dependency: authenticated caller or 401."""
    token = extract_token(request)
    if not token:
        raise AuthError("Unauthorized")
    return decode_access_token(token)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """FastAPI dependency: caller must carry app_metadata.is_admin."""
    if not identity.is_admin:
        raise ForbiddenError("Forbidden")
    return identity


def require_cron_secret(request: Request) -> None:
    """Static shared secret for scheduled jobs: exact `Bearer <CRON_SECRET>` match."""
    expected = f"Bearer {settings.cron_secret}"
    provided = request.headers.get("Authorization", "")
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        raise AuthError("Unauthorized")
