"""
Error taxonomy. Services raise these; FastAPI handlers in storefront.main
translate them to the {success, error} envelope.
"""
from typing import Any

from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class AuthError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class ProviderError(AppError):
    """Payment gateway refused or failed; message is the provider's own."""
    status_code = 400


class ProviderConfigurationError(AppError):
    """Raised by an adapter constructor when credentials are missing."""
    status_code = 500


UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def integrity_kind(exc: IntegrityError) -> str | None:
    """Classify an IntegrityError as 'unique' / 'foreign_key' (postgres pgcode or sqlite message)."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION:
        return "unique"
    if code == FOREIGN_KEY_VIOLATION:
        return "foreign_key"
    msg = str(orig or exc).upper()
    if "UNIQUE" in msg:
        return "unique"
    if "FOREIGN KEY" in msg:
        return "foreign_key"
    return None
