"""Tests for the identity gate: token decoding and admin flag."""
from unittest.mock import MagicMock

import jwt
import pytest

from storefront.core.config import settings
from storefront.core.errors import AuthError, ForbiddenError
from storefront.services.auth.identity import (
    Identity,
    decode_access_token,
    extract_token,
    require_admin,
    require_cron_secret,
)


def test_decode_valid_token(token_factory):
    identity = decode_access_token(token_factory("user-42"))
    assert identity.user_id == "user-42"
    assert identity.email == "user-42@example.com"
    assert identity.is_admin is False


def test_admin_flag_requires_literal_true(token_factory):
    assert decode_access_token(token_factory("a", is_admin=True)).is_admin is True
    truthy_string = token_factory("b", app_metadata={"is_admin": "true"})
    assert decode_access_token(truthy_string).is_admin is False


def test_expired_token(token_factory):
    with pytest.raises(AuthError, match="Unauthorized"):
        decode_access_token(token_factory(expires_in=-60))


def test_wrong_audience(token_factory):
    with pytest.raises(AuthError):
        decode_access_token(token_factory(aud="anon"))


def test_wrong_secret():
    token = jwt.encode(
        {"sub": "x", "aud": settings.supabase_jwt_audience},
        "another-secret-that-is-long-enough-0123",
        algorithm="HS256",
    )
    with pytest.raises(AuthError):
        decode_access_token(token)


def test_extract_token_prefers_header():
    request = MagicMock()
    request.headers = {"Authorization": "Bearer header-token"}
    request.cookies = {settings.session_cookie_name: "cookie-token"}
    assert extract_token(request) == "header-token"


def test_extract_token_falls_back_to_cookie():
    request = MagicMock()
    request.headers = {}
    request.cookies = {settings.session_cookie_name: "cookie-token"}
    assert extract_token(request) == "cookie-token"


def test_require_admin():
    with pytest.raises(ForbiddenError, match="Forbidden"):
        require_admin(Identity(user_id="u"))
    admin = Identity(user_id="a", is_admin=True)
    assert require_admin(admin) is admin


def test_cron_secret_exact_match():
    request = MagicMock()
    request.headers = {"Authorization": f"Bearer {settings.cron_secret}"}
    require_cron_secret(request)

    request.headers = {"Authorization": f"Bearer {settings.cron_secret}x"}
    with pytest.raises(AuthError):
        require_cron_secret(request)
