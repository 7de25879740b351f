"""Tests for bearer token verification and role checks."""
import time

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from masters.core.config import settings
from masters.core.deps import get_current_user, require_role
from masters.core.security import Principal, decode_token, principal_from_claims


def _token(**claims) -> str:
    payload = {"sub": "user-1", "aud": settings.AUTH_JWT_AUDIENCE, "exp": int(time.time()) + 600, **claims}
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def test_role_comes_from_app_metadata():
    claims = decode_token(_token(email="a@example.com", role="authenticated", app_metadata={"role": "manager"}))
    principal = principal_from_claims(claims)
    assert principal == Principal(id="user-1", email="a@example.com", role="MANAGER")


def test_provider_session_role_falls_back_to_default():
    principal = principal_from_claims(decode_token(_token(role="authenticated")))
    assert principal.role == settings.AUTH_DEFAULT_ROLE


def test_wrong_audience_is_rejected():
    with pytest.raises(JWTError):
        decode_token(_token(aud="someone-else"))


def test_expired_token_is_rejected():
    with pytest.raises(JWTError):
        decode_token(_token(exp=int(time.time()) - 10))


def test_token_without_subject_is_rejected():
    with pytest.raises(JWTError):
        principal_from_claims({"aud": "authenticated"})


@pytest.mark.asyncio
async def test_get_current_user_returns_401_for_garbage():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user("not-a-jwt")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_require_role_blocks_other_roles():
    check = require_role("ADMIN", "MANAGER")
    staff = Principal(id="u", email=None, role="STAFF")
    with pytest.raises(HTTPException) as exc_info:
        await check(user=staff)
    assert exc_info.value.status_code == 403
    admin = Principal(id="u", email=None, role="ADMIN")
    assert await check(user=admin) is admin
