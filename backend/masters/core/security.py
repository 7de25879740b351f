"""Verification of access tokens issued by the hosted auth service.

The auth flow itself (sign-up, login, refresh) lives with the hosted
provider; this service only checks the signature, expiry and audience of
the bearer token and reads the caller's identity and role from its claims.
"""
from dataclasses import dataclass

from jose import JWTError, jwt

from masters.core.config import settings


@dataclass(frozen=True)
class Principal:
    id: str
    email: str | None
    role: str


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token or wrong audience."""
    return jwt.decode(
        token,
        settings.AUTH_JWT_SECRET,
        algorithms=[settings.AUTH_JWT_ALGORITHM],
        audience=settings.AUTH_JWT_AUDIENCE,
    )


def principal_from_claims(claims: dict) -> Principal:
    """Build a Principal from decoded claims.

    The app role is stored in ``app_metadata.role`` by the provider; a
    top-level ``role`` claim of ``authenticated`` is the provider's own
    session role, not ours, so it only counts when app_metadata is silent.
    """
    subject = claims.get("sub")
    if not subject:
        raise JWTError("Token has no subject")

    app_metadata = claims.get("app_metadata") or {}
    role = app_metadata.get("role")
    if not role:
        top_level = claims.get("role")
        role = top_level if top_level and top_level != "authenticated" else settings.AUTH_DEFAULT_ROLE

    return Principal(id=str(subject), email=claims.get("email"), role=str(role).upper())
