from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from masters.core.security import Principal, decode_token, principal_from_claims

# Tokens come from the hosted auth service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")

ALL_ROLES = ("ADMIN", "MANAGER", "STAFF")
WRITE_ROLES = ("ADMIN", "MANAGER")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer JWT and return the caller's Principal."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_token(token)
        return principal_from_claims(claims)
    except JWTError:
        raise credentials_exc


def require_role(*roles: str):
    """Dependency factory: raises 403 if the role is not in the allowed list."""
    async def check(user: Principal = Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user.role}' is not permitted for this action.",
            )
        return user
    return check
