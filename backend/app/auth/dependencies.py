"""
Authentication dependencies for FastAPI routes.

Turns the bearer token presented by the caller into an explicit
Identity (or None for anonymous callers). Nothing is stored on the request.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from urbanfix.identity import Identity
from urbanfix.logging import get_logger

from .jwt import decode_identity

logger = get_logger("api.auth")

# auto_error=False so anonymous reads are allowed
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def get_optional_identity(token: str | None = Depends(oauth2_scheme)) -> Identity | None:
    """
    Get the caller's identity if a valid token was presented, otherwise None.

    An invalid token on a read path is treated as anonymous.
    """
    if not token:
        return None
    try:
        return decode_identity(token)
    except ValueError:
        logger.info("optional_token_ignored")
        return None


def get_current_identity(token: str | None = Depends(oauth2_scheme)) -> Identity:
    """
    Resolve the authenticated identity or raise 401.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_identity(token)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Allow only administrators."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return identity
