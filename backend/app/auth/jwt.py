"""
Bearer token handling.

Tokens are issued by the external auth service and carry the caller's
identity claims (``sub``/``email``, ``role``, ``name``, ``photoURL``,
``premium``). This service only verifies them; ``create_access_token`` and
``token_for_identity`` exist for local tooling and tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from urbanfix.config import get_settings
from urbanfix.identity import Identity


def create_access_token(data: Dict[str, Any], expires_minutes: int | None = None) -> str:
    """
    Sign a token with the given claims plus ``iat``, ``exp`` and ``jti``.

    ``iss`` is added when JWT_ISSUER is configured, so that tokens minted
    here pass the same checks as tokens from the auth service.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        **data,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
        "jti": uuid.uuid4().hex,
    }
    if settings.jwt_issuer:
        claims.setdefault("iss", settings.jwt_issuer)
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def token_for_identity(identity: Identity, expires_minutes: int | None = None) -> str:
    """Mint a token whose claims decode back to ``identity``."""
    claims = {
        "sub": identity.email,
        "email": identity.email,
        "role": identity.role,
        "premium": identity.is_premium,
    }
    if identity.name:
        claims["name"] = identity.name
    if identity.photo_url:
        claims["photoURL"] = identity.photo_url
    return create_access_token(claims, expires_minutes=expires_minutes)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature, expiry and (when configured) issuer.

    Raises:
        ValueError: If the token fails any check.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require_exp": True},
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def decode_identity(token: str) -> Identity:
    """
    Verify a token and build the caller's identity from its claims.

    Raises:
        ValueError: Invalid token or no subject claim.
    """
    return Identity.from_claims(decode_access_token(token))
