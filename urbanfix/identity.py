"""
Verified caller identity.

The auth service signs a JWT with the caller's email and role; the API layer
decodes it into an Identity and passes it explicitly into every lifecycle
operation. Anonymous callers are represented by None.
"""

from dataclasses import dataclass
from typing import Any

ADMIN_ROLE = "admin"
CITIZEN_ROLE = "citizen"


@dataclass(frozen=True)
class Identity:
    email: str
    role: str = CITIZEN_ROLE
    name: str | None = None
    photo_url: str | None = None
    is_premium: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Identity":
        """
        Build an identity from decoded token claims.

        Raises:
            ValueError: If the claims carry no email.
        """
        email = claims.get("email") or claims.get("sub")
        if not email:
            raise ValueError("Token has no subject")
        return cls(
            email=str(email).strip().lower(),
            role=claims.get("role") or CITIZEN_ROLE,
            name=claims.get("name"),
            photo_url=claims.get("photoURL"),
            is_premium=bool(claims.get("premium", False)),
        )


__all__ = ["ADMIN_ROLE", "CITIZEN_ROLE", "Identity"]
