"""
Kardex Security Utilities

JWT handling and the authenticated actor.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import JWTError, jwt

from core.config import get_settings

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    user_id: str
    email: str | None = None
    name: str | None = None
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_claims(cls, claims: dict) -> "Actor":
        role = claims.get("role", ROLE_USER)
        if role not in ROLES:
            role = ROLE_USER
        return cls(
            user_id=str(claims["sub"]),
            email=claims.get("email"),
            name=claims.get("name"),
            role=role,
        )


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=24))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a local JWT. Returns None when invalid or expired."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload
