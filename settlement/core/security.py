"""Security and Authentication Utilities

Users and roles are administered by an external identity service; this backend
only verifies the bearer tokens it issues and reads the actor id and role from
their claims.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from settlement.config import settings
from settlement.models.enums import ActorRole


@dataclass(frozen=True)
class Principal:
    """Authenticated caller extracted from an access token"""
    actor_id: UUID
    role: ActorRole

    def has_role(self, *roles: ActorRole) -> bool:
        return self.role in roles


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in the token (``{"sub": actor_id, "role": role}``)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def principal_from_payload(payload: dict) -> Optional[Principal]:
    """Build a Principal from decoded claims; None when claims are missing or malformed"""
    if payload.get("type") != "access":
        return None
    try:
        return Principal(actor_id=UUID(str(payload.get("sub"))), role=ActorRole(payload.get("role")))
    except ValueError:
        return None
