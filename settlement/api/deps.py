"""API Dependencies"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from settlement.database import get_db, get_session_factory
from settlement.core.security import Principal, decode_token, principal_from_payload
from settlement.models.enums import ActorRole

__all__ = [
    "get_db",
    "get_session_factory",
    "get_current_principal",
    "require_roles",
    "require_finance",
    "require_dispatcher",
]

# Security scheme for bearer token
security = HTTPBearer()


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    Get the authenticated caller from the JWT bearer token.

    Raises:
        HTTPException: If the token is invalid, expired or lacks actor claims
    """
    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = principal_from_payload(payload)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_roles(*roles: ActorRole):
    """Dependency factory: the caller must hold one of ``roles``"""

    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return principal

    return checker


# Approvals, confirmations, reconciliation and liquidations
require_finance = require_roles(ActorRole.ADMIN, ActorRole.FINANCE)

# Service creation and status changes
require_dispatcher = require_roles(ActorRole.ADMIN, ActorRole.DISPATCHER)
