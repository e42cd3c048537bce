from dataclasses import dataclass
from typing import Annotated
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.core.security import verify_access_token


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity asserted by the bearer token."""
    id: str
    role: str


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedUser:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the identity it carries.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = verify_access_token(credentials.credentials)
    if claims is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    return AuthenticatedUser(id=str(claims["sub"]), role=str(claims["role"]))


def require_roles(*roles: str):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.post("/", dependencies=[Depends(require_roles(*settings.BILLING_ROLES))])
        async def create_invoice():
            ...
    """
    async def role_dependency(
        user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required any of: {', '.join(roles)}"
            )
        return user

    return role_dependency


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
BillingUser = Annotated[AuthenticatedUser, Depends(require_roles(*settings.BILLING_ROLES))]
AdminUser = Annotated[AuthenticatedUser, Depends(require_roles(*settings.INVOICE_DELETE_ROLES))]
DB = Annotated[AsyncSession, Depends(get_db)]
