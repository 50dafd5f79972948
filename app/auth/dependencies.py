"""FastAPI dependencies for authentication and tenant resolution."""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.data.users.models import User
from app.auth.context import TenantContext
from app.auth.utils import decode_access_token

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user.

    Raises 401 if not authenticated or token is invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == payload.get("sub")))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


async def get_tenant(current_user: User = Depends(get_current_user)) -> TenantContext:
    """
    Dependency resolving the caller's organization.

    The organization always comes from the stored user row, never from
    request parameters, so one tenant cannot address another's records.
    """
    return TenantContext(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        role=current_user.role,
    )


def require_admin(tenant: TenantContext = Depends(get_tenant)) -> TenantContext:
    """
    Dependency for organization-admin operations (templates, users).

    Raises 403 for staff accounts.
    """
    if not tenant.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization admin role required",
        )
    return tenant
