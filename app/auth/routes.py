"""Authentication routes."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.data.organizations.models import Organization
from app.data.users.models import User
from app.auth import schemas
from app.auth.context import TenantContext
from app.auth.utils import get_password_hash, verify_password, create_access_token
from app.auth.dependencies import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.scalar_one_or_none() is not None


async def create_organization_and_admin(db: AsyncSession, data: schemas.SignupRequest) -> tuple:
    """Create a tenant together with its first admin user in one commit."""
    organization = Organization(name=data.organization_name, abn=data.abn)
    db.add(organization)
    await db.flush()

    user = User(
        organization_id=organization.id,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role="admin",
    )
    db.add(user)
    await db.commit()
    await db.refresh(organization)
    await db.refresh(user)
    return organization, user


@router.post("/signup", response_model=schemas.AuthResponse, status_code=201)
async def signup(data: schemas.SignupRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a new organization and its admin user.
    Returns JWT token on success.
    """
    if await _email_taken(db, data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    organization, user = await create_organization_and_admin(db, data)
    logger.info(f"Created organization {organization.id} with admin {user.id}")

    token = create_access_token(user.id, organization.id, user.role)
    return schemas.AuthResponse(
        access_token=token,
        user=schemas.UserAuthInfo.model_validate(user),
        organization=schemas.OrganizationInfo.model_validate(organization),
    )


@router.post("/login", response_model=schemas.AuthResponse)
async def login(data: schemas.LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user with email and password.
    Returns JWT token on success.
    """
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    organization = await db.get(Organization, user.organization_id)
    token = create_access_token(user.id, user.organization_id, user.role)
    return schemas.AuthResponse(
        access_token=token,
        user=schemas.UserAuthInfo.model_validate(user),
        organization=schemas.OrganizationInfo.model_validate(organization),
    )


@router.get("/me", response_model=schemas.UserAuthInfo)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user info."""
    return schemas.UserAuthInfo.model_validate(current_user)


@router.get("/users", response_model=List[schemas.UserAuthInfo])
async def list_users(
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List the users of the caller's organization."""
    result = await db.execute(
        select(User)
        .where(User.organization_id == tenant.organization_id)
        .order_by(User.created_at)
    )
    return result.scalars().all()


@router.post("/users", response_model=schemas.UserAuthInfo, status_code=201)
async def create_user(
    data: schemas.UserCreateRequest,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Add a staff member (or another admin) to the caller's organization."""
    if await _email_taken(db, data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        organization_id=tenant.organization_id,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role=data.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user
