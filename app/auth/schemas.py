"""Authentication schemas."""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field


Role = Literal["admin", "staff"]


class SignupRequest(BaseModel):
    """Schema for organization signup; creates the organization and its first admin."""
    organization_name: str = Field(..., min_length=1, max_length=255)
    abn: Optional[str] = Field(default=None, pattern=r"^\d{11}$", description="Australian Business Number")
    full_name: Optional[str] = None
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")


class LoginRequest(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class UserCreateRequest(BaseModel):
    """Schema for an admin adding a user to their organization."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None
    role: Role = "staff"


class OrganizationInfo(BaseModel):
    id: str
    name: str
    abn: Optional[str] = None
    plan: str

    model_config = {"from_attributes": True}


class UserAuthInfo(BaseModel):
    """User info returned after auth."""
    id: str
    email: str
    full_name: Optional[str] = None
    role: str
    organization_id: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Schema for authentication response."""
    access_token: str
    token_type: str = "bearer"
    user: UserAuthInfo
    organization: OrganizationInfo
