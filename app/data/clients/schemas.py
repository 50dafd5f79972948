"""Pydantic schemas for client validation."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Literal
from decimal import Decimal


FundingType = Literal["sah", "hcp", "ndis", "private"]
ClientStatus = Literal["prospect", "active", "deactivated"]


class ClientCreate(BaseModel):
    """Schema for creating a client. New clients always start as prospects."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None

    medical_conditions: List[str] = []
    medications: List[str] = []
    support_goals: List[str] = []

    funding_type: FundingType = "sah"
    sah_classification_level: Optional[int] = Field(default=None, ge=1, le=8)
    medicare_number: Optional[str] = None
    pension_type: Optional[str] = None
    myagedcare_number: Optional[str] = None

    notes: Optional[str] = None


class ClientUpdate(BaseModel):
    """Schema for updating a client. Status changes go through /status."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_conditions: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    support_goals: Optional[List[str]] = None
    funding_type: Optional[FundingType] = None
    sah_classification_level: Optional[int] = Field(default=None, ge=1, le=8)
    medicare_number: Optional[str] = None
    pension_type: Optional[str] = None
    myagedcare_number: Optional[str] = None
    notes: Optional[str] = None


class ClientStatusUpdate(BaseModel):
    status: ClientStatus


class ClientResponse(BaseModel):
    """Schema for client response."""
    id: str
    organization_id: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    medical_conditions: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    support_goals: Optional[List[str]] = None
    funding_type: str
    sah_classification_level: Optional[int] = None
    plan_budget: Optional[Decimal] = None
    medicare_number: Optional[str] = None
    pension_type: Optional[str] = None
    myagedcare_number: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
