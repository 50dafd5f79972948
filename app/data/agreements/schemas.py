"""Pydantic schemas for service agreements."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Literal, Dict, Any
from decimal import Decimal

from app.data.funding_schemas import FundingSummaryResponse


AllocationPolicyLiteral = Literal["sum_of_buckets", "fixed_allocation"]
AgreementStatus = Literal["draft", "current", "expired", "cancelled"]
BillingFrequency = Literal["weekly", "fortnightly", "monthly"]


class AgreementBucketLink(BaseModel):
    bucket_id: str
    custom_name: Optional[str] = None
    custom_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class AgreementExtendedFields(BaseModel):
    """Optional terms saved after the core fields, best-effort."""
    review_date: Optional[date] = None
    billing_frequency: Optional[BillingFrequency] = None
    notes: Optional[str] = None
    extra_terms: Optional[Dict[str, Any]] = None


class AgreementCreate(AgreementExtendedFields):
    """Schema for creating a service agreement for an active client."""
    client_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    allocation_policy: AllocationPolicyLiteral = "sum_of_buckets"
    fixed_total_value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    buckets: List[AgreementBucketLink] = []


class AgreementSave(BaseModel):
    """Schema for saving a draft agreement: core fields, then extended fields."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    allocation_policy: Optional[AllocationPolicyLiteral] = None
    fixed_total_value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    extended: Optional[AgreementExtendedFields] = None


class AgreementStatusUpdate(BaseModel):
    status: AgreementStatus


class AgreementBucketResponse(BaseModel):
    id: str
    bucket_id: str
    custom_name: Optional[str] = None
    custom_amount: Optional[Decimal] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class AgreementResponse(BaseModel):
    """Schema for service agreement response."""
    id: str
    client_id: str
    agreement_number: str
    name: str
    description: Optional[str] = None
    status: str
    allocation_policy: str
    fixed_total_value: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    review_date: Optional[date] = None
    billing_frequency: Optional[str] = None
    notes: Optional[str] = None
    extra_terms: Optional[Dict[str, Any]] = None
    buckets: List[AgreementBucketResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AgreementDetailResponse(AgreementResponse):
    summary: FundingSummaryResponse


class AgreementSaveResponse(BaseModel):
    """Both steps of a save are reported separately."""
    agreement: AgreementResponse
    core_saved: bool
    extended_saved: bool
    extended_error: Optional[str] = None
