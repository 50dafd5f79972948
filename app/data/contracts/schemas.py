"""Pydantic schemas for contracts and contract boxes."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Literal, Dict, Any
from decimal import Decimal

from app.data.funding_schemas import FundingSummaryResponse


BoxCategory = Literal["draw_down", "fill_up", "hybrid"]
ContractStatus = Literal["draft", "active", "expired", "cancelled"]


class BoxCreate(BaseModel):
    """A funding box; the name defaults from the category."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: BoxCategory
    allocated_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    description: Optional[str] = None
    service_category: Optional[str] = Field(default=None, min_length=1, max_length=100)


class BoxUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    service_category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)


class ContractCreate(BaseModel):
    """Schema for creating a draft contract with at least one box."""
    client_id: str
    description: Optional[str] = None
    allocation_policy: Literal["sum_of_buckets", "fixed_allocation"] = "sum_of_buckets"
    fixed_total_value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    boxes: List[BoxCreate] = Field(..., min_length=1)


class ContractUpdate(BaseModel):
    description: Optional[str] = None
    allocation_policy: Optional[Literal["sum_of_buckets", "fixed_allocation"]] = None
    fixed_total_value: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ContractStatusUpdate(BaseModel):
    status: ContractStatus


class BoxResponse(BaseModel):
    """Schema for contract box response."""
    id: str
    contract_id: str
    name: str
    description: Optional[str] = None
    category: str
    box_type: str
    position: int
    service_category: Optional[str] = None
    allocated_amount: Decimal
    credit_limit: Decimal
    current_balance: Decimal
    spent_amount: Decimal
    characteristics: List[Dict[str, Any]]
    status: str
    version: int
    utilization: int = 0

    model_config = {"from_attributes": True}


class ContractResponse(BaseModel):
    """Schema for contract response."""
    id: str
    client_id: str
    contract_number: str
    name: str
    description: Optional[str] = None
    status: str
    allocation_policy: str
    fixed_total_value: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ContractDetailResponse(ContractResponse):
    boxes: List[BoxResponse] = []
    summary: FundingSummaryResponse
