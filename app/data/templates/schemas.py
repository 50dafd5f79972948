"""Pydantic schemas for bucket template validation."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Literal, Dict, Any
from decimal import Decimal

from app.funding.characteristics import Characteristic


BucketCategoryLiteral = Literal["draw_down", "fill_up", "hybrid"]


class TemplateCreate(BaseModel):
    """Schema for creating a bucket template.

    Characteristics default to the category presets when omitted.
    """
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: BucketCategoryLiteral
    funding_source: str = Field(..., min_length=1, max_length=50)
    starting_amount: Optional[Decimal] = Field(default=None, ge=0)
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    characteristics: Optional[List[Characteristic]] = None
    is_active: bool = True
    auto_provision: bool = True


class TemplateUpdate(BaseModel):
    """Category, funding source and amounts are frozen once buckets use the template."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[BucketCategoryLiteral] = None
    funding_source: Optional[str] = Field(default=None, min_length=1, max_length=50)
    starting_amount: Optional[Decimal] = Field(default=None, ge=0)
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    characteristics: Optional[List[Characteristic]] = None
    is_active: Optional[bool] = None
    auto_provision: Optional[bool] = None


class CharacteristicToggle(BaseModel):
    enabled: bool


class TemplateResponse(BaseModel):
    """Schema for bucket template response."""
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    category: str
    funding_source: str
    starting_amount: Optional[Decimal] = None
    credit_limit: Optional[Decimal] = None
    characteristics: List[Dict[str, Any]]
    is_active: bool
    auto_provision: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
