"""Pydantic schemas for the services catalog."""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List, Literal
from decimal import Decimal


ServiceStatus = Literal["draft", "active", "inactive", "archived"]


class ServiceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    service_code: Optional[str] = None
    base_cost: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    cost_currency: str = Field(default="AUD", min_length=3, max_length=3)
    unit: str = "hour"
    has_variable_pricing: bool = False
    min_cost: Optional[Decimal] = Field(default=None, ge=0)
    max_cost: Optional[Decimal] = Field(default=None, ge=0)
    is_taxable: bool = False
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    tags: List[str] = []
    allow_discount: bool = False
    can_be_cancelled: bool = True
    requires_approval: bool = False


class ServiceCreate(ServiceBase):
    """Schema for adding a service to the catalog. New services start as draft."""

    @model_validator(mode="after")
    def check_price_range(self):
        check_price_range(self.base_cost, self.min_cost, self.max_cost)
        return self


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    service_code: Optional[str] = None
    base_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)
    unit: Optional[str] = None
    has_variable_pricing: Optional[bool] = None
    min_cost: Optional[Decimal] = Field(default=None, ge=0)
    max_cost: Optional[Decimal] = Field(default=None, ge=0)
    is_taxable: Optional[bool] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    tags: Optional[List[str]] = None
    allow_discount: Optional[bool] = None
    can_be_cancelled: Optional[bool] = None
    requires_approval: Optional[bool] = None


class ServiceStatusUpdate(BaseModel):
    status: ServiceStatus


class ServiceResponse(ServiceBase):
    id: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


def check_price_range(base_cost, min_cost, max_cost) -> None:
    """min_cost <= base_cost <= max_cost wherever the bounds are set."""
    if min_cost is not None and max_cost is not None and min_cost > max_cost:
        raise ValueError("min_cost must not exceed max_cost")
    if base_cost is not None:
        if min_cost is not None and base_cost < min_cost:
            raise ValueError("base_cost must not be below min_cost")
        if max_cost is not None and base_cost > max_cost:
            raise ValueError("base_cost must not exceed max_cost")
