"""Pydantic schemas for client buckets."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Dict, Any
from decimal import Decimal

from app.data.transactions.schemas import AlertResponse, TransactionResponse


class BucketCreate(BaseModel):
    """Schema for creating a bucket for a client from a template."""
    template_id: str
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0)


class BucketResponse(BaseModel):
    """Schema for client bucket response."""
    id: str
    client_id: str
    template_id: Optional[str] = None
    name: str
    funding_source: Optional[str] = None
    category: str
    allocated_amount: Decimal
    credit_limit: Decimal
    current_balance: Decimal
    spent_amount: Decimal
    characteristics: List[Dict[str, Any]]
    status: str
    version: int
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    rollover_count: int
    utilization: Decimal = Decimal("0")
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BucketDetailResponse(BucketResponse):
    recent_transactions: List[TransactionResponse] = []
    recent_alerts: List[AlertResponse] = []
