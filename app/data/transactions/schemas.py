"""Pydantic schemas for ledger transactions."""
from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Optional, List, Literal
from decimal import Decimal


TransactionType = Literal["credit", "debit", "service_delivery", "invoice_item"]
ReferenceType = Literal[
    "manual_adjustment",
    "service_transaction",
    "government_allocation",
    "client_payment",
]


class TransactionCreate(BaseModel):
    """Schema for posting a transaction to a bucket or box.

    Either give an amount, or a service and quantity to price it from the
    catalog (unit_cost defaults to the service's base cost).
    """
    transaction_type: TransactionType
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=15, decimal_places=2)
    description: Optional[str] = None
    reference_type: ReferenceType = "manual_adjustment"
    agreement_id: Optional[str] = None
    service_id: Optional[str] = None
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    transaction_date: Optional[date] = None

    @model_validator(mode="after")
    def require_amount_or_service(self):
        if self.amount is None and not (self.service_id and self.quantity):
            raise ValueError("Provide an amount, or a service_id with a quantity")
        return self


class LedgerTransactionCreate(TransactionCreate):
    """Transaction posted through /transactions, naming its target."""
    bucket_id: Optional[str] = None
    box_id: Optional[str] = None

    @model_validator(mode="after")
    def require_one_target(self):
        if bool(self.bucket_id) == bool(self.box_id):
            raise ValueError("Provide exactly one of bucket_id or box_id")
        return self


class TransactionResponse(BaseModel):
    """Schema for transaction response."""
    id: str
    client_id: str
    agreement_id: Optional[str] = None
    contract_id: Optional[str] = None
    bucket_id: Optional[str] = None
    box_id: Optional[str] = None
    transaction_type: str
    direction: str
    amount: Decimal
    requested_amount: Decimal
    balance_after: Decimal
    sequence: int
    reference_type: str
    service_id: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    description: Optional[str] = None
    transaction_date: date
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertResponse(BaseModel):
    id: str
    bucket_id: Optional[str] = None
    box_id: Optional[str] = None
    characteristic_id: str
    threshold: Decimal
    utilization: Decimal
    balance: Decimal
    message: str
    transaction_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LedgerOutcomeResponse(BaseModel):
    """Result of posting one transaction."""
    transaction: TransactionResponse
    secondary_transactions: List[TransactionResponse] = []
    alerts: List[AlertResponse] = []
    unapplied_amount: Decimal
    redirected_to: Optional[str] = None
    balance: Decimal
    utilization: Decimal


class ResetRequest(BaseModel):
    as_of: Optional[date] = None


class ResetResponse(BaseModel):
    transaction: Optional[TransactionResponse] = None
    carried_over: Decimal
    period_start: date
    period_end: date
    balance: Decimal


class ConsistencyResponse(BaseModel):
    bucket_id: str
    stored_balance: Decimal
    ledger_sum: Decimal
    last_balance_after: Optional[Decimal] = None
    transaction_count: int
    consistent: bool

    model_config = {"from_attributes": True}
