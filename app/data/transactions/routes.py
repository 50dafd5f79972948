"""Ledger transaction API routes."""
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.data.buckets.models import ClientBucket
from app.data.contracts.models import ContractBox
from app.data.queries import get_owned_or_404
from app.data.transactions.models import Transaction
from app.data.transactions.schemas import (
    LedgerOutcomeResponse,
    LedgerTransactionCreate,
    TransactionResponse,
    TransactionType,
)
from app.data.transactions.service import post_transaction

router = APIRouter()


@router.get("/transactions", response_model=List[TransactionResponse])
async def get_transactions(
    client_id: Optional[str] = Query(default=None),
    bucket_id: Optional[str] = Query(default=None),
    box_id: Optional[str] = Query(default=None),
    contract_id: Optional[str] = Query(default=None),
    agreement_id: Optional[str] = Query(default=None),
    transaction_type: Optional[TransactionType] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get ledger entries across the organization, newest first."""
    query = select(Transaction).where(Transaction.organization_id == tenant.organization_id)
    if client_id:
        query = query.where(Transaction.client_id == client_id)
    if bucket_id:
        query = query.where(Transaction.bucket_id == bucket_id)
    if box_id:
        query = query.where(Transaction.box_id == box_id)
    if contract_id:
        query = query.where(Transaction.contract_id == contract_id)
    if agreement_id:
        query = query.where(Transaction.agreement_id == agreement_id)
    if transaction_type:
        query = query.where(Transaction.transaction_type == transaction_type)
    if date_from:
        query = query.where(Transaction.transaction_date >= date_from)
    if date_to:
        query = query.where(Transaction.transaction_date <= date_to)

    result = await db.execute(
        query.order_by(Transaction.created_at.desc(), Transaction.sequence.desc())
        .limit(limit)
        .offset(offset)
    )
    return result.scalars().all()


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a single ledger entry."""
    return await get_owned_or_404(db, Transaction, tenant, transaction_id, "Transaction")


@router.post("/transactions", response_model=LedgerOutcomeResponse, status_code=201)
async def create_transaction(
    data: LedgerTransactionCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Post to a bucket or a contract box named in the body."""
    if data.bucket_id:
        container = await get_owned_or_404(db, ClientBucket, tenant, data.bucket_id, "Bucket")
    else:
        container = await get_owned_or_404(db, ContractBox, tenant, data.box_id, "Contract box")
    return await post_transaction(db, tenant, container, data)
