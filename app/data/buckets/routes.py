"""Client bucket API routes."""
import logging
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from typing import List

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.audit.services import AuditService
from app.data.buckets.models import BucketAlert, ClientBucket
from app.data.buckets.schemas import BucketCreate, BucketDetailResponse, BucketResponse
from app.data.clients.models import Client
from app.data.templates.models import BucketTemplate
from app.data.transactions.schemas import (
    AlertResponse,
    ConsistencyResponse,
    LedgerOutcomeResponse,
    ResetRequest,
    ResetResponse,
    TransactionCreate,
    TransactionResponse,
)
from app.data.transactions.service import post_transaction
from app.data.queries import get_owned_or_404
from app.funding.errors import BucketNotActive, OwnerNotActive
from app.funding.ledger import FundingLedger, get_utilization
from app.funding.provisioning import create_bucket

logger = logging.getLogger(__name__)

router = APIRouter()


def bucket_response(bucket: ClientBucket, schema=BucketResponse, **extra):
    return schema.model_validate(bucket).model_copy(
        update={"utilization": get_utilization(bucket), **extra}
    )


@router.get("/clients/{client_id}/buckets", response_model=List[BucketResponse])
async def get_client_buckets(
    client_id: str,
    include_closed: bool = Query(default=False),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a client's funding buckets."""
    await get_owned_or_404(db, Client, tenant, client_id, "Client")
    query = select(ClientBucket).where(
        ClientBucket.client_id == client_id,
        ClientBucket.organization_id == tenant.organization_id,
    )
    if not include_closed:
        query = query.where(ClientBucket.status == "active")
    result = await db.execute(query.order_by(ClientBucket.created_at))
    return [bucket_response(b) for b in result.scalars().all()]


@router.post("/clients/{client_id}/buckets", response_model=BucketResponse, status_code=201)
async def create_client_bucket(
    client_id: str,
    data: BucketCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create a bucket for an active client from a template."""
    client = await get_owned_or_404(db, Client, tenant, client_id, "Client")
    if client.status != "active":
        raise OwnerNotActive(
            f"Client is {client.status}; buckets can only be added to active clients",
            {"client_status": client.status},
        )
    template = await get_owned_or_404(db, BucketTemplate, tenant, data.template_id, "Bucket template")

    bucket = await create_bucket(
        db, tenant, template, client,
        name=data.name,
        allocated_amount=data.allocated_amount,
    )
    await AuditService(db, tenant).log_create(
        "client_bucket", bucket.id, {"template_id": template.id, "allocated_amount": bucket.allocated_amount}
    )
    await db.commit()
    await db.refresh(bucket)
    return bucket_response(bucket)


@router.get("/buckets/{bucket_id}", response_model=BucketDetailResponse)
async def get_bucket(
    bucket_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a bucket with its most recent transactions and alerts."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    transactions = await FundingLedger(db, tenant).ledger_history(bucket, limit=10)
    alerts = (await db.execute(
        select(BucketAlert)
        .where(BucketAlert.bucket_id == bucket.id)
        .order_by(BucketAlert.created_at.desc())
        .limit(10)
    )).scalars().all()
    return bucket_response(
        bucket,
        schema=BucketDetailResponse,
        recent_transactions=[TransactionResponse.model_validate(t) for t in transactions],
        recent_alerts=[AlertResponse.model_validate(a) for a in alerts],
    )


@router.post("/buckets/{bucket_id}/close", response_model=BucketResponse)
async def close_bucket(
    bucket_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Close a bucket. Buckets are never deleted once they carry transactions."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    # Bumping the version makes any in-flight posting re-read and see the closed status
    result = await db.execute(
        update(ClientBucket)
        .where(ClientBucket.id == bucket.id, ClientBucket.status == "active")
        .values(status="closed", version=ClientBucket.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BucketNotActive(f"{bucket.name} is already {bucket.status}", {"status": bucket.status})

    await AuditService(db, tenant).log_status_change("client_bucket", bucket.id, "active", "closed")
    await db.commit()
    await db.refresh(bucket)
    logger.info(f"Closed bucket {bucket.id} with balance {bucket.current_balance}")
    return bucket_response(bucket)


@router.post("/buckets/{bucket_id}/transactions", response_model=LedgerOutcomeResponse, status_code=201)
async def create_bucket_transaction(
    bucket_id: str,
    data: TransactionCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Apply a credit or debit to a bucket through the funding ledger."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    return await post_transaction(db, tenant, bucket, data)


@router.post("/buckets/{bucket_id}/reset", response_model=ResetResponse)
async def reset_bucket_period(
    bucket_id: str,
    data: ResetRequest,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Roll a bucket with a reset timer into its next funding period."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    outcome = await FundingLedger(db, tenant).reset_period(bucket, today=data.as_of or date.today())
    return ResetResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction) if outcome.transaction else None,
        carried_over=outcome.carried_over,
        period_start=outcome.period_start,
        period_end=outcome.period_end,
        balance=outcome.bucket.current_balance,
    )


@router.get("/buckets/{bucket_id}/history", response_model=List[TransactionResponse])
async def get_bucket_history(
    bucket_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries of a bucket, newest first."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    return await FundingLedger(db, tenant).ledger_history(bucket, limit=limit)


@router.get("/buckets/{bucket_id}/consistency", response_model=ConsistencyResponse)
async def check_bucket_consistency(
    bucket_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Check the stored balance against the ledger."""
    bucket = await get_owned_or_404(db, ClientBucket, tenant, bucket_id, "Bucket")
    report = await FundingLedger(db, tenant).verify_consistency(bucket)
    return ConsistencyResponse(
        bucket_id=report.bucket_id,
        stored_balance=report.stored_balance,
        ledger_sum=report.ledger_sum,
        last_balance_after=report.last_balance_after,
        transaction_count=report.transaction_count,
        consistent=report.consistent,
    )
