"""Service agreement API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.data.agreements.models import ServiceAgreement
from app.data.agreements.schemas import (
    AgreementBucketLink,
    AgreementCreate,
    AgreementDetailResponse,
    AgreementResponse,
    AgreementSave,
    AgreementSaveResponse,
    AgreementStatus,
    AgreementStatusUpdate,
)
from app.data.agreements.service import AgreementService
from app.data.funding_schemas import FundingSummaryResponse
from app.funding.lifecycle import LifecycleService

router = APIRouter()


async def _detail(service: AgreementService, agreement: ServiceAgreement) -> AgreementDetailResponse:
    summary = await service.summary(agreement)
    return AgreementDetailResponse(
        **AgreementResponse.model_validate(agreement).model_dump(),
        summary=FundingSummaryResponse.model_validate(summary),
    )


@router.post("/service-agreements", response_model=AgreementDetailResponse, status_code=201)
async def create_agreement(
    data: AgreementCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft agreement for an active client."""
    service = AgreementService(db, tenant)
    agreement = await service.create(data)
    return await _detail(service, agreement)


@router.get("/service-agreements", response_model=List[AgreementResponse])
async def get_agreements(
    client_id: Optional[str] = Query(default=None),
    status: Optional[AgreementStatus] = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get the organization's service agreements."""
    return await AgreementService(db, tenant).list(client_id=client_id, status=status)


@router.get("/service-agreements/{agreement_id}", response_model=AgreementDetailResponse)
async def get_agreement(
    agreement_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get an agreement with its funding summary."""
    service = AgreementService(db, tenant)
    return await _detail(service, await service.get(agreement_id))


@router.put("/service-agreements/{agreement_id}", response_model=AgreementSaveResponse)
async def save_agreement(
    agreement_id: str,
    data: AgreementSave,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Save a draft agreement.

    Core fields are committed first. Extended fields are attempted
    afterwards; if they fail, the core save stands and the error is
    reported in extended_error.
    """
    result = await AgreementService(db, tenant).save(agreement_id, data)
    return AgreementSaveResponse(
        agreement=AgreementResponse.model_validate(result.agreement),
        core_saved=result.core_saved,
        extended_saved=result.extended_saved,
        extended_error=result.extended_error,
    )


@router.post("/service-agreements/{agreement_id}/buckets", response_model=AgreementDetailResponse)
async def add_agreement_bucket(
    agreement_id: str,
    data: AgreementBucketLink,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Link one of the client's active buckets to a draft agreement."""
    service = AgreementService(db, tenant)
    agreement = await service.add_bucket(agreement_id, data)
    return await _detail(service, agreement)


@router.delete("/service-agreements/{agreement_id}/buckets/{bucket_id}", response_model=AgreementDetailResponse)
async def remove_agreement_bucket(
    agreement_id: str,
    bucket_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Unlink a bucket from a draft agreement. The bucket itself is untouched."""
    service = AgreementService(db, tenant)
    agreement = await service.remove_bucket(agreement_id, bucket_id)
    return await _detail(service, agreement)


@router.post("/service-agreements/{agreement_id}/status", response_model=AgreementResponse)
async def update_agreement_status(
    agreement_id: str,
    data: AgreementStatusUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Move an agreement through draft -> current -> expired/cancelled."""
    return await LifecycleService(db, tenant).transition_agreement(agreement_id, data.status)
