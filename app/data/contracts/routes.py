"""Contract and contract box API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.data.contracts.models import Contract, ContractBox
from app.data.contracts.schemas import (
    BoxCreate,
    BoxResponse,
    BoxUpdate,
    ContractCreate,
    ContractDetailResponse,
    ContractResponse,
    ContractStatus,
    ContractStatusUpdate,
    ContractUpdate,
)
from app.data.contracts.service import ContractService
from app.data.funding_schemas import FundingSummaryResponse
from app.data.transactions.schemas import LedgerOutcomeResponse, TransactionCreate, TransactionResponse
from app.data.transactions.service import post_transaction
from app.funding.aggregator import box_utilization, item_from_container, summarize_contract
from app.funding.ledger import FundingLedger
from app.funding.lifecycle import LifecycleService

router = APIRouter()


def box_response(box: ContractBox) -> BoxResponse:
    return BoxResponse.model_validate(box).model_copy(
        update={"utilization": box_utilization(item_from_container(box))}
    )


def contract_detail(contract: Contract) -> ContractDetailResponse:
    return ContractDetailResponse(
        **ContractResponse.model_validate(contract).model_dump(),
        boxes=[box_response(box) for box in contract.boxes],
        summary=FundingSummaryResponse.model_validate(summarize_contract(contract)),
    )


@router.post("/contracts", response_model=ContractDetailResponse, status_code=201)
async def create_contract(
    data: ContractCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft contract with its funding boxes."""
    contract = await ContractService(db, tenant).create(data)
    return contract_detail(contract)


@router.get("/contracts", response_model=List[ContractResponse])
async def get_contracts(
    client_id: Optional[str] = Query(default=None),
    status: Optional[ContractStatus] = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get the organization's contracts."""
    return await ContractService(db, tenant).list(client_id=client_id, status=status)


@router.get("/contracts/{contract_id}", response_model=ContractDetailResponse)
async def get_contract(
    contract_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a contract with its boxes and funding summary."""
    return contract_detail(await ContractService(db, tenant).get(contract_id))


@router.put("/contracts/{contract_id}", response_model=ContractDetailResponse)
async def update_contract(
    contract_id: str,
    data: ContractUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Update a draft contract."""
    contract = await ContractService(db, tenant).update(contract_id, data)
    return contract_detail(contract)


@router.delete("/contracts/{contract_id}")
async def delete_contract(
    contract_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Delete a draft contract."""
    await ContractService(db, tenant).delete(contract_id)
    return {"message": "Contract deleted successfully"}


@router.post("/contracts/{contract_id}/status", response_model=ContractResponse)
async def update_contract_status(
    contract_id: str,
    data: ContractStatusUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Move a contract through draft -> active -> expired/cancelled.

    Activation requires the client to be active at the moment of the change.
    """
    return await LifecycleService(db, tenant).transition_contract(contract_id, data.status)


@router.post("/contracts/{contract_id}/boxes", response_model=BoxResponse, status_code=201)
async def add_contract_box(
    contract_id: str,
    data: BoxCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Add a box to a draft contract."""
    return box_response(await ContractService(db, tenant).add_box(contract_id, data))


@router.put("/contract-boxes/{box_id}", response_model=BoxResponse)
async def update_contract_box(
    box_id: str,
    data: BoxUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Edit a box of a draft contract. Allocation changes go through the ledger."""
    return box_response(await ContractService(db, tenant).update_box(box_id, data))


@router.delete("/contract-boxes/{box_id}")
async def remove_contract_box(
    box_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Remove a box from a draft contract; boxes with movements are closed instead."""
    outcome = await ContractService(db, tenant).remove_box(box_id)
    return {"message": f"Contract box {outcome} successfully", "outcome": outcome}


@router.post("/contract-boxes/{box_id}/transactions", response_model=LedgerOutcomeResponse, status_code=201)
async def create_box_transaction(
    box_id: str,
    data: TransactionCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Apply a credit or debit to a box of an active contract."""
    box = await ContractService(db, tenant).get_box(box_id)
    return await post_transaction(db, tenant, box, data)


@router.get("/contract-boxes/{box_id}/history", response_model=List[TransactionResponse])
async def get_box_history(
    box_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries of a box, newest first."""
    box = await ContractService(db, tenant).get_box(box_id)
    return await FundingLedger(db, tenant).ledger_history(box, limit=limit)
