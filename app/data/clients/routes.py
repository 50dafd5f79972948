"""Client API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.audit.services import AuditService
from app.data.clients.models import Client
from app.data.clients.budgets import plan_budget_for_level
from app.data.clients.schemas import (
    ClientCreate,
    ClientResponse,
    ClientStatus,
    ClientStatusUpdate,
    ClientUpdate,
)
from app.data.queries import get_owned_or_404
from app.funding.lifecycle import LifecycleService

router = APIRouter()


@router.post("/clients", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create a client as a prospect.

    A Support at Home classification level sets the annual plan budget.
    """
    client = Client(
        organization_id=tenant.organization_id,
        status="prospect",
        plan_budget=plan_budget_for_level(data.sah_classification_level),
        **data.model_dump(),
    )
    db.add(client)
    await db.flush()
    await AuditService(db, tenant).log_create("client", client.id, {"name": client.full_name})
    await db.commit()
    await db.refresh(client)
    return client


@router.get("/clients", response_model=List[ClientResponse])
async def get_clients(
    status: Optional[ClientStatus] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches first name, last name or phone"),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get the organization's clients, optionally filtered."""
    query = select(Client).where(Client.organization_id == tenant.organization_id)
    if status:
        query = query.where(Client.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Client.first_name.ilike(pattern),
            Client.last_name.ilike(pattern),
            Client.phone.ilike(pattern),
        ))
    result = await db.execute(query.order_by(Client.last_name, Client.first_name))
    return result.scalars().all()


@router.get("/clients/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a single client."""
    return await get_owned_or_404(db, Client, tenant, client_id, "Client")


@router.put("/clients/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    data: ClientUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Update a client's details."""
    client = await get_owned_or_404(db, Client, tenant, client_id, "Client")

    update_data = data.model_dump(exclude_unset=True)
    changes = {}
    for field, value in update_data.items():
        changes[field] = (getattr(client, field), value)
        setattr(client, field, value)

    if "sah_classification_level" in update_data:
        client.plan_budget = plan_budget_for_level(client.sah_classification_level)

    await AuditService(db, tenant).log_update("client", client.id, changes)
    await db.commit()
    await db.refresh(client)
    return client


@router.post("/clients/{client_id}/status", response_model=ClientResponse)
async def update_client_status(
    client_id: str,
    data: ClientStatusUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Move a client through prospect -> active -> deactivated.

    Activation provisions the organization's auto-provision buckets.
    """
    return await LifecycleService(db, tenant).transition_client(client_id, data.status)
