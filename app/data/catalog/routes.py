"""Services catalog API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.audit.services import AuditService
from app.data.catalog.models import Service
from app.data.catalog.schemas import (
    ServiceCreate,
    ServiceResponse,
    ServiceStatus,
    ServiceStatusUpdate,
    ServiceUpdate,
    check_price_range,
)
from app.data.queries import get_owned_or_404
from app.funding.errors import LedgerValidationError
from app.funding.lifecycle import LifecycleService, ensure_deletable_service

router = APIRouter()


@router.post("/services", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Add a service to the catalog as draft."""
    service = Service(
        organization_id=tenant.organization_id,
        status="draft",
        **data.model_dump(),
    )
    db.add(service)
    await db.flush()
    await AuditService(db, tenant).log_create("service", service.id, {"name": service.name})
    await db.commit()
    await db.refresh(service)
    return service


@router.get("/services", response_model=List[ServiceResponse])
async def get_services(
    category: Optional[str] = Query(default=None),
    status: Optional[ServiceStatus] = Query(default=None),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get the organization's catalog."""
    query = select(Service).where(Service.organization_id == tenant.organization_id)
    if category:
        query = query.where(Service.category == category)
    if status:
        query = query.where(Service.status == status)
    result = await db.execute(query.order_by(Service.name))
    return result.scalars().all()


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a single service."""
    return await get_owned_or_404(db, Service, tenant, service_id, "Service")


@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Update a service's details and pricing."""
    service = await get_owned_or_404(db, Service, tenant, service_id, "Service")
    update_data = data.model_dump(exclude_unset=True)

    try:
        check_price_range(
            update_data.get("base_cost", service.base_cost),
            update_data.get("min_cost", service.min_cost),
            update_data.get("max_cost", service.max_cost),
        )
    except ValueError as e:
        raise LedgerValidationError(str(e))

    changes = {}
    for field, value in update_data.items():
        changes[field] = (getattr(service, field), value)
        setattr(service, field, value)

    await AuditService(db, tenant).log_update("service", service.id, changes)
    await db.commit()
    await db.refresh(service)
    return service


@router.post("/services/{service_id}/status", response_model=ServiceResponse)
async def update_service_status(
    service_id: str,
    data: ServiceStatusUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Move a service through draft -> active <-> inactive -> archived."""
    return await LifecycleService(db, tenant).transition_service(service_id, data.status)


@router.delete("/services/{service_id}")
async def delete_service(
    service_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Delete a service. Archived services are kept for history."""
    service = await get_owned_or_404(db, Service, tenant, service_id, "Service")
    ensure_deletable_service(service)

    await AuditService(db, tenant).log_delete("service", service.id, {"name": service.name})
    await db.delete(service)
    await db.commit()
    return {"message": "Service deleted successfully"}
