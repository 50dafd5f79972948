"""Audit history routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.audit.schemas import AuditLogResponse
from app.audit.services import AuditService, EntityType

router = APIRouter()


@router.get("/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
async def get_entity_history(
    entity_type: EntityType,
    entity_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """
    Change history of one entity, most recent first.

    Only the caller's organization is searched, so another tenant's
    entity simply has no history.
    """
    return await AuditService(db, tenant).get_entity_history(entity_type, entity_id, limit=limit)
