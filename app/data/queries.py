"""Tenant-scoped lookups shared by the data routes."""
from typing import Optional, Type, TypeVar

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import TenantContext

M = TypeVar("M")


async def get_owned_or_404(db: AsyncSession, model: Type[M], tenant: TenantContext, entity_id: str, label: str) -> M:
    """
    Fetch a record belonging to the caller's organization.

    Records of other organizations are reported exactly like missing ones.
    """
    result = await db.execute(
        select(model).where(
            model.id == entity_id,
            model.organization_id == tenant.organization_id,
        )
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return entity


def sequence_after(highest: Optional[str]) -> int:
    """Next sequence for a prefixed number such as "CT-000041"; 1 when none exist."""
    if not highest:
        return 1
    return int(highest.rsplit("-", 1)[-1]) + 1
