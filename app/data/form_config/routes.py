"""Client form configuration routes."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant
from app.audit.services import AuditService
from app.data.form_config.models import FormConfig, default_form_config
from app.data.form_config.schemas import FormConfigResponse, FormConfigUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _load_config(db: AsyncSession, tenant: TenantContext):
    result = await db.execute(
        select(FormConfig).where(FormConfig.organization_id == tenant.organization_id)
    )
    return result.scalar_one_or_none()


@router.get("/form-config", response_model=FormConfigResponse)
async def get_form_config(
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the organization's client form configuration.

    Organizations that never saved one get the default sections.
    """
    form_config = await _load_config(db, tenant)
    if form_config is None:
        return FormConfigResponse(config=default_form_config(), is_default=True)
    return FormConfigResponse(config=form_config.config, is_default=False)


@router.put("/form-config", response_model=FormConfigResponse)
async def save_form_config(
    data: FormConfigUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the organization's client form configuration."""
    config = [section.model_dump(exclude_none=True) for section in data.config]
    audit = AuditService(db, tenant)

    form_config = await _load_config(db, tenant)
    if form_config is None:
        form_config = FormConfig(organization_id=tenant.organization_id, config=config)
        db.add(form_config)
        await db.flush()
        await audit.log_create("form_config", form_config.id, {"sections": len(config)})
    else:
        await audit.log_update("form_config", form_config.id, {"config": (form_config.config, config)})
        form_config.config = config

    await db.commit()
    logger.info(f"Saved form config for organization {tenant.organization_id} with {len(config)} sections")
    return FormConfigResponse(config=config, is_default=False)
