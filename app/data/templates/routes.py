"""Bucket template API routes."""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List, Optional

from app.database import get_db
from app.auth.context import TenantContext
from app.auth.dependencies import get_tenant, require_admin
from app.audit.services import AuditService
from app.data.buckets.models import ClientBucket
from app.data.templates.models import BucketTemplate
from app.data.templates.schemas import (
    BucketCategoryLiteral,
    CharacteristicToggle,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from app.data.queries import get_owned_or_404
from app.funding.characteristics import (
    CharacteristicSet,
    default_characteristics,
    parse_characteristics,
)
from app.funding.errors import InvalidCharacteristics, TemplateInUse

logger = logging.getLogger(__name__)

router = APIRouter()

# Fields that define what provisioned buckets look like
FROZEN_WHEN_IN_USE = ("category", "funding_source", "starting_amount", "credit_limit")


def _checked_characteristics(characteristics: CharacteristicSet, category: str) -> CharacteristicSet:
    misplaced = characteristics.not_applicable_to(category)
    if misplaced:
        raise InvalidCharacteristics(
            f"Characteristics not applicable to {category} buckets: {', '.join(misplaced)}",
            {"characteristics": misplaced, "category": category},
        )
    return characteristics


async def _buckets_using(db: AsyncSession, template_id: str) -> int:
    result = await db.execute(
        select(func.count(ClientBucket.id)).where(ClientBucket.template_id == template_id)
    )
    return result.scalar_one()


@router.post("/bucket-templates", response_model=TemplateResponse, status_code=201)
async def create_template(
    data: TemplateCreate,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a bucket template."""
    if data.characteristics is None:
        characteristics = default_characteristics(data.category)
    else:
        characteristics = _checked_characteristics(CharacteristicSet(data.characteristics), data.category)

    template = BucketTemplate(
        organization_id=tenant.organization_id,
        name=data.name,
        description=data.description,
        category=data.category,
        funding_source=data.funding_source,
        starting_amount=data.starting_amount,
        credit_limit=data.credit_limit,
        characteristics=characteristics.to_json(),
        is_active=data.is_active,
        auto_provision=data.auto_provision,
    )
    db.add(template)
    await db.flush()
    await AuditService(db, tenant).log_create("bucket_template", template.id, {"name": template.name})
    await db.commit()
    await db.refresh(template)
    return template


@router.get("/bucket-templates", response_model=List[TemplateResponse])
async def get_templates(
    category: Optional[BucketCategoryLiteral] = Query(default=None),
    active_only: bool = Query(default=False),
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get the organization's bucket templates."""
    query = select(BucketTemplate).where(BucketTemplate.organization_id == tenant.organization_id)
    if category:
        query = query.where(BucketTemplate.category == category)
    if active_only:
        query = query.where(BucketTemplate.is_active == True)
    result = await db.execute(query.order_by(BucketTemplate.name))
    return result.scalars().all()


@router.get("/bucket-templates/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    tenant: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Get a single bucket template."""
    return await get_owned_or_404(db, BucketTemplate, tenant, template_id, "Bucket template")


@router.put("/bucket-templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    data: TemplateUpdate,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update a template.

    Once any bucket was provisioned from it, only descriptive fields and
    characteristics may change.
    """
    template = await get_owned_or_404(db, BucketTemplate, tenant, template_id, "Bucket template")
    update_data = data.model_dump(exclude_unset=True)

    frozen = [
        field for field in FROZEN_WHEN_IN_USE
        if field in update_data and update_data[field] != getattr(template, field)
    ]
    if frozen:
        in_use = await _buckets_using(db, template.id)
        if in_use:
            raise TemplateInUse(
                f"{template.name} is used by {in_use} buckets; {', '.join(frozen)} cannot change",
                {"fields": frozen, "bucket_count": in_use},
            )

    category = update_data.get("category", template.category)
    if "characteristics" in update_data:
        update_data["characteristics"] = _checked_characteristics(
            CharacteristicSet(data.characteristics), category
        ).to_json()
    elif "category" in update_data:
        _checked_characteristics(parse_characteristics(template.characteristics), category)

    changes = {}
    for field, value in update_data.items():
        changes[field] = (getattr(template, field), value)
        setattr(template, field, value)

    await AuditService(db, tenant).log_update("bucket_template", template.id, changes)
    await db.commit()
    await db.refresh(template)
    return template


@router.post("/bucket-templates/{template_id}/duplicate", response_model=TemplateResponse, status_code=201)
async def duplicate_template(
    template_id: str,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Copy a template as "<name> (Copy)"."""
    source = await get_owned_or_404(db, BucketTemplate, tenant, template_id, "Bucket template")
    copy = BucketTemplate(
        organization_id=tenant.organization_id,
        name=f"{source.name} (Copy)",
        description=source.description,
        category=source.category,
        funding_source=source.funding_source,
        starting_amount=source.starting_amount,
        credit_limit=source.credit_limit,
        characteristics=list(source.characteristics or []),
        is_active=source.is_active,
        auto_provision=source.auto_provision,
    )
    db.add(copy)
    await db.commit()
    await db.refresh(copy)
    return copy


@router.post(
    "/bucket-templates/{template_id}/characteristics/{characteristic_id}/toggle",
    response_model=TemplateResponse,
)
async def toggle_characteristic(
    template_id: str,
    characteristic_id: str,
    data: CharacteristicToggle,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Switch one characteristic on or off. Allowed even while the template is in use."""
    template = await get_owned_or_404(db, BucketTemplate, tenant, template_id, "Bucket template")
    before = template.characteristics
    template.characteristics = parse_characteristics(before).toggled(characteristic_id, data.enabled).to_json()

    await AuditService(db, tenant).log_update(
        "bucket_template", template.id, {f"characteristics.{characteristic_id}.enabled": (not data.enabled, data.enabled)}
    )
    await db.commit()
    await db.refresh(template)
    return template


@router.delete("/bucket-templates/{template_id}")
async def delete_template(
    template_id: str,
    tenant: TenantContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an unused template. Templates in use should be deactivated instead."""
    template = await get_owned_or_404(db, BucketTemplate, tenant, template_id, "Bucket template")
    in_use = await _buckets_using(db, template.id)
    if in_use:
        raise TemplateInUse(
            f"{template.name} is used by {in_use} buckets; set is_active to false instead",
            {"bucket_count": in_use},
        )

    await AuditService(db, tenant).log_delete("bucket_template", template.id, {"name": template.name})
    await db.delete(template)
    await db.commit()
    logger.info(f"Deleted bucket template {template_id}")
    return {"message": "Bucket template deleted successfully"}
