"""Create live client buckets from bucket templates."""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import TenantContext
from app.data.buckets.models import ClientBucket
from app.data.clients.models import Client
from app.data.templates.models import BucketTemplate
from app.funding.characteristics import BucketCategory, parse_characteristics
from app.funding.ledger import RESET_INTERVALS, FundingLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _opening_allocation(template: BucketTemplate, client: Client) -> Decimal:
    category = BucketCategory(template.category)
    if template.starting_amount:
        return Decimal(template.starting_amount)
    if (
        category == BucketCategory.DRAW_DOWN
        and (template.funding_source or "").lower() == "government"
        and client.plan_budget
    ):
        return Decimal(client.plan_budget)
    return ZERO


def bucket_from_template(
    tenant: TenantContext,
    template: BucketTemplate,
    client: Client,
    name: Optional[str] = None,
    allocated_amount: Optional[Decimal] = None,
    today: Optional[date] = None,
) -> ClientBucket:
    """Unsaved ClientBucket carrying a snapshot of the template."""
    today = today or date.today()
    category = BucketCategory(template.category)
    characteristics = parse_characteristics(template.characteristics).applicable_to(category)
    allocated = Decimal(allocated_amount) if allocated_amount is not None else _opening_allocation(template, client)

    if category == BucketCategory.DRAW_DOWN:
        credit_limit = allocated
    else:
        credit_limit = Decimal(template.credit_limit or 0)

    period_start = period_end = None
    if category == BucketCategory.DRAW_DOWN:
        period_start = today
        timer = characteristics.get("reset-timer")
        if timer:
            period_end = today + RESET_INTERVALS[timer.config.reset_frequency]
        else:
            period_end = today + relativedelta(years=1)

    return ClientBucket(
        organization_id=tenant.organization_id,
        client_id=client.id,
        template_id=template.id,
        name=name or template.name,
        funding_source=template.funding_source,
        category=category.value,
        allocated_amount=allocated,
        credit_limit=credit_limit,
        current_balance=ZERO,
        spent_amount=ZERO,
        characteristics=characteristics.to_json(),
        status="active",
        version=0,
        rollover_count=0,
        period_start=period_start,
        period_end=period_end,
    )


async def create_bucket(
    db: AsyncSession,
    tenant: TenantContext,
    template: BucketTemplate,
    client: Client,
    name: Optional[str] = None,
    allocated_amount: Optional[Decimal] = None,
) -> ClientBucket:
    """Add a bucket and its opening entry to the current unit of work."""
    bucket = bucket_from_template(tenant, template, client, name=name, allocated_amount=allocated_amount)
    db.add(bucket)
    await FundingLedger(db, tenant, source="system").open_balance(bucket, client.id)
    return bucket


async def provision_client_buckets(db: AsyncSession, tenant: TenantContext, client: Client) -> List[ClientBucket]:
    """
    Provision one bucket per active auto-provision template.

    Templates the client already has an active bucket for are skipped, so
    re-activating a client does not duplicate funding.
    """
    templates = (await db.execute(
        select(BucketTemplate)
        .where(
            BucketTemplate.organization_id == tenant.organization_id,
            BucketTemplate.is_active == True,
            BucketTemplate.auto_provision == True,
        )
        .order_by(BucketTemplate.created_at)
    )).scalars().all()

    existing = set((await db.execute(
        select(ClientBucket.template_id).where(
            ClientBucket.client_id == client.id,
            ClientBucket.status == "active",
        )
    )).scalars().all())

    created = []
    for template in templates:
        if template.id in existing:
            continue
        created.append(await create_bucket(db, tenant, template, client))

    if created:
        logger.info(f"Provisioned {len(created)} buckets for client {client.id}")
    return created
