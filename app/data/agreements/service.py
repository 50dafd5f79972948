"""
Service agreement operations.

Saving an agreement is deliberately two separate commits:

    1. core fields (name, dates, allocation policy)  -> COMMIT
    2. extended fields (review date, billing terms)   -> COMMIT, or ROLLBACK of step 2 only

A failure in step 2 never undoes step 1; the result reports each step so
the caller can tell the user which part was kept.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit.services import AuditService
from app.auth.context import TenantContext
from app.data.agreements.models import AgreementBucket, ServiceAgreement
from app.data.agreements.schemas import (
    AgreementBucketLink,
    AgreementCreate,
    AgreementExtendedFields,
    AgreementSave,
)
from app.data.buckets.models import ClientBucket
from app.data.clients.models import Client
from app.data.queries import sequence_after
from app.data.templates.models import BucketTemplate
from app.funding.aggregator import FundingSummary, summarize_agreement
from app.funding.errors import (
    FundingError,
    LedgerValidationError,
    NotFound,
    OwnerNotActive,
    PreconditionFailed,
)
from app.funding.lifecycle import ensure_editable

logger = logging.getLogger(__name__)

CORE_FIELDS = ("name", "description", "allocation_policy", "fixed_total_value", "start_date", "end_date")


@dataclass
class AgreementSaveResult:
    agreement: ServiceAgreement
    core_saved: bool
    extended_saved: bool
    extended_error: Optional[str] = None


def _check_dates(start, end) -> None:
    if start and end and end < start:
        raise LedgerValidationError("End date must be on or after the start date", {"start_date": start, "end_date": end})


class AgreementService:
    """Service agreement operations for one tenant."""

    def __init__(self, db: AsyncSession, tenant: TenantContext):
        self.db = db
        self.tenant = tenant
        self.audit = AuditService(db, tenant)

    async def get(self, agreement_id: str) -> ServiceAgreement:
        result = await self.db.execute(
            select(ServiceAgreement).where(
                ServiceAgreement.id == agreement_id,
                ServiceAgreement.organization_id == self.tenant.organization_id,
            )
        )
        agreement = result.scalar_one_or_none()
        if agreement is None:
            raise NotFound("Service agreement", agreement_id)
        return agreement

    async def next_agreement_number(self) -> str:
        highest = (await self.db.execute(
            select(func.max(ServiceAgreement.agreement_number)).where(
                ServiceAgreement.organization_id == self.tenant.organization_id
            )
        )).scalar_one_or_none()
        return f"SA-{sequence_after(highest):06d}"

    async def create(self, data: AgreementCreate) -> ServiceAgreement:
        client = (await self.db.execute(
            select(Client).where(Client.id == data.client_id, Client.organization_id == self.tenant.organization_id)
        )).scalar_one_or_none()
        if client is None:
            raise NotFound("Client", data.client_id)
        if client.status != "active":
            raise OwnerNotActive(
                f"Client is {client.status}; agreements can only be created for active clients",
                {"client_status": client.status},
            )
        _check_dates(data.start_date, data.end_date)

        agreement = ServiceAgreement(
            organization_id=self.tenant.organization_id,
            client_id=client.id,
            agreement_number=await self.next_agreement_number(),
            name=data.name,
            description=data.description,
            status="draft",
            allocation_policy=data.allocation_policy,
            fixed_total_value=data.fixed_total_value,
            start_date=data.start_date,
            end_date=data.end_date,
            review_date=data.review_date,
            billing_frequency=data.billing_frequency,
            notes=data.notes,
            extra_terms=data.extra_terms,
            buckets=[],
        )
        self.db.add(agreement)
        await self.db.flush()

        for link in data.buckets:
            await self._link_bucket(agreement, link)

        await self.audit.log_create("service_agreement", agreement.id, {"agreement_number": agreement.agreement_number})
        await self.db.commit()
        await self.db.refresh(agreement)
        logger.info(f"Created agreement {agreement.agreement_number} for client {client.id}")
        return agreement

    async def save(self, agreement_id: str, data: AgreementSave) -> AgreementSaveResult:
        """Commit core fields, then attempt extended fields independently."""
        agreement = await self.get(agreement_id)
        ensure_editable(f"Agreement {agreement.agreement_number}", agreement.status)

        core = data.model_dump(include=set(CORE_FIELDS), exclude_unset=True)
        _check_dates(core.get("start_date", agreement.start_date), core.get("end_date", agreement.end_date))
        changes = {}
        for field, value in core.items():
            changes[field] = (getattr(agreement, field), value)
            setattr(agreement, field, value)
        await self.audit.log_update("service_agreement", agreement.id, changes)
        await self.db.commit()

        if data.extended is None:
            await self.db.refresh(agreement)
            return AgreementSaveResult(agreement=agreement, core_saved=True, extended_saved=False)

        try:
            await self._save_extended(agreement, data.extended)
        except (SQLAlchemyError, FundingError) as e:
            await self.db.rollback()
            logger.warning(f"Agreement {agreement_id}: core fields saved, extended fields skipped: {e}")
            await self.db.refresh(agreement)
            return AgreementSaveResult(
                agreement=agreement,
                core_saved=True,
                extended_saved=False,
                extended_error=getattr(e, "message", None) or str(e),
            )

        await self.db.refresh(agreement)
        return AgreementSaveResult(agreement=agreement, core_saved=True, extended_saved=True)

    async def _save_extended(self, agreement: ServiceAgreement, extended: AgreementExtendedFields) -> None:
        values = extended.model_dump(exclude_unset=True)
        review_date = values.get("review_date")
        if review_date and agreement.start_date and review_date < agreement.start_date:
            raise LedgerValidationError(
                "Review date must not be before the agreement starts",
                {"review_date": review_date, "start_date": agreement.start_date},
            )
        changes = {}
        for field, value in values.items():
            changes[field] = (getattr(agreement, field), value)
            setattr(agreement, field, value)
        await self.audit.log_update("service_agreement", agreement.id, changes, notes="extended fields")
        await self.db.commit()

    async def add_bucket(self, agreement_id: str, link: AgreementBucketLink) -> ServiceAgreement:
        agreement = await self.get(agreement_id)
        ensure_editable(f"Agreement {agreement.agreement_number}", agreement.status)
        await self._link_bucket(agreement, link)
        await self.db.commit()
        await self.db.refresh(agreement)
        return agreement

    async def remove_bucket(self, agreement_id: str, bucket_id: str) -> ServiceAgreement:
        agreement = await self.get(agreement_id)
        ensure_editable(f"Agreement {agreement.agreement_number}", agreement.status)
        link = next((l for l in agreement.buckets if l.bucket_id == bucket_id), None)
        if link is None:
            raise NotFound("Agreement bucket", bucket_id)
        agreement.buckets.remove(link)
        await self.db.commit()
        await self.db.refresh(agreement)
        return agreement

    async def summary(self, agreement: ServiceAgreement) -> FundingSummary:
        bucket_ids = [link.bucket_id for link in agreement.buckets]
        buckets: Dict[str, ClientBucket] = {}
        templates: Dict[str, BucketTemplate] = {}
        if bucket_ids:
            rows = (await self.db.execute(
                select(ClientBucket).where(ClientBucket.id.in_(bucket_ids))
            )).scalars().all()
            buckets = {b.id: b for b in rows}
            template_ids = [b.template_id for b in rows if b.template_id]
            if template_ids:
                template_rows = (await self.db.execute(
                    select(BucketTemplate).where(BucketTemplate.id.in_(template_ids))
                )).scalars().all()
                templates = {t.id: t for t in template_rows}
        return summarize_agreement(agreement, buckets, templates)

    async def list(self, client_id: Optional[str] = None, status: Optional[str] = None) -> List[ServiceAgreement]:
        query = select(ServiceAgreement).where(ServiceAgreement.organization_id == self.tenant.organization_id)
        if client_id:
            query = query.where(ServiceAgreement.client_id == client_id)
        if status:
            query = query.where(ServiceAgreement.status == status)
        result = await self.db.execute(query.order_by(ServiceAgreement.agreement_number))
        return list(result.scalars().all())

    async def _link_bucket(self, agreement: ServiceAgreement, link: AgreementBucketLink) -> None:
        bucket = (await self.db.execute(
            select(ClientBucket).where(
                ClientBucket.id == link.bucket_id,
                ClientBucket.organization_id == self.tenant.organization_id,
            )
        )).scalar_one_or_none()
        if bucket is None:
            raise NotFound("Bucket", link.bucket_id)
        if bucket.client_id != agreement.client_id:
            raise PreconditionFailed(
                "Bucket belongs to a different client",
                {"bucket_id": bucket.id},
            )
        if bucket.status != "active":
            raise PreconditionFailed(f"{bucket.name} is {bucket.status}", {"bucket_id": bucket.id})
        if any(existing.bucket_id == bucket.id for existing in agreement.buckets):
            raise PreconditionFailed(f"{bucket.name} is already part of this agreement", {"bucket_id": bucket.id})

        agreement.buckets.append(AgreementBucket(
            bucket_id=bucket.id,
            custom_name=link.custom_name,
            custom_amount=link.custom_amount,
            notes=link.notes,
        ))
        await self.db.flush()
