"""
Tests for service agreements: creation guards, bucket links, and the
two-step save where extended fields may fail without losing core fields.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.data.agreements.schemas import (
    AgreementBucketLink,
    AgreementCreate,
    AgreementExtendedFields,
    AgreementSave,
)
from app.data.agreements.service import AgreementService
from app.funding.errors import NotEditable, NotFound, OwnerNotActive, PreconditionFailed
from app.funding.lifecycle import LifecycleService

D = Decimal


# =============================================================================
# Creation
# =============================================================================

class TestCreateAgreement:

    @pytest.mark.asyncio
    async def test_requires_active_client(self, db, tenant, make_client):
        client = await make_client(status="prospect")
        with pytest.raises(OwnerNotActive):
            await AgreementService(db, tenant).create(AgreementCreate(client_id=client.id, name="Home support"))

    @pytest.mark.asyncio
    async def test_numbering(self, db, tenant, make_client):
        client = await make_client()
        service = AgreementService(db, tenant)
        first = await service.create(AgreementCreate(client_id=client.id, name="Home support"))
        second = await service.create(AgreementCreate(client_id=client.id, name="Respite"))

        assert first.agreement_number == "SA-000001"
        assert second.agreement_number == "SA-000002"
        assert first.status == "draft"

    @pytest.mark.asyncio
    async def test_summary_over_linked_buckets(self, db, tenant, make_client, make_bucket):
        client = await make_client()
        government = await make_bucket(allocated="10000", client=client)
        private = await make_bucket(allocated="2000", client=client, name="Private")
        service = AgreementService(db, tenant)

        agreement = await service.create(AgreementCreate(
            client_id=client.id,
            name="Home support",
            buckets=[
                AgreementBucketLink(bucket_id=government.id),
                AgreementBucketLink(bucket_id=private.id, custom_amount=D("500")),
            ],
        ))
        summary = await service.summary(agreement)

        assert summary.total_value == D("10500")
        assert summary.item_count == 2

    @pytest.mark.asyncio
    async def test_fixed_allocation(self, db, tenant, make_client, make_bucket):
        client = await make_client()
        bucket = await make_bucket(allocated="10000", client=client)
        service = AgreementService(db, tenant)

        agreement = await service.create(AgreementCreate(
            client_id=client.id,
            name="Capped",
            allocation_policy="fixed_allocation",
            fixed_total_value=D("7500"),
            buckets=[AgreementBucketLink(bucket_id=bucket.id)],
        ))
        assert (await service.summary(agreement)).total_value == D("7500")

    @pytest.mark.asyncio
    async def test_other_clients_bucket_rejected(self, db, tenant, make_client, make_bucket):
        client = await make_client()
        stranger_bucket = await make_bucket()

        with pytest.raises(PreconditionFailed):
            await AgreementService(db, tenant).create(AgreementCreate(
                client_id=client.id,
                name="Home support",
                buckets=[AgreementBucketLink(bucket_id=stranger_bucket.id)],
            ))


# =============================================================================
# Bucket links
# =============================================================================

class TestBucketLinks:

    @pytest.mark.asyncio
    async def test_add_and_remove(self, db, tenant, make_client, make_bucket):
        client = await make_client()
        bucket = await make_bucket(client=client)
        service = AgreementService(db, tenant)
        agreement = await service.create(AgreementCreate(client_id=client.id, name="Home support"))

        agreement = await service.add_bucket(agreement.id, AgreementBucketLink(bucket_id=bucket.id))
        assert [link.bucket_id for link in agreement.buckets] == [bucket.id]

        with pytest.raises(PreconditionFailed):
            await service.add_bucket(agreement.id, AgreementBucketLink(bucket_id=bucket.id))

        agreement = await service.remove_bucket(agreement.id, bucket.id)
        assert agreement.buckets == []

    @pytest.mark.asyncio
    async def test_remove_unlinked(self, db, tenant, make_client):
        client = await make_client()
        service = AgreementService(db, tenant)
        agreement = await service.create(AgreementCreate(client_id=client.id, name="Home support"))

        with pytest.raises(NotFound):
            await service.remove_bucket(agreement.id, "bucket_missing")


# =============================================================================
# Two-step save
# =============================================================================

class TestSaveAgreement:

    @pytest.mark.asyncio
    async def test_core_and_extended_saved(self, db, tenant, make_client):
        client = await make_client()
        service = AgreementService(db, tenant)
        agreement = await service.create(AgreementCreate(client_id=client.id, name="Home support"))

        result = await service.save(agreement.id, AgreementSave(
            name="Home support 2026",
            extended=AgreementExtendedFields(billing_frequency="monthly"),
        ))

        assert result.core_saved and result.extended_saved
        assert result.agreement.name == "Home support 2026"
        assert result.agreement.billing_frequency == "monthly"

    @pytest.mark.asyncio
    async def test_extended_failure_keeps_core(self, db, tenant, make_client):
        client = await make_client()
        service = AgreementService(db, tenant)
        agreement = await service.create(AgreementCreate(client_id=client.id, name="Home support"))

        result = await service.save(agreement.id, AgreementSave(
            name="Renamed",
            start_date=date(2026, 7, 1),
            extended=AgreementExtendedFields(review_date=date(2026, 1, 1)),
        ))

        assert result.core_saved is True
        assert result.extended_saved is False
        assert "Review date" in result.extended_error

        reloaded = await service.get(agreement.id)
        assert reloaded.name == "Renamed"
        assert reloaded.start_date == date(2026, 7, 1)
        assert reloaded.review_date is None

    @pytest.mark.asyncio
    async def test_current_agreement_not_editable(self, db, tenant, make_client):
        client = await make_client()
        service = AgreementService(db, tenant)
        agreement = await service.create(AgreementCreate(client_id=client.id, name="Home support"))
        await LifecycleService(db, tenant).transition_agreement(agreement.id, "current")

        with pytest.raises(NotEditable):
            await service.save(agreement.id, AgreementSave(name="Too late"))
