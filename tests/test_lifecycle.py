"""
Tests for status lifecycle guards.

The transition tables are checked directly; guarded updates run against a
temporary SQLite database.
"""

import pytest
from decimal import Decimal

from sqlalchemy import select

from app.data import models
from app.funding.errors import (
    InvalidStatusTransition,
    NotEditable,
    NotFound,
    PreconditionFailed,
)
from app.funding.lifecycle import (
    AGREEMENT_LIFECYCLE,
    CLIENT_LIFECYCLE,
    CONTRACT_LIFECYCLE,
    SERVICE_LIFECYCLE,
    LifecycleService,
    ensure_deletable_service,
    ensure_editable,
)


# =============================================================================
# Transition tables
# =============================================================================

class TestTransitionTables:

    @pytest.mark.parametrize("machine,current,target,allowed", [
        (CLIENT_LIFECYCLE, "prospect", "active", True),
        (CLIENT_LIFECYCLE, "active", "deactivated", True),
        (CLIENT_LIFECYCLE, "deactivated", "prospect", True),
        (CLIENT_LIFECYCLE, "prospect", "deactivated", False),
        (CLIENT_LIFECYCLE, "deactivated", "active", False),
        (CONTRACT_LIFECYCLE, "draft", "active", True),
        (CONTRACT_LIFECYCLE, "draft", "cancelled", True),
        (CONTRACT_LIFECYCLE, "active", "expired", True),
        (CONTRACT_LIFECYCLE, "active", "draft", False),
        (CONTRACT_LIFECYCLE, "cancelled", "active", False),
        (AGREEMENT_LIFECYCLE, "draft", "current", True),
        (AGREEMENT_LIFECYCLE, "current", "cancelled", True),
        (AGREEMENT_LIFECYCLE, "expired", "current", False),
        (SERVICE_LIFECYCLE, "draft", "active", True),
        (SERVICE_LIFECYCLE, "active", "inactive", True),
        (SERVICE_LIFECYCLE, "inactive", "active", True),
        (SERVICE_LIFECYCLE, "inactive", "archived", True),
        (SERVICE_LIFECYCLE, "active", "archived", False),
        (SERVICE_LIFECYCLE, "archived", "active", False),
    ])
    def test_can_transition(self, machine, current, target, allowed):
        assert machine.can_transition(current, target) is allowed

    def test_terminal_states_have_no_exits(self):
        assert CONTRACT_LIFECYCLE.allowed_from("cancelled") == frozenset()
        assert SERVICE_LIFECYCLE.allowed_from("archived") == frozenset()

    def test_check_names_allowed_targets(self):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            CLIENT_LIFECYCLE.check("prospect", "deactivated")
        assert "allowed: active" in exc_info.value.message

    def test_check_rejects_unknown_status(self):
        with pytest.raises(InvalidStatusTransition):
            CONTRACT_LIFECYCLE.check("draft", "paused")


class TestEditGuards:

    def test_only_draft_is_editable(self):
        ensure_editable("Contract CT-000001", "draft")
        with pytest.raises(NotEditable):
            ensure_editable("Contract CT-000001", "active")

    def test_archived_service_not_deletable(self):
        ensure_deletable_service(models.Service(status="inactive"))
        with pytest.raises(InvalidStatusTransition):
            ensure_deletable_service(models.Service(status="archived"))


# =============================================================================
# Guarded transitions
# =============================================================================

async def make_contract(db, tenant, client, status="draft"):
    contract = models.Contract(
        organization_id=tenant.organization_id,
        client_id=client.id,
        contract_number="CT-000001",
        name="CT-000001",
        status=status,
        allocation_policy="sum_of_buckets",
    )
    db.add(contract)
    await db.commit()
    return contract


class TestContractTransitions:

    @pytest.mark.asyncio
    async def test_activation_requires_active_client(self, db, tenant, make_client):
        client = await make_client(status="prospect")
        contract = await make_contract(db, tenant, client)

        with pytest.raises(PreconditionFailed) as exc_info:
            await LifecycleService(db, tenant).transition_contract(contract.id, "active")
        assert "prospect" in exc_info.value.message

        status = (await db.execute(
            select(models.Contract.status).where(models.Contract.id == contract.id)
        )).scalar_one()
        assert status == "draft"

    @pytest.mark.asyncio
    async def test_activation_with_active_client(self, db, tenant, make_client):
        client = await make_client(status="active")
        contract = await make_contract(db, tenant, client)

        updated = await LifecycleService(db, tenant).transition_contract(contract.id, "active")
        assert updated.status == "active"

    @pytest.mark.asyncio
    async def test_client_deactivated_between_read_and_write(self, db, session_factory, tenant, make_client):
        client = await make_client(status="active")
        contract = await make_contract(db, tenant, client)
        contract_id = contract.id

        class RacingLifecycle(LifecycleService):
            async def _require_active_client(self, client_id, subject):
                await super()._require_active_client(client_id, subject)
                async with session_factory() as other:
                    await other.execute(
                        models.Client.__table__.update()
                        .where(models.Client.id == client_id)
                        .values(status="deactivated")
                    )
                    await other.commit()

        with pytest.raises(InvalidStatusTransition):
            await RacingLifecycle(db, tenant).transition_contract(contract_id, "active")

        status = (await db.execute(
            select(models.Contract.status).where(models.Contract.id == contract_id)
        )).scalar_one()
        assert status == "draft"

    @pytest.mark.asyncio
    async def test_cancelled_contract_stays_cancelled(self, db, tenant, make_client):
        client = await make_client()
        contract = await make_contract(db, tenant, client, status="cancelled")

        with pytest.raises(InvalidStatusTransition):
            await LifecycleService(db, tenant).transition_contract(contract.id, "active")

    @pytest.mark.asyncio
    async def test_other_tenant_contract_not_found(self, db, tenant, make_client):
        from app.auth.context import TenantContext
        client = await make_client()
        contract = await make_contract(db, tenant, client)

        stranger = TenantContext(organization_id="org_other", user_id="user_other")
        with pytest.raises(NotFound):
            await LifecycleService(db, stranger).transition_contract(contract.id, "cancelled")

    @pytest.mark.asyncio
    async def test_other_tenant_client_is_not_active(self, db, tenant, make_client):
        from app.auth.context import TenantContext
        client = await make_client(status="active")

        stranger = TenantContext(organization_id="org_other", user_id="user_other")
        with pytest.raises(PreconditionFailed) as exc_info:
            await LifecycleService(db, stranger)._require_active_client(client.id, "contract CT-000001")
        assert exc_info.value.details["client_status"] is None


class TestClientTransitions:

    @pytest.mark.asyncio
    async def test_activation_provisions_buckets_once(self, db, tenant, make_client, make_template):
        template = await make_template(starting_amount=Decimal("5000"))
        client = await make_client(status="prospect")
        lifecycle = LifecycleService(db, tenant)

        await lifecycle.transition_client(client.id, "active")
        await lifecycle.transition_client(client.id, "deactivated")
        await lifecycle.transition_client(client.id, "prospect")
        await lifecycle.transition_client(client.id, "active")

        buckets = (await db.execute(
            select(models.ClientBucket).where(models.ClientBucket.client_id == client.id)
        )).scalars().all()
        assert len(buckets) == 1
        assert buckets[0].template_id == template.id
        assert buckets[0].current_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_prospect_cannot_be_deactivated(self, db, tenant, make_client):
        client = await make_client(status="prospect")
        with pytest.raises(InvalidStatusTransition):
            await LifecycleService(db, tenant).transition_client(client.id, "deactivated")


class TestAgreementTransitions:

    @pytest.mark.asyncio
    async def test_agreement_needs_active_client(self, db, tenant, make_client):
        client = await make_client(status="prospect")
        agreement = models.ServiceAgreement(
            organization_id=tenant.organization_id,
            client_id=client.id,
            agreement_number="SA-000001",
            name="Home support",
        )
        db.add(agreement)
        await db.commit()

        with pytest.raises(PreconditionFailed):
            await LifecycleService(db, tenant).transition_agreement(agreement.id, "current")
