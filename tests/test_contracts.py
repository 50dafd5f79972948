"""
Tests for contracts and their funding boxes.
"""

import pytest
from decimal import Decimal

from sqlalchemy import func, select

from app.data import models
from app.data.contracts.schemas import BoxCreate, BoxUpdate, ContractCreate, ContractUpdate
from app.data.contracts.service import ContractService, default_box_name
from app.funding.aggregator import summarize_contract
from app.funding.errors import NotEditable, NotFound, OwnerNotActive
from app.funding.ledger import FundingLedger
from app.funding.lifecycle import LifecycleService

D = Decimal


async def create_contract(db, tenant, client, *boxes):
    boxes = boxes or (BoxCreate(category="draw_down", allocated_amount=D("5000")),)
    return await ContractService(db, tenant).create(ContractCreate(client_id=client.id, boxes=list(boxes)))


# =============================================================================
# Box names
# =============================================================================

class TestDefaultBoxName:

    @pytest.mark.parametrize("category,expected", [
        ("draw_down", "Government Funding"),
        ("fill_up", "To Be Invoiced"),
        ("hybrid", "Service Box"),
    ])
    def test_category_default(self, category, expected):
        assert default_box_name(category, []) == expected

    def test_suffix_when_taken(self):
        assert default_box_name("draw_down", ["Government Funding"]) == "Government Funding 1"
        assert default_box_name("draw_down", ["Government Funding", "Government Funding 1"]) == "Government Funding 2"


# =============================================================================
# Contracts
# =============================================================================

class TestCreateContract:

    @pytest.mark.asyncio
    async def test_opens_boxes(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(
            db, tenant, client,
            BoxCreate(category="draw_down", allocated_amount=D("5000")),
            BoxCreate(category="draw_down", allocated_amount=D("1000")),
            BoxCreate(category="fill_up"),
        )

        assert contract.contract_number == "CT-000001"
        assert contract.name == "CT-000001"
        assert contract.status == "draft"
        names = [box.name for box in contract.boxes]
        assert names == ["Government Funding", "Government Funding 1", "To Be Invoiced"]

        first, _, fill_up = contract.boxes
        assert first.current_balance == D("5000")
        assert first.credit_limit == D("5000")
        assert fill_up.current_balance == D("0")

        summary = summarize_contract(contract)
        assert summary.total_value == D("6000")
        assert summary.counts["fill_up"] == 1

    @pytest.mark.asyncio
    async def test_numbers_increase(self, db, tenant, make_client):
        client = await make_client()
        await create_contract(db, tenant, client)
        second = await create_contract(db, tenant, client)
        assert second.contract_number == "CT-000002"

    @pytest.mark.asyncio
    async def test_number_not_reused_after_deleting_earlier_draft(self, db, tenant, make_client):
        client = await make_client()
        first = await create_contract(db, tenant, client)
        first_id = first.id
        await create_contract(db, tenant, client)
        await ContractService(db, tenant).delete(first_id)

        third = await create_contract(db, tenant, client)
        assert third.contract_number == "CT-000003"

    @pytest.mark.asyncio
    async def test_deactivated_client_rejected(self, db, tenant, make_client):
        client = await make_client(status="deactivated")
        with pytest.raises(OwnerNotActive):
            await create_contract(db, tenant, client)

    @pytest.mark.asyncio
    async def test_prospect_client_allowed(self, db, tenant, make_client):
        client = await make_client(status="prospect")
        contract = await create_contract(db, tenant, client)
        assert contract.status == "draft"


class TestEditContract:

    @pytest.mark.asyncio
    async def test_update_draft(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)

        updated = await ContractService(db, tenant).update(contract.id, ContractUpdate(description="Home care"))
        assert updated.description == "Home care"

    @pytest.mark.asyncio
    async def test_active_contract_not_editable(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        await LifecycleService(db, tenant).transition_contract(contract.id, "active")

        service = ContractService(db, tenant)
        with pytest.raises(NotEditable):
            await service.update(contract.id, ContractUpdate(description="Late change"))
        with pytest.raises(NotEditable):
            await service.update_box(contract.boxes[0].id, BoxUpdate(allocated_amount=D("9000")))

    @pytest.mark.asyncio
    async def test_delete_draft(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        contract_id = contract.id
        box_id = contract.boxes[0].id

        service = ContractService(db, tenant)
        await service.delete(contract_id)

        with pytest.raises(NotFound):
            await service.get(contract_id)
        remaining = (await db.execute(
            select(func.count(models.Transaction.id)).where(models.Transaction.box_id == box_id)
        )).scalar_one()
        assert remaining == 0


# =============================================================================
# Boxes
# =============================================================================

class TestBoxes:

    @pytest.mark.asyncio
    async def test_allocation_change_goes_through_ledger(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        box = contract.boxes[0]

        updated = await ContractService(db, tenant).update_box(box.id, BoxUpdate(allocated_amount=D("6000")))

        assert updated.allocated_amount == D("6000")
        assert updated.credit_limit == D("6000")
        assert updated.current_balance == D("6000")
        history = await FundingLedger(db, tenant).ledger_history(updated)
        assert [t.reference_type for t in history] == ["allocation_adjustment", "opening_balance"]
        assert (await FundingLedger(db, tenant).verify_consistency(updated)).consistent

    @pytest.mark.asyncio
    async def test_fill_up_capacity_follows_allocation(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(
            db, tenant, client,
            BoxCreate(category="fill_up", allocated_amount=D("100")),
        )
        box_id = contract.boxes[0].id
        service = ContractService(db, tenant)

        updated = await service.update_box(box_id, BoxUpdate(allocated_amount=D("500")))
        assert updated.allocated_amount == D("500")
        assert updated.credit_limit == D("500")
        assert updated.current_balance == D("0")

        await LifecycleService(db, tenant).transition_contract(contract.id, "active")
        box = await service.get_box(box_id)
        outcome = await FundingLedger(db, tenant).apply_transaction(box, "credit", "300")
        assert outcome.transaction.amount == D("300")
        assert outcome.unapplied_amount == D("0")
        assert outcome.bucket.current_balance == D("300")

    @pytest.mark.asyncio
    async def test_add_box_names_after_existing(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)

        box = await ContractService(db, tenant).add_box(contract.id, BoxCreate(category="draw_down"))
        assert box.name == "Government Funding 1"
        assert box.position == 1

    @pytest.mark.asyncio
    async def test_untouched_box_is_deleted(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        box_id = contract.boxes[0].id
        service = ContractService(db, tenant)

        assert await service.remove_box(box_id) == "deleted"
        with pytest.raises(NotFound):
            await service.get_box(box_id)

    @pytest.mark.asyncio
    async def test_box_with_movements_is_closed(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        box_id = contract.boxes[0].id
        service = ContractService(db, tenant)
        await service.update_box(box_id, BoxUpdate(allocated_amount=D("4000")))

        assert await service.remove_box(box_id) == "closed"
        status = (await db.execute(
            select(models.ContractBox.status).where(models.ContractBox.id == box_id)
        )).scalar_one()
        assert status == "closed"


class TestBoxTransactions:

    @pytest.mark.asyncio
    async def test_draft_contract_rejects_transactions(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)

        with pytest.raises(OwnerNotActive) as exc_info:
            await FundingLedger(db, tenant).apply_transaction(contract.boxes[0], "debit", "100")
        assert exc_info.value.details["contract_status"] == "draft"

    @pytest.mark.asyncio
    async def test_active_contract_accepts_transactions(self, db, tenant, make_client):
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        box_id = contract.boxes[0].id
        await LifecycleService(db, tenant).transition_contract(contract.id, "active")

        box = await ContractService(db, tenant).get_box(box_id)
        outcome = await FundingLedger(db, tenant).apply_transaction(box, "debit", "1250")

        assert outcome.bucket.current_balance == D("3750")
        assert outcome.transaction.box_id == box_id
        assert outcome.transaction.contract_id == contract.id
        assert outcome.transaction.client_id == client.id

    @pytest.mark.asyncio
    async def test_guards_do_not_see_other_tenant_contract(self, db, tenant, make_client):
        from app.auth.context import TenantContext
        client = await make_client()
        contract = await create_contract(db, tenant, client)
        await LifecycleService(db, tenant).transition_contract(contract.id, "active")
        box = await ContractService(db, tenant).get_box(contract.boxes[0].id)

        stranger = TenantContext(organization_id="org_other", user_id="user_other")
        with pytest.raises(NotFound):
            await FundingLedger(db, stranger)._check_guards(box, None)
