"""Contract and contract box operations."""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit.services import AuditService
from app.auth.context import TenantContext
from app.data.clients.models import Client
from app.data.contracts.models import Contract, ContractBox
from app.data.contracts.schemas import BoxCreate, BoxUpdate, ContractCreate, ContractUpdate
from app.data.queries import sequence_after
from app.data.transactions.models import Transaction
from app.funding.characteristics import BucketCategory, default_characteristics
from app.funding.errors import (
    BucketNotActive,
    ConcurrentModification,
    LedgerValidationError,
    NotFound,
    OwnerNotActive,
)
from app.funding.ledger import FundingLedger
from app.funding.lifecycle import ensure_editable

logger = logging.getLogger(__name__)

DEFAULT_BOX_NAMES = {
    BucketCategory.DRAW_DOWN: "Government Funding",
    BucketCategory.FILL_UP: "To Be Invoiced",
    BucketCategory.HYBRID: "Service Box",
}


def default_box_name(category: str, taken: List[str]) -> str:
    """Category default, suffixed " 1", " 2", ... when already used in the contract."""
    base = DEFAULT_BOX_NAMES[BucketCategory(category)]
    if base not in taken:
        return base
    n = 1
    while f"{base} {n}" in taken:
        n += 1
    return f"{base} {n}"


class ContractService:
    """Contract operations for one tenant."""

    def __init__(self, db: AsyncSession, tenant: TenantContext):
        self.db = db
        self.tenant = tenant
        self.audit = AuditService(db, tenant)
        self.ledger = FundingLedger(db, tenant)

    async def get(self, contract_id: str) -> Contract:
        result = await self.db.execute(
            select(Contract).where(
                Contract.id == contract_id,
                Contract.organization_id == self.tenant.organization_id,
            )
        )
        contract = result.scalar_one_or_none()
        if contract is None:
            raise NotFound("Contract", contract_id)
        return contract

    async def get_box(self, box_id: str) -> ContractBox:
        result = await self.db.execute(
            select(ContractBox).where(
                ContractBox.id == box_id,
                ContractBox.organization_id == self.tenant.organization_id,
            )
        )
        box = result.scalar_one_or_none()
        if box is None:
            raise NotFound("Contract box", box_id)
        return box

    async def list(self, client_id: Optional[str] = None, status: Optional[str] = None) -> List[Contract]:
        query = select(Contract).where(Contract.organization_id == self.tenant.organization_id)
        if client_id:
            query = query.where(Contract.client_id == client_id)
        if status:
            query = query.where(Contract.status == status)
        result = await self.db.execute(query.order_by(Contract.contract_number))
        return list(result.scalars().all())

    async def next_contract_number(self) -> str:
        """One past the highest number issued in the organization; deleted drafts leave gaps."""
        highest = (await self.db.execute(
            select(func.max(Contract.contract_number)).where(
                Contract.organization_id == self.tenant.organization_id
            )
        )).scalar_one_or_none()
        return f"CT-{sequence_after(highest):06d}"

    async def create(self, data: ContractCreate) -> Contract:
        """Create a draft contract and open each of its boxes."""
        client = (await self.db.execute(
            select(Client).where(Client.id == data.client_id, Client.organization_id == self.tenant.organization_id)
        )).scalar_one_or_none()
        if client is None:
            raise NotFound("Client", data.client_id)
        if client.status == "deactivated":
            raise OwnerNotActive(
                "Contracts cannot be created for deactivated clients",
                {"client_status": client.status},
            )
        if data.start_date and data.end_date and data.end_date < data.start_date:
            raise LedgerValidationError("End date must be on or after the start date")

        number = await self.next_contract_number()
        contract = Contract(
            organization_id=self.tenant.organization_id,
            client_id=client.id,
            contract_number=number,
            name=number,
            description=data.description,
            status="draft",
            allocation_policy=data.allocation_policy,
            fixed_total_value=data.fixed_total_value,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        self.db.add(contract)
        await self.db.flush()

        taken: List[str] = []
        for position, box_data in enumerate(data.boxes):
            box = await self._open_box(contract, box_data, position, taken)
            taken.append(box.name)

        await self.audit.log_create("contract", contract.id, {"contract_number": number, "boxes": len(taken)})
        await self.db.commit()
        await self.db.refresh(contract)
        logger.info(f"Created contract {number} for client {client.id} with {len(taken)} boxes")
        return contract

    async def update(self, contract_id: str, data: ContractUpdate) -> Contract:
        contract = await self.get(contract_id)
        ensure_editable(f"Contract {contract.contract_number}", contract.status)

        update_data = data.model_dump(exclude_unset=True)
        start = update_data.get("start_date", contract.start_date)
        end = update_data.get("end_date", contract.end_date)
        if start and end and end < start:
            raise LedgerValidationError("End date must be on or after the start date")

        changes = {}
        for field, value in update_data.items():
            changes[field] = (getattr(contract, field), value)
            setattr(contract, field, value)
        await self.audit.log_update("contract", contract.id, changes)
        await self.db.commit()
        await self.db.refresh(contract)
        return contract

    async def delete(self, contract_id: str) -> None:
        """Delete a draft contract with its boxes and their opening entries."""
        contract = await self.get(contract_id)
        ensure_editable(f"Contract {contract.contract_number}", contract.status)
        box_ids = [box.id for box in contract.boxes]
        if box_ids:
            await self.db.execute(
                Transaction.__table__.delete().where(Transaction.box_id.in_(box_ids))
            )
        for box in contract.boxes:
            await self.db.delete(box)
        await self.audit.log_delete("contract", contract.id, {"contract_number": contract.contract_number})
        await self.db.delete(contract)
        await self.db.commit()

    # ==========================================================================
    # Boxes
    # ==========================================================================

    async def add_box(self, contract_id: str, data: BoxCreate) -> ContractBox:
        contract = await self.get(contract_id)
        ensure_editable(f"Contract {contract.contract_number}", contract.status)
        taken = [box.name for box in contract.boxes]
        position = max((box.position for box in contract.boxes), default=-1) + 1
        box = await self._open_box(contract, data, position, taken)
        await self.audit.log_create("contract_box", box.id, {"contract_id": contract.id, "category": box.category})
        await self.db.commit()
        await self.db.refresh(box)
        return box

    async def update_box(self, box_id: str, data: BoxUpdate) -> ContractBox:
        box = await self.get_box(box_id)
        contract = await self.get(box.contract_id)
        ensure_editable(f"Contract {contract.contract_number}", contract.status)

        update_data = data.model_dump(exclude_unset=True)
        new_allocated = update_data.pop("allocated_amount", None)
        changes = {}
        for field, value in update_data.items():
            changes[field] = (getattr(box, field), value)
            setattr(box, field, value)

        if new_allocated is not None and Decimal(new_allocated) != Decimal(box.allocated_amount or 0):
            changes["allocated_amount"] = (box.allocated_amount, new_allocated)
            await self.ledger.adjust_allocation(box, new_allocated, contract.client_id)

        await self.audit.log_update("contract_box", box.id, changes)
        await self.db.commit()
        await self.db.refresh(box)
        return box

    async def remove_box(self, box_id: str) -> str:
        """
        Remove a box from a draft contract.

        A box holding only its opening entry is deleted; a box with any
        other movement is closed so its ledger stays intact.
        """
        box = await self.get_box(box_id)
        contract = await self.get(box.contract_id)
        ensure_editable(f"Contract {contract.contract_number}", contract.status)

        movements = (await self.db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.box_id == box.id,
                Transaction.reference_type != "opening_balance",
            )
        )).scalar_one()

        if movements:
            result = await self.db.execute(
                update(ContractBox)
                .where(ContractBox.id == box.id, ContractBox.version == box.version, ContractBox.status == "active")
                .values(status="closed", version=ContractBox.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                if box.status != "active":
                    raise BucketNotActive(f"{box.name} is already {box.status}", {"status": box.status})
                raise ConcurrentModification(f"Contract box {box.id} was modified concurrently; please retry")
            await self.audit.log_status_change("contract_box", box.id, "active", "closed")
            outcome = "closed"
        else:
            await self.db.execute(Transaction.__table__.delete().where(Transaction.box_id == box.id))
            await self.audit.log_delete("contract_box", box.id, {"name": box.name})
            await self.db.delete(box)
            outcome = "deleted"

        await self.db.commit()
        logger.info(f"Contract box {box_id} {outcome}")
        return outcome

    async def _open_box(self, contract: Contract, data: BoxCreate, position: int, taken: List[str]) -> ContractBox:
        category = BucketCategory(data.category)
        allocated = Decimal(data.allocated_amount or 0)
        box = ContractBox(
            organization_id=self.tenant.organization_id,
            contract_id=contract.id,
            name=data.name or default_box_name(category.value, taken),
            description=data.description,
            position=position,
            service_category=data.service_category,
            category=category.value,
            allocated_amount=allocated,
            credit_limit=allocated,
            current_balance=Decimal("0"),
            spent_amount=Decimal("0"),
            characteristics=default_characteristics(category).to_json(),
            status="active",
            version=0,
            rollover_count=0,
        )
        self.db.add(box)
        await self.ledger.open_balance(box, contract.client_id)
        return box
