"""
Status lifecycle guards for clients, contracts, service agreements and services.

Each transition is a single guarded UPDATE ... WHERE status = :current, so
a transition decided against a stale read matches no row and is reported
instead of silently overwriting a concurrent change. Cross-entity
preconditions (a contract needs an active client) are part of the same
WHERE clause and are re-read at transition time.
"""
import logging
from typing import Dict, FrozenSet, Iterable, Type

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit.services import AuditService
from app.auth.context import TenantContext
from app.data.agreements.models import ServiceAgreement
from app.data.catalog.models import Service
from app.data.clients.models import Client
from app.data.contracts.models import Contract
from app.funding.errors import InvalidStatusTransition, NotEditable, NotFound, PreconditionFailed
from app.funding.provisioning import provision_client_buckets

logger = logging.getLogger(__name__)


class StatusMachine:
    """Allowed transitions of one entity's status field."""

    def __init__(self, entity: str, transitions: Dict[str, Iterable[str]]):
        self.entity = entity
        self.transitions: Dict[str, FrozenSet[str]] = {
            state: frozenset(targets) for state, targets in transitions.items()
        }

    @property
    def states(self) -> FrozenSet[str]:
        found = set(self.transitions)
        for targets in self.transitions.values():
            found |= targets
        return frozenset(found)

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.transitions.get(current, frozenset())

    def allowed_from(self, current: str) -> FrozenSet[str]:
        return self.transitions.get(current, frozenset())

    def check(self, current: str, target: str) -> None:
        if target not in self.states:
            raise InvalidStatusTransition(
                f"'{target}' is not a {self.entity.lower()} status",
                {"current": current, "target": target},
            )
        if not self.can_transition(current, target):
            allowed = ", ".join(sorted(self.allowed_from(current))) or "none"
            raise InvalidStatusTransition(
                f"{self.entity} cannot move from {current} to {target} (allowed: {allowed})",
                {"current": current, "target": target},
            )


CLIENT_LIFECYCLE = StatusMachine("Client", {
    "prospect": ["active"],
    "active": ["deactivated"],
    "deactivated": ["prospect"],
})

CONTRACT_LIFECYCLE = StatusMachine("Contract", {
    "draft": ["active", "expired", "cancelled"],
    "active": ["expired", "cancelled"],
})

AGREEMENT_LIFECYCLE = StatusMachine("Service agreement", {
    "draft": ["current", "expired", "cancelled"],
    "current": ["expired", "cancelled"],
})

SERVICE_LIFECYCLE = StatusMachine("Service", {
    "draft": ["active"],
    "active": ["inactive"],
    "inactive": ["active", "archived"],
})


def ensure_editable(entity: str, status: str, editable_status: str = "draft") -> None:
    """Field and box/bucket edits are only allowed while in draft."""
    if status != editable_status:
        raise NotEditable(
            f"{entity} is {status}; only {editable_status} records can be edited",
            {"status": status},
        )


def ensure_deletable_service(service: Service) -> None:
    if service.status == "archived":
        raise InvalidStatusTransition(
            "Archived services cannot be deleted",
            {"status": service.status},
        )


class LifecycleService:
    """Applies guarded status transitions for one tenant and commits them."""

    def __init__(self, db: AsyncSession, tenant: TenantContext):
        self.db = db
        self.tenant = tenant
        self.audit = AuditService(db, tenant)

    async def transition_client(self, client_id: str, target: str) -> Client:
        client = await self._load(Client, client_id, "Client")
        current = client.status
        CLIENT_LIFECYCLE.check(current, target)

        await self._guarded_update(Client, client_id, current, target)
        if target == "active":
            await provision_client_buckets(self.db, self.tenant, client)

        await self.audit.log_status_change("client", client_id, current, target)
        await self.db.commit()
        await self.db.refresh(client)
        logger.info(f"Client {client_id}: {current} -> {target}")
        return client

    async def transition_contract(self, contract_id: str, target: str) -> Contract:
        contract = await self._load(Contract, contract_id, "Contract")
        current = contract.status
        CONTRACT_LIFECYCLE.check(current, target)

        if target == "active":
            await self._require_active_client(contract.client_id, f"contract {contract.contract_number}")
            client_active = exists().where(
                Client.id == Contract.client_id,
                Client.organization_id == Contract.organization_id,
                Client.status == "active",
            )
            await self._guarded_update(Contract, contract_id, current, target, client_active)
        else:
            await self._guarded_update(Contract, contract_id, current, target)

        await self.audit.log_status_change("contract", contract_id, current, target)
        await self.db.commit()
        await self.db.refresh(contract)
        logger.info(f"Contract {contract.contract_number}: {current} -> {target}")
        return contract

    async def transition_agreement(self, agreement_id: str, target: str) -> ServiceAgreement:
        agreement = await self._load(ServiceAgreement, agreement_id, "Service agreement")
        current = agreement.status
        AGREEMENT_LIFECYCLE.check(current, target)

        if target == "current":
            await self._require_active_client(agreement.client_id, f"agreement {agreement.agreement_number}")
            client_active = exists().where(
                Client.id == ServiceAgreement.client_id,
                Client.organization_id == ServiceAgreement.organization_id,
                Client.status == "active",
            )
            await self._guarded_update(ServiceAgreement, agreement_id, current, target, client_active)
        else:
            await self._guarded_update(ServiceAgreement, agreement_id, current, target)

        await self.audit.log_status_change("service_agreement", agreement_id, current, target)
        await self.db.commit()
        await self.db.refresh(agreement)
        logger.info(f"Agreement {agreement.agreement_number}: {current} -> {target}")
        return agreement

    async def transition_service(self, service_id: str, target: str) -> Service:
        service = await self._load(Service, service_id, "Service")
        current = service.status
        SERVICE_LIFECYCLE.check(current, target)

        await self._guarded_update(Service, service_id, current, target)
        await self.audit.log_status_change("service", service_id, current, target)
        await self.db.commit()
        await self.db.refresh(service)
        return service

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _load(self, model: Type, entity_id: str, label: str):
        result = await self.db.execute(
            select(model).where(model.id == entity_id, model.organization_id == self.tenant.organization_id)
        )
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFound(label, entity_id)
        return entity

    async def _require_active_client(self, client_id: str, subject: str) -> None:
        status = (await self.db.execute(
            select(Client.status).where(
                Client.id == client_id,
                Client.organization_id == self.tenant.organization_id,
            )
        )).scalar_one_or_none()
        if status != "active":
            raise PreconditionFailed(
                f"Cannot activate {subject}: client status is {status}, it must be active",
                {"client_status": status},
            )

    async def _guarded_update(self, model: Type, entity_id: str, current: str, target: str, *conditions) -> None:
        result = await self.db.execute(
            update(model)
            .where(
                model.id == entity_id,
                model.organization_id == self.tenant.organization_id,
                model.status == current,
                *conditions,
            )
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise InvalidStatusTransition(
                f"Status changed while moving from {current} to {target}; reload and retry",
                {"current": current, "target": target},
            )
