"""
Funding Ledger - the only code path that writes a bucket's balance.

Every change to a client bucket or contract box goes through here:

    load fresh row -> guard owner/status -> plan_posting (pure)
        -> conditional UPDATE ... WHERE version = :seen  (compare-and-swap)
        -> INSERT transaction with balance_after
        -> follow-ups (overflow, auto-invoice), alerts, audit
        -> COMMIT

If the conditional update matches no row another request got there first:
the unit of work is rolled back, the row re-read, and the whole attempt
re-planned against the new balance, up to LEDGER_MAX_RETRIES times.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.audit.services import AuditService
from app.auth.context import TenantContext
from app.config import settings
from app.data.agreements.models import ServiceAgreement
from app.data.buckets.models import BucketAlert, ClientBucket
from app.data.clients.models import Client
from app.data.contracts.models import Contract, ContractBox
from app.data.transactions.models import Transaction
from app.funding.characteristics import BucketCategory, parse_characteristics
from app.funding.errors import (
    BucketNotActive,
    CapacityReached,
    ConcurrentModification,
    FundingError,
    InsufficientFunds,
    NotFound,
    OwnerNotActive,
    ResetNotConfigured,
    ResetNotDue,
)
from app.funding.rules import ZERO, BalanceState, plan_posting, to_amount, utilization
from app.funding.thresholds import evaluate_thresholds

logger = logging.getLogger(__name__)

LedgerContainer = Union[ClientBucket, ContractBox]
T = TypeVar("T")

RESET_INTERVALS = {
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "annually": relativedelta(years=1),
}


class _StaleVersion(Exception):
    """The compare-and-swap matched no row."""


@dataclass
class _Owner:
    client_id: str
    contract_id: Optional[str] = None


@dataclass
class LedgerOutcome:
    """Everything one apply_transaction call recorded."""
    transaction: Transaction
    bucket: LedgerContainer
    secondary_transactions: List[Transaction] = field(default_factory=list)
    alerts: List[BucketAlert] = field(default_factory=list)
    unapplied_amount: Decimal = ZERO
    redirected_to: Optional[str] = None


@dataclass
class ResetOutcome:
    bucket: LedgerContainer
    transaction: Optional[Transaction]
    carried_over: Decimal
    period_start: date
    period_end: date


@dataclass
class ConsistencyReport:
    bucket_id: str
    stored_balance: Decimal
    ledger_sum: Decimal
    last_balance_after: Optional[Decimal]
    transaction_count: int

    @property
    def consistent(self) -> bool:
        if self.stored_balance != self.ledger_sum:
            return False
        if self.last_balance_after is None:
            return self.stored_balance == ZERO
        return self.stored_balance == self.last_balance_after


def get_utilization(container: LedgerContainer) -> Decimal:
    """Utilization percentage of a bucket or box."""
    return utilization(BalanceState.of(container), parse_characteristics(container.characteristics))


def _entity_type(model: Type[LedgerContainer]) -> str:
    return "contract_box" if model is ContractBox else "client_bucket"


class FundingLedger:
    """
    Applies ledger entries for one tenant.

    apply_transaction and reset_period own their unit of work and commit.
    open_balance and adjust_allocation join the caller's unit of work and
    leave the commit to the caller.
    """

    def __init__(self, db: AsyncSession, tenant: TenantContext, source: str = "api"):
        self.db = db
        self.tenant = tenant
        self.audit = AuditService(db, tenant, source=source)
        self.max_retries = settings.LEDGER_MAX_RETRIES

    # ==========================================================================
    # Public operations
    # ==========================================================================

    async def apply_transaction(
        self,
        container: LedgerContainer,
        transaction_type: str,
        amount: Any,
        description: Optional[str] = None,
        reference_type: str = "manual_adjustment",
        agreement_id: Optional[str] = None,
        service_id: Optional[str] = None,
        unit_cost: Optional[Decimal] = None,
        quantity: Optional[Decimal] = None,
        transaction_date: Optional[date] = None,
    ) -> LedgerOutcome:
        """
        Apply one credit/debit request to a bucket or box.

        Raises InvalidAmount before touching anything, and business-rule
        errors (InsufficientFunds, CreditLimitReached, ...) with nothing
        persisted.
        """
        amount = to_amount(amount)
        model = type(container)
        container_id = container.id
        extras = {
            "description": description,
            "reference_type": reference_type,
            "agreement_id": agreement_id,
            "service_id": service_id,
            "unit_cost": unit_cost,
            "quantity": quantity,
            "transaction_date": transaction_date or date.today(),
        }

        async def attempt() -> LedgerOutcome:
            target = await self._load_bucket(model, container_id)
            return await self._post(target, transaction_type, amount, extras, allow_redirect=True)

        return await self._with_retries(attempt, f"{_entity_type(model)} {container_id}")

    async def reset_period(self, container: LedgerContainer, today: Optional[date] = None) -> ResetOutcome:
        """Roll a bucket with an enabled reset-timer into its next period."""
        today = today or date.today()
        model = type(container)
        container_id = container.id

        async def attempt() -> ResetOutcome:
            target = await self._load_bucket(model, container_id)
            return await self._reset(target, today)

        return await self._with_retries(attempt, f"{_entity_type(model)} {container_id}")

    async def open_balance(self, container: LedgerContainer, owner_client_id: str) -> Optional[Transaction]:
        """
        Record the opening entry of a freshly created bucket or box.

        Draw-down containers open at their allocation; fill-up and hybrid
        containers open at zero and record nothing.
        """
        await self.db.flush()
        if container.category != BucketCategory.DRAW_DOWN.value:
            return None
        allocated = Decimal(container.allocated_amount or 0)
        if allocated <= ZERO:
            return None
        owner = _Owner(client_id=owner_client_id, contract_id=getattr(container, "contract_id", None))
        return await self._write(
            container,
            owner,
            transaction_type="credit",
            direction="credit",
            requested=allocated,
            applied=allocated,
            balance_after=Decimal(container.current_balance or 0) + allocated,
            spent_after=Decimal(container.spent_amount or 0),
            extras={"reference_type": "opening_balance", "description": "Opening balance"},
        )

    async def adjust_allocation(self, box: ContractBox, new_allocated: Decimal, owner_client_id: str) -> Optional[Transaction]:
        """
        Change a box's allocation while its contract is a draft.

        The credit limit always follows the allocation, so fill-up and hybrid
        capacity tracks the edit. Only draw-down balances move, by the same
        delta, recorded as an allocation_adjustment entry.
        """
        await self.db.flush()
        new_allocated = Decimal(new_allocated)
        old_allocated = Decimal(box.allocated_amount or 0)
        delta = new_allocated - old_allocated
        values: Dict[str, Any] = {"allocated_amount": new_allocated, "credit_limit": new_allocated}
        is_draw_down = box.category == BucketCategory.DRAW_DOWN.value

        try:
            if not is_draw_down or delta == ZERO:
                await self._swap(box, values)
                return None
            return await self._write(
                box,
                _Owner(client_id=owner_client_id, contract_id=box.contract_id),
                transaction_type="credit" if delta > ZERO else "debit",
                direction="credit" if delta > ZERO else "debit",
                requested=abs(delta),
                applied=abs(delta),
                balance_after=Decimal(box.current_balance or 0) + delta,
                spent_after=Decimal(box.spent_amount or 0),
                extras={
                    "reference_type": "allocation_adjustment",
                    "description": f"Allocation changed from {old_allocated} to {new_allocated}",
                },
                extra_values=values,
            )
        except _StaleVersion:
            raise ConcurrentModification(f"Contract box {box.id} was modified concurrently; please retry")

    async def ledger_history(self, container: LedgerContainer, limit: int = 100) -> List[Transaction]:
        """Most recent entries first."""
        column = Transaction.box_id if isinstance(container, ContractBox) else Transaction.bucket_id
        result = await self.db.execute(
            select(Transaction)
            .where(
                column == container.id,
                Transaction.organization_id == self.tenant.organization_id,
            )
            .order_by(Transaction.sequence.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def verify_consistency(self, container: LedgerContainer) -> ConsistencyReport:
        """Check current_balance against the signed sum and the latest balance_after."""
        column = Transaction.box_id if isinstance(container, ContractBox) else Transaction.bucket_id
        signed = case(
            (Transaction.direction == "credit", Transaction.amount),
            else_=-Transaction.amount,
        )
        totals = await self.db.execute(
            select(func.coalesce(func.sum(signed), 0), func.count(Transaction.id))
            .where(column == container.id)
        )
        ledger_sum, count = totals.one()

        last = await self.db.execute(
            select(Transaction.balance_after)
            .where(column == container.id)
            .order_by(Transaction.sequence.desc())
            .limit(1)
        )
        last_balance_after = last.scalar_one_or_none()

        fresh = await self._load_bucket(type(container), container.id)
        return ConsistencyReport(
            bucket_id=container.id,
            stored_balance=Decimal(fresh.current_balance),
            ledger_sum=Decimal(str(ledger_sum)).quantize(Decimal("0.01")),
            last_balance_after=Decimal(last_balance_after) if last_balance_after is not None else None,
            transaction_count=count,
        )

    # ==========================================================================
    # Unit of work
    # ==========================================================================

    async def _with_retries(self, attempt: Callable[[], Awaitable[T]], label: str) -> T:
        for attempt_number in range(1, self.max_retries + 1):
            try:
                result = await attempt()
                await self.db.commit()
                return result
            except _StaleVersion:
                await self.db.rollback()
                logger.info(f"Ledger conflict on {label}, retrying (attempt {attempt_number}/{self.max_retries})")
            except FundingError as e:
                await self.db.rollback()
                logger.info(f"Ledger rejected entry on {label}: {e.code}: {e.message}")
                raise
            except SQLAlchemyError:
                await self.db.rollback()
                raise

        logger.warning(f"Ledger gave up on {label} after {self.max_retries} conflicting attempts")
        raise ConcurrentModification(
            f"{label} was modified concurrently; please retry",
            {"attempts": self.max_retries},
        )

    async def _load_bucket(self, model: Type[LedgerContainer], container_id: str) -> LedgerContainer:
        """Read the row as currently committed, overwriting any stale identity-map state."""
        result = await self.db.execute(
            select(model)
            .where(model.id == container_id, model.organization_id == self.tenant.organization_id)
            .execution_options(populate_existing=True)
        )
        container = result.scalar_one_or_none()
        if container is None:
            raise NotFound("Contract box" if model is ContractBox else "Bucket", container_id)
        return container

    async def _check_guards(self, container: LedgerContainer, agreement_id: Optional[str]) -> _Owner:
        if container.status != "active":
            raise BucketNotActive(
                f"{container.name} is {container.status}; only active buckets accept transactions",
                {"status": container.status},
            )

        contract_id = None
        if isinstance(container, ContractBox):
            contract = (await self.db.execute(
                select(Contract).where(
                    Contract.id == container.contract_id,
                    Contract.organization_id == self.tenant.organization_id,
                )
            )).scalar_one_or_none()
            if contract is None:
                raise NotFound("Contract", container.contract_id)
            if contract.status != "active":
                raise OwnerNotActive(
                    f"Contract {contract.contract_number} is {contract.status}; it must be active",
                    {"contract_status": contract.status},
                )
            client_id = contract.client_id
            contract_id = contract.id
        else:
            client_id = container.client_id

        client_status = (await self.db.execute(
            select(Client.status).where(
                Client.id == client_id,
                Client.organization_id == self.tenant.organization_id,
            )
        )).scalar_one_or_none()
        if client_status is None:
            raise NotFound("Client", client_id)
        if client_status != "active":
            raise OwnerNotActive(
                f"Client is {client_status}; transactions require an active client",
                {"client_status": client_status},
            )

        if agreement_id:
            agreement = (await self.db.execute(
                select(ServiceAgreement).where(
                    ServiceAgreement.id == agreement_id,
                    ServiceAgreement.organization_id == self.tenant.organization_id,
                )
            )).scalar_one_or_none()
            if agreement is None:
                raise NotFound("Service agreement", agreement_id)
            if agreement.status != "current":
                raise OwnerNotActive(
                    f"Service agreement {agreement.agreement_number} is {agreement.status}; it must be current",
                    {"agreement_status": agreement.status},
                )

        return _Owner(client_id=client_id, contract_id=contract_id)

    # ==========================================================================
    # Posting
    # ==========================================================================

    async def _post(
        self,
        container: LedgerContainer,
        transaction_type: str,
        amount: Decimal,
        extras: Dict[str, Any],
        allow_redirect: bool,
    ) -> LedgerOutcome:
        owner = await self._check_guards(container, extras.get("agreement_id"))
        characteristics = parse_characteristics(container.characteristics)
        before = BalanceState.of(container)
        plan = plan_posting(before, characteristics, transaction_type, amount)

        if plan.redirect_bucket_id and allow_redirect:
            fallback = await self._load_bucket(type(container), plan.redirect_bucket_id)
            logger.info(f"Redirecting {plan.direction} of {amount} from {container.id} to {fallback.id}")
            redirected_extras = dict(extras)
            if plan.direction == "credit":
                redirected_extras["reference_type"] = "overflow"
            outcome = await self._post(fallback, transaction_type, amount, redirected_extras, allow_redirect=False)
            outcome.redirected_to = fallback.id
            return outcome
        if plan.redirect_bucket_id:
            # A fallback never redirects again
            if plan.direction == "debit":
                raise InsufficientFunds(balance=before.balance, amount=amount, overdraft_limit=ZERO)
            raise CapacityReached(
                f"{container.name} is at its capacity of {before.credit_limit}",
                {"capacity": before.credit_limit, "balance": before.balance},
            )

        txn = await self._write(
            container,
            owner,
            transaction_type=transaction_type,
            direction=plan.direction,
            requested=plan.requested,
            applied=plan.applied,
            balance_after=plan.balance_after,
            spent_after=plan.spent_after,
            extras=extras,
        )
        outcome = LedgerOutcome(transaction=txn, bucket=container, unapplied_amount=plan.unapplied)
        if plan.unapplied > ZERO:
            logger.info(f"{plan.unapplied} of {plan.requested} left unapplied on {container.id}")

        if plan.overflow_amount > ZERO:
            overflow_bucket = await self._load_bucket(type(container), plan.overflow_bucket_id)
            overflow = await self._post(
                overflow_bucket,
                "credit",
                plan.overflow_amount,
                {**extras, "reference_type": "overflow", "description": f"Overflow from {container.name}"},
                allow_redirect=False,
            )
            outcome.secondary_transactions.append(overflow.transaction)
            outcome.secondary_transactions.extend(overflow.secondary_transactions)

        after = BalanceState.of(container)
        evaluation = evaluate_thresholds(characteristics, before, after)
        for hit in evaluation.hits:
            alert = BucketAlert(
                organization_id=self.tenant.organization_id,
                bucket_id=container.id if isinstance(container, ClientBucket) else None,
                box_id=container.id if isinstance(container, ContractBox) else None,
                characteristic_id=hit.characteristic_id,
                threshold=hit.threshold,
                utilization=hit.utilization,
                balance=hit.balance,
                message=hit.message,
                transaction_id=txn.id,
            )
            self.db.add(alert)
            outcome.alerts.append(alert)
            logger.warning(f"Threshold alert on {container.id}: {hit.message}")

        if (plan.settle_invoice or evaluation.invoice_due) and Decimal(container.current_balance) > ZERO:
            invoice_amount = Decimal(container.current_balance)
            invoice = await self._write(
                container,
                owner,
                transaction_type="invoice_item",
                direction="debit",
                requested=invoice_amount,
                applied=invoice_amount,
                balance_after=ZERO,
                spent_after=Decimal(container.spent_amount or 0),
                extras={**extras, "reference_type": "auto_invoice", "description": f"Automatic invoice for {container.name}"},
            )
            outcome.secondary_transactions.append(invoice)
            logger.info(f"Auto-invoiced {invoice_amount} on {container.id}")

        return outcome

    async def _reset(self, container: LedgerContainer, today: date) -> ResetOutcome:
        if container.status != "active":
            raise BucketNotActive(f"{container.name} is {container.status}", {"status": container.status})

        characteristics = parse_characteristics(container.characteristics)
        timer = characteristics.get("reset-timer")
        if timer is None:
            raise ResetNotConfigured(f"{container.name} has no enabled reset timer")
        if container.period_end and today < container.period_end:
            raise ResetNotDue(
                f"{container.name} cannot reset before {container.period_end.isoformat()}",
                {"period_end": container.period_end.isoformat()},
            )

        balance = Decimal(container.current_balance or 0)
        allocated = Decimal(container.allocated_amount or 0)
        remaining = max(balance, ZERO)
        rollover_count = container.rollover_count or 0
        category = BucketCategory(container.category)

        carry = ZERO
        if category != BucketCategory.FILL_UP:
            rollover = characteristics.get("rollover-policy")
            if rollover is None:
                carry = remaining * timer.config.carry_over_percentage / 100
            elif rollover.config.rollover_type != "none" and rollover_count < rollover.config.max_rollover_periods:
                if rollover.config.rollover_type == "percentage":
                    carry = remaining * rollover.config.rollover_percentage / 100
                else:
                    carry = min(rollover.config.rollover_amount, remaining)
            carry = carry.quantize(Decimal("0.01"))
        rollover_count = rollover_count + 1 if carry > ZERO else 0

        values: Dict[str, Any] = {"rollover_count": rollover_count}
        if category == BucketCategory.FILL_UP:
            target = timer.config.reset_to_amount
        else:
            target = allocated + carry
            if category == BucketCategory.DRAW_DOWN:
                values["credit_limit"] = target

        period_start = container.period_end or (today + relativedelta(day=timer.config.reset_day))
        period_end = period_start + RESET_INTERVALS[timer.config.reset_frequency]
        values["period_start"] = period_start
        values["period_end"] = period_end

        owner = _Owner(
            client_id=await self._owner_client_id(container),
            contract_id=getattr(container, "contract_id", None),
        )
        delta = target - balance
        direction = "credit" if delta >= ZERO else "debit"
        txn = await self._write(
            container,
            owner,
            transaction_type=direction,
            direction=direction,
            requested=abs(delta),
            applied=abs(delta),
            balance_after=target,
            spent_after=ZERO,
            extras={
                "reference_type": "period_reset",
                "description": f"Period reset, {carry} carried over",
                "transaction_date": today,
            },
            extra_values=values,
        )
        await self.audit.log(
            _entity_type(type(container)),
            container.id,
            "reset",
            old_value={"balance": balance},
            new_value={"balance": target, "carried_over": carry, "period_end": period_end},
        )
        logger.info(f"Reset {container.id} to {target} ({carry} carried over) for period ending {period_end}")
        return ResetOutcome(
            bucket=container,
            transaction=txn,
            carried_over=carry,
            period_start=period_start,
            period_end=period_end,
        )

    async def _owner_client_id(self, container: LedgerContainer) -> str:
        if isinstance(container, ContractBox):
            return (await self.db.execute(
                select(Contract.client_id).where(
                    Contract.id == container.contract_id,
                    Contract.organization_id == self.tenant.organization_id,
                )
            )).scalar_one()
        return container.client_id

    # ==========================================================================
    # Compare-and-swap
    # ==========================================================================

    async def _swap(self, container: LedgerContainer, values: Dict[str, Any]) -> None:
        """Conditionally update the row at the version we read, or raise _StaleVersion."""
        model = type(container)
        seen_version = container.version
        values = {**values, "version": seen_version + 1}
        result = await self.db.execute(
            update(model)
            .where(model.id == container.id, model.version == seen_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise _StaleVersion(container.id)
        for key, value in values.items():
            set_committed_value(container, key, value)

    async def _write(
        self,
        container: LedgerContainer,
        owner: _Owner,
        *,
        transaction_type: str,
        direction: str,
        requested: Decimal,
        applied: Decimal,
        balance_after: Decimal,
        spent_after: Decimal,
        extras: Dict[str, Any],
        extra_values: Optional[Dict[str, Any]] = None,
    ) -> Optional[Transaction]:
        """Swap the balance and append the matching entry; no entry when nothing moved."""
        balance_before = Decimal(container.current_balance or 0)
        values = dict(extra_values or {})
        values["current_balance"] = balance_after
        values["spent_amount"] = spent_after
        await self._swap(container, values)

        if applied == ZERO:
            return None

        is_box = isinstance(container, ContractBox)
        txn = Transaction(
            organization_id=self.tenant.organization_id,
            client_id=owner.client_id,
            contract_id=owner.contract_id,
            agreement_id=extras.get("agreement_id"),
            bucket_id=None if is_box else container.id,
            box_id=container.id if is_box else None,
            transaction_type=transaction_type,
            direction=direction,
            amount=applied,
            requested_amount=requested,
            balance_after=balance_after,
            sequence=container.version,
            reference_type=extras.get("reference_type") or "manual_adjustment",
            service_id=extras.get("service_id"),
            unit_cost=extras.get("unit_cost"),
            quantity=extras.get("quantity"),
            description=extras.get("description"),
            transaction_date=extras.get("transaction_date") or date.today(),
            status="completed",
        )
        self.db.add(txn)
        await self.db.flush()

        await self.audit.log_posting(
            _entity_type(type(container)),
            container.id,
            transaction_id=txn.id,
            direction=direction,
            amount=applied,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_type=txn.reference_type,
        )
        return txn
