"""
Posting rules - the pure arithmetic behind every ledger entry.

Nothing here touches the database: given a bucket's balance state and its
characteristics, plan_posting decides how much of a request is applied,
what the new balance is, and which follow-up entries (overflow, automatic
invoice, redirect to a fallback bucket) the ledger must record.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from app.funding.characteristics import BucketCategory, CharacteristicSet
from app.funding.errors import (
    CapacityReached,
    CreditLimitReached,
    InsufficientFunds,
    InvalidAmount,
)

ZERO = Decimal("0")
CENT = Decimal("0.01")

TRANSACTION_TYPES = ("credit", "debit", "service_delivery", "invoice_item")


@dataclass(frozen=True)
class BalanceState:
    """Snapshot of the balance-bearing columns of a bucket or box."""
    category: BucketCategory
    balance: Decimal
    credit_limit: Decimal
    allocated: Decimal = ZERO
    spent: Decimal = ZERO

    @classmethod
    def of(cls, container: Any) -> "BalanceState":
        return cls(
            category=BucketCategory(container.category),
            balance=Decimal(container.current_balance or 0),
            credit_limit=Decimal(container.credit_limit or 0),
            allocated=Decimal(container.allocated_amount or 0),
            spent=Decimal(container.spent_amount or 0),
        )


@dataclass(frozen=True)
class PostingPlan:
    """
    What applying one request does to one bucket.

    When redirect_bucket_id is set nothing is applied here and the whole
    request moves to that bucket.
    """
    direction: str
    requested: Decimal
    applied: Decimal
    balance_before: Decimal
    balance_after: Decimal
    spent_after: Decimal
    unapplied: Decimal = ZERO
    overflow_amount: Decimal = ZERO
    overflow_bucket_id: Optional[str] = None
    redirect_bucket_id: Optional[str] = None
    settle_invoice: bool = False


def to_amount(value: Any) -> Decimal:
    """Coerce a caller-supplied amount, rejecting anything not strictly positive."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"Amount {value!r} is not a number", {"amount": str(value)})
    if not amount.is_finite():
        raise InvalidAmount(f"Amount {value} is not finite", {"amount": str(value)})
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount <= ZERO:
        raise InvalidAmount("Amount must be greater than zero", {"amount": str(value)})
    return amount


def resolve_direction(transaction_type: str, category: BucketCategory) -> str:
    """
    Map a transaction type onto credit or debit for a bucket category.

    service_delivery spends draw-down and hybrid funds but accrues on
    fill-up buckets; invoice_item is the mirror image.
    """
    if transaction_type in ("credit", "debit"):
        return transaction_type
    if transaction_type == "service_delivery":
        return "credit" if category == BucketCategory.FILL_UP else "debit"
    if transaction_type == "invoice_item":
        return "debit" if category == BucketCategory.FILL_UP else "credit"
    raise InvalidAmount(f"Unknown transaction type '{transaction_type}'", {"transaction_type": transaction_type})


def overdraft_limit(characteristics: CharacteristicSet) -> Decimal:
    """Overdraft permitted below zero; 0 unless zero-behavior allows it."""
    zero = characteristics.get("zero-behavior")
    if zero and zero.config.action == "allow_overdraft":
        return zero.config.overdraft_limit
    return ZERO


def utilization(state: BalanceState, characteristics: CharacteristicSet) -> Decimal:
    """Percentage of a bucket used, rounded to 2 places."""
    if state.category == BucketCategory.DRAW_DOWN:
        if state.credit_limit <= ZERO:
            return ZERO
        value = (state.credit_limit - state.balance) / state.credit_limit * 100
    elif state.category == BucketCategory.FILL_UP:
        if not characteristics.get("capacity-management") or state.credit_limit <= ZERO:
            return ZERO
        value = state.balance / state.credit_limit * 100
    else:
        if state.allocated <= ZERO:
            return ZERO
        value = state.spent / state.allocated * 100
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def plan_posting(
    state: BalanceState,
    characteristics: CharacteristicSet,
    transaction_type: str,
    amount: Decimal,
) -> PostingPlan:
    """Decide the outcome of one request against one bucket, or raise."""
    amount = to_amount(amount)
    direction = resolve_direction(transaction_type, state.category)

    if direction == "debit":
        if state.category == BucketCategory.FILL_UP:
            return _plan(state, direction, amount, amount, spent_after=state.spent)
        return _plan_bounded_debit(state, characteristics, amount)

    if state.category == BucketCategory.DRAW_DOWN:
        return _plan_draw_down_credit(state, characteristics, amount)
    if state.category == BucketCategory.FILL_UP:
        return _plan_fill_up_credit(state, characteristics, amount)
    return _plan(state, direction, amount, amount, spent_after=max(state.spent - amount, ZERO))


def _plan(state: BalanceState, direction: str, requested: Decimal, applied: Decimal, spent_after: Decimal) -> PostingPlan:
    signed = applied if direction == "credit" else -applied
    return PostingPlan(
        direction=direction,
        requested=requested,
        applied=applied,
        balance_before=state.balance,
        balance_after=state.balance + signed,
        spent_after=spent_after,
        unapplied=requested - applied,
    )


def _plan_bounded_debit(state: BalanceState, characteristics: CharacteristicSet, amount: Decimal) -> PostingPlan:
    limit = overdraft_limit(characteristics)
    projected = state.balance - amount
    if projected < -limit:
        zero = characteristics.get("zero-behavior")
        if zero and zero.config.action == "switch_bucket" and zero.config.fallback_bucket_id:
            return replace(
                _plan(state, "debit", amount, ZERO, spent_after=state.spent),
                unapplied=ZERO,
                redirect_bucket_id=zero.config.fallback_bucket_id,
            )
        raise InsufficientFunds(balance=state.balance, amount=amount, overdraft_limit=limit)
    return _plan(state, "debit", amount, amount, spent_after=state.spent + amount)


def _plan_draw_down_credit(state: BalanceState, characteristics: CharacteristicSet, amount: Decimal) -> PostingPlan:
    if characteristics.get("allow-over-limit"):
        applied = amount
    else:
        headroom = state.credit_limit - state.balance
        if headroom <= ZERO:
            raise CreditLimitReached(
                f"Bucket is already at its credit limit of {state.credit_limit}",
                {"credit_limit": state.credit_limit, "balance": state.balance},
            )
        applied = min(amount, headroom)
    return _plan(state, "credit", amount, applied, spent_after=max(state.spent - applied, ZERO))


def _plan_fill_up_credit(state: BalanceState, characteristics: CharacteristicSet, amount: Decimal) -> PostingPlan:
    capacity = characteristics.get("capacity-management")
    if not capacity or state.credit_limit <= ZERO:
        return _plan(state, "credit", amount, amount, spent_after=state.spent)

    headroom = state.credit_limit - state.balance
    if amount <= headroom:
        return _plan(state, "credit", amount, amount, spent_after=state.spent)

    action = capacity.config.max_capacity_action
    if action == "create_invoice":
        return replace(
            _plan(state, "credit", amount, amount, spent_after=state.spent),
            settle_invoice=capacity.config.auto_invoice_at_capacity,
        )

    applied = max(headroom, ZERO)
    if action == "overflow_to_bucket" and capacity.config.overflow_bucket_id:
        if applied == ZERO:
            return replace(
                _plan(state, "credit", amount, ZERO, spent_after=state.spent),
                unapplied=ZERO,
                redirect_bucket_id=capacity.config.overflow_bucket_id,
            )
        return replace(
            _plan(state, "credit", amount, applied, spent_after=state.spent),
            unapplied=ZERO,
            overflow_amount=amount - applied,
            overflow_bucket_id=capacity.config.overflow_bucket_id,
        )

    # stop_accumulation, or overflow with nowhere to go
    if applied == ZERO:
        raise CapacityReached(
            f"Bucket is at its capacity of {state.credit_limit}",
            {"capacity": state.credit_limit, "balance": state.balance},
        )
    return _plan(state, "credit", amount, applied, spent_after=state.spent)
