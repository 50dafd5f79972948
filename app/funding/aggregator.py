"""
Agreement/Contract Aggregator - totals derived from buckets or boxes.

Nothing here is persisted: summaries are rebuilt on every read from the
current rows, so they can never drift from the ledger.

remaining_balance reproduces the established formula exactly:

    Σ allocated(draw_down) − Σ spent(draw_down) − Σ balance(fill_up) + Σ balance(hybrid)

It mixes allocation and balance concepts across categories; keep it as is
until product confirms the intended accounting.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Optional

from app.funding.characteristics import BucketCategory
from app.funding.ledger import get_utilization

ZERO = Decimal("0")


class AllocationPolicy(str, Enum):
    SUM_OF_BUCKETS = "sum_of_buckets"
    FIXED_ALLOCATION = "fixed_allocation"


@dataclass
class FundingItem:
    """One bucket or box as the aggregator sees it."""
    id: str
    name: str
    category: BucketCategory
    allocated_amount: Decimal = ZERO
    current_balance: Decimal = ZERO
    spent_amount: Decimal = ZERO
    custom_amount: Optional[Decimal] = None
    template_starting_amount: Optional[Decimal] = None
    template_credit_limit: Optional[Decimal] = None
    utilization: Decimal = ZERO


@dataclass
class FundingSummary:
    total_value: Decimal
    total_allocated: Decimal
    remaining_balance: Decimal
    item_count: int
    counts: Dict[str, int] = field(default_factory=dict)
    utilization: Dict[str, Decimal] = field(default_factory=dict)


def nominal_allocation(item: FundingItem) -> Decimal:
    """Custom amount, else allocation, else the template's amounts, else 0."""
    for candidate in (
        item.custom_amount,
        item.allocated_amount,
        item.template_starting_amount,
        item.template_credit_limit,
    ):
        if candidate:
            return Decimal(candidate)
    return ZERO


def total_value(
    policy: AllocationPolicy,
    items: Iterable[FundingItem],
    fixed_value: Optional[Decimal] = None,
) -> Decimal:
    if AllocationPolicy(policy) == AllocationPolicy.FIXED_ALLOCATION:
        return Decimal(fixed_value) if fixed_value is not None else ZERO
    return sum((nominal_allocation(item) for item in items), ZERO)


def remaining_balance(items: Iterable[FundingItem]) -> Decimal:
    remaining = ZERO
    for item in items:
        if item.category == BucketCategory.DRAW_DOWN:
            remaining += Decimal(item.allocated_amount) - Decimal(item.spent_amount)
        elif item.category == BucketCategory.FILL_UP:
            remaining -= Decimal(item.current_balance)
        else:
            remaining += Decimal(item.current_balance)
    return remaining


def box_utilization(item: FundingItem) -> int:
    """Whole-number percentage of the allocation spent."""
    allocated = Decimal(item.allocated_amount)
    if allocated <= ZERO:
        return 0
    return int((Decimal(item.spent_amount) / allocated * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize(
    policy: AllocationPolicy,
    items: List[FundingItem],
    fixed_value: Optional[Decimal] = None,
) -> FundingSummary:
    counts = {category.value: 0 for category in BucketCategory}
    for item in items:
        counts[BucketCategory(item.category).value] += 1

    return FundingSummary(
        total_value=total_value(policy, items, fixed_value),
        total_allocated=sum((nominal_allocation(item) for item in items), ZERO),
        remaining_balance=remaining_balance(items),
        item_count=len(items),
        counts=counts,
        utilization={item.id: item.utilization for item in items},
    )


# =============================================================================
# Builders from ORM rows
# =============================================================================

def item_from_container(container, custom_amount: Optional[Decimal] = None, template=None) -> FundingItem:
    """Build a FundingItem from a ClientBucket or ContractBox."""
    return FundingItem(
        id=container.id,
        name=container.name,
        category=BucketCategory(container.category),
        allocated_amount=Decimal(container.allocated_amount or 0),
        current_balance=Decimal(container.current_balance or 0),
        spent_amount=Decimal(container.spent_amount or 0),
        custom_amount=custom_amount,
        template_starting_amount=template.starting_amount if template is not None else None,
        template_credit_limit=template.credit_limit if template is not None else None,
        utilization=get_utilization(container),
    )


def summarize_contract(contract) -> FundingSummary:
    """Summary over every box of a contract, closed boxes included."""
    items = [item_from_container(box) for box in contract.boxes]
    return summarize(contract.allocation_policy, items, contract.fixed_total_value)


def summarize_agreement(agreement, buckets_by_id: Dict[str, object], templates_by_id: Optional[Dict[str, object]] = None) -> FundingSummary:
    """Summary over an agreement's linked buckets, honouring custom amounts."""
    templates_by_id = templates_by_id or {}
    items = []
    for link in agreement.buckets:
        bucket = buckets_by_id.get(link.bucket_id)
        if bucket is None:
            continue
        items.append(item_from_container(
            bucket,
            custom_amount=link.custom_amount,
            template=templates_by_id.get(bucket.template_id),
        ))
    return summarize(agreement.allocation_policy, items, agreement.fixed_total_value)
