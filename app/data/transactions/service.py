"""Posting transactions through the funding ledger."""
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import TenantContext
from app.data.catalog.models import Service
from app.data.queries import get_owned_or_404
from app.data.transactions.schemas import (
    AlertResponse,
    LedgerOutcomeResponse,
    TransactionCreate,
    TransactionResponse,
)
from app.funding.errors import LedgerValidationError, PreconditionFailed
from app.funding.ledger import FundingLedger, LedgerContainer, LedgerOutcome, get_utilization


async def price_from_catalog(
    db: AsyncSession,
    tenant: TenantContext,
    data: TransactionCreate,
    container: Optional[LedgerContainer] = None,
) -> Tuple[Decimal, Optional[Decimal]]:
    """
    Amount and unit cost for a request.

    Explicit amounts win; otherwise the amount is unit_cost * quantity,
    with unit_cost defaulting to the service's base cost. Only active
    services can be charged, and a box restricted to a service category
    only accepts services of that category.
    """
    if not data.service_id:
        return data.amount, data.unit_cost

    service = await get_owned_or_404(db, Service, tenant, data.service_id, "Service")
    if not service.is_active:
        raise PreconditionFailed(
            f"Service {service.name} is {service.status}; only active services can be charged",
            {"service_status": service.status},
        )

    restriction = getattr(container, "service_category", None)
    if restriction and service.category != restriction:
        raise PreconditionFailed(
            f"{container.name} only accepts {restriction} services; {service.name} is {service.category or 'uncategorised'}",
            {"service_category": service.category, "box_category": restriction},
        )

    unit_cost = data.unit_cost if data.unit_cost is not None else Decimal(service.base_cost)
    if data.unit_cost is not None and service.has_variable_pricing:
        if (service.min_cost is not None and unit_cost < service.min_cost) or (
            service.max_cost is not None and unit_cost > service.max_cost
        ):
            raise LedgerValidationError(
                f"Unit cost {unit_cost} is outside {service.min_cost}-{service.max_cost} for {service.name}",
                {"unit_cost": unit_cost},
            )

    if data.amount is not None:
        return data.amount, unit_cost
    return (unit_cost * data.quantity).quantize(Decimal("0.01")), unit_cost


def outcome_response(outcome: LedgerOutcome) -> LedgerOutcomeResponse:
    return LedgerOutcomeResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction),
        secondary_transactions=[TransactionResponse.model_validate(t) for t in outcome.secondary_transactions],
        alerts=[AlertResponse.model_validate(a) for a in outcome.alerts],
        unapplied_amount=outcome.unapplied_amount,
        redirected_to=outcome.redirected_to,
        balance=outcome.bucket.current_balance,
        utilization=get_utilization(outcome.bucket),
    )


async def post_transaction(
    db: AsyncSession,
    tenant: TenantContext,
    container: LedgerContainer,
    data: TransactionCreate,
) -> LedgerOutcomeResponse:
    amount, unit_cost = await price_from_catalog(db, tenant, data, container)
    reference_type = data.reference_type
    if data.service_id and reference_type == "manual_adjustment":
        reference_type = "service_transaction"

    outcome = await FundingLedger(db, tenant).apply_transaction(
        container,
        data.transaction_type,
        amount,
        description=data.description,
        reference_type=reference_type,
        agreement_id=data.agreement_id,
        service_id=data.service_id,
        unit_cost=unit_cost,
        quantity=data.quantity,
        transaction_date=data.transaction_date,
    )
    return outcome_response(outcome)
