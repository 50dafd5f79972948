#!/usr/bin/env python3
"""
Verify Ledger Script.

Checks every client bucket and contract box against its ledger: the stored
current_balance must equal the signed sum of its transactions and the
balance_after of its latest transaction. Read-only; nothing is changed.

Usage:
    # All organizations
    python -m scripts.verify_ledger

    # One organization
    python -m scripts.verify_ledger --organization-id ORG_ID
"""
import asyncio
import argparse
import sys
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import TenantContext
from app.database import AsyncSessionLocal
from app.data.buckets.models import ClientBucket
from app.data.contracts.models import ContractBox
from app.data.organizations.models import Organization
from app.funding.ledger import ConsistencyReport, FundingLedger


async def verify_organization(db: AsyncSession, organization: Organization) -> List[ConsistencyReport]:
    """Consistency reports for every bucket and box of one organization."""
    tenant = TenantContext(organization_id=organization.id, user_id=None, role="admin")
    ledger = FundingLedger(db, tenant, source="system")

    reports = []
    for model in (ClientBucket, ContractBox):
        result = await db.execute(
            select(model).where(model.organization_id == organization.id).order_by(model.created_at)
        )
        for container in result.scalars().all():
            reports.append(await ledger.verify_consistency(container))
    return reports


async def verify_ledger(db: AsyncSession, organization_id: Optional[str] = None) -> int:
    """Print a report and return the number of inconsistent containers."""
    print("\n" + "=" * 60)
    print("VERIFY LEDGER SCRIPT")
    print("=" * 60)

    query = select(Organization).order_by(Organization.name)
    if organization_id:
        query = query.where(Organization.id == organization_id)
    organizations = (await db.execute(query)).scalars().all()

    checked = 0
    broken = 0
    for organization in organizations:
        print("\n" + "-" * 40)
        print(f"{organization.name} ({organization.id})")
        print("-" * 40)

        for report in await verify_organization(db, organization):
            checked += 1
            if report.consistent:
                continue
            broken += 1
            print(
                f"  ✗ {report.bucket_id}: stored {report.stored_balance}, "
                f"ledger sum {report.ledger_sum}, last balance_after {report.last_balance_after} "
                f"({report.transaction_count} entries)"
            )

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"  Containers checked: {checked}")
    print(f"  Inconsistent: {broken}")
    return broken


async def main():
    parser = argparse.ArgumentParser(description="Verify bucket and box balances against the ledger")
    parser.add_argument("--organization-id", type=str, help="Only verify this organization")
    args = parser.parse_args()

    async with AsyncSessionLocal() as db:
        broken = await verify_ledger(db, organization_id=args.organization_id)

    sys.exit(1 if broken else 0)


if __name__ == "__main__":
    asyncio.run(main())
