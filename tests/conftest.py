"""Shared test fixtures and configuration for CareFund backend tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_DEFAULT", "10000/minute")

import pytest
from decimal import Decimal
from typing import AsyncGenerator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.context import TenantContext
from app.database import Base
from app.data import models
from app.funding.characteristics import CharacteristicSet, default_characteristics
from app.funding.provisioning import create_bucket


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carefund.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# =============================================================================
# Tenant and records
# =============================================================================

@pytest.fixture
async def organization(db):
    org = models.Organization(name="Sunrise Care")
    db.add(org)
    await db.flush()
    admin = models.User(
        organization_id=org.id,
        email="admin@sunrise.example",
        hashed_password="not-used",
        full_name="Admin",
        role="admin",
    )
    db.add(admin)
    await db.commit()
    return org


@pytest.fixture
async def tenant(organization, db) -> TenantContext:
    user_id = (await db.execute(
        select(models.User.id).where(models.User.organization_id == organization.id)
    )).scalar_one()
    return TenantContext(organization_id=organization.id, user_id=user_id, role="admin")


@pytest.fixture
def make_client(db, tenant):
    async def factory(status: str = "active", first_name: str = "Ada", last_name: str = "Lovelace", **kwargs):
        client = models.Client(
            organization_id=tenant.organization_id,
            first_name=first_name,
            last_name=last_name,
            status=status,
            **kwargs,
        )
        db.add(client)
        await db.commit()
        return client
    return factory


@pytest.fixture
def make_template(db, tenant):
    async def factory(
        category: str = "draw_down",
        characteristics: CharacteristicSet = None,
        name: str = "Government Funding",
        funding_source: str = "government",
        **kwargs,
    ):
        template = models.BucketTemplate(
            organization_id=tenant.organization_id,
            name=name,
            category=category,
            funding_source=funding_source,
            characteristics=(characteristics or default_characteristics(category)).to_json(),
            **kwargs,
        )
        db.add(template)
        await db.commit()
        return template
    return factory


@pytest.fixture
def make_bucket(db, tenant, make_client, make_template):
    """Active bucket for an active client, opened through the ledger."""
    async def factory(
        allocated="10000",
        category: str = "draw_down",
        characteristics: CharacteristicSet = None,
        client=None,
        credit_limit=None,
        name: str = None,
    ):
        client = client or await make_client()
        template = await make_template(
            category=category,
            characteristics=characteristics,
            credit_limit=Decimal(credit_limit) if credit_limit is not None else None,
            auto_provision=False,
        )
        bucket = await create_bucket(
            db, tenant, template, client,
            name=name,
            allocated_amount=Decimal(allocated),
        )
        await db.commit()
        return bucket
    return factory
