"""
Tests for the services catalog and bucket templates.
"""

import pytest
from decimal import Decimal

from pydantic import ValidationError

from app.data.catalog.schemas import ServiceCreate, check_price_range
from app.data.clients.budgets import plan_budget_for_level

D = Decimal


# =============================================================================
# Pricing rules
# =============================================================================

class TestPriceRange:

    def test_base_cost_within_bounds(self):
        check_price_range(D("60"), D("50"), D("80"))

    @pytest.mark.parametrize("base,low,high", [
        ("40", "50", "80"),
        ("90", "50", "80"),
        ("60", "80", "50"),
    ])
    def test_out_of_range(self, base, low, high):
        with pytest.raises(ValueError):
            check_price_range(D(base), D(low), D(high))

    def test_schema_rejects_bad_range(self):
        with pytest.raises(ValidationError):
            ServiceCreate(name="Personal care", base_cost=D("40"), min_cost=D("50"))


class TestPlanBudget:

    def test_known_level(self):
        assert plan_budget_for_level(1) == D("10950.84")

    def test_unknown_level(self):
        assert plan_budget_for_level(None) is None
        assert plan_budget_for_level(9) is None


# =============================================================================
# API
# =============================================================================

@pytest.fixture
async def api(session_factory):
    from httpx import ASGITransport, AsyncClient
    from app.database import get_db
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/auth/signup", json={
            "organization_name": "Sunrise Care",
            "email": "owner@sunrise.example",
            "password": "correct-horse",
        })
        client.headers["Authorization"] = f"Bearer {response.json()['access_token']}"
        yield client
    app.dependency_overrides.clear()


async def client_bucket(api, category="draw_down", **template):
    client = (await api.post("/api/clients", json={"first_name": "Ada", "last_name": "Lovelace"})).json()
    await api.post(f"/api/clients/{client['id']}/status", json={"status": "active"})
    created = await api.post("/api/bucket-templates", json={
        "name": "Government Funding",
        "category": category,
        "funding_source": "government",
        "auto_provision": False,
        **template,
    })
    bucket = await api.post(f"/api/clients/{client['id']}/buckets", json={
        "template_id": created.json()["id"],
        "allocated_amount": "1000",
    })
    return created.json(), bucket.json()


class TestServicesApi:

    @pytest.mark.asyncio
    async def test_priced_from_catalog(self, api):
        service = (await api.post("/api/services", json={"name": "Personal care", "base_cost": "65.50"})).json()
        assert service["status"] == "draft"
        _, bucket = await client_bucket(api)

        inactive = await api.post(f"/api/buckets/{bucket['id']}/transactions", json={
            "transaction_type": "service_delivery",
            "service_id": service["id"],
            "quantity": "2",
        })
        assert inactive.status_code == 409
        assert inactive.json()["detail"]["code"] == "precondition_failed"

        await api.post(f"/api/services/{service['id']}/status", json={"status": "active"})
        delivered = await api.post(f"/api/buckets/{bucket['id']}/transactions", json={
            "transaction_type": "service_delivery",
            "service_id": service["id"],
            "quantity": "2",
        })
        assert delivered.status_code == 201
        body = delivered.json()
        assert D(body["transaction"]["amount"]) == D("131.00")
        assert body["transaction"]["direction"] == "debit"
        assert body["transaction"]["reference_type"] == "service_transaction"
        assert D(body["balance"]) == D("869.00")

    @pytest.mark.asyncio
    async def test_box_restricted_to_service_category(self, api):
        transport = (await api.post("/api/services", json={
            "name": "Community transport", "base_cost": "1.20", "unit": "km", "category": "Transport",
        })).json()
        care = (await api.post("/api/services", json={
            "name": "Personal care", "base_cost": "65.50", "category": "Core Supports",
        })).json()
        for service in (transport, care):
            await api.post(f"/api/services/{service['id']}/status", json={"status": "active"})

        client = (await api.post("/api/clients", json={"first_name": "Ada", "last_name": "Lovelace"})).json()
        await api.post(f"/api/clients/{client['id']}/status", json={"status": "active"})
        contract = (await api.post("/api/contracts", json={
            "client_id": client["id"],
            "boxes": [{"category": "draw_down", "allocated_amount": "500", "service_category": "Transport"}],
        })).json()
        box = contract["boxes"][0]
        assert box["service_category"] == "Transport"
        await api.post(f"/api/contracts/{contract['id']}/status", json={"status": "active"})

        rejected = await api.post(f"/api/contract-boxes/{box['id']}/transactions", json={
            "transaction_type": "service_delivery",
            "service_id": care["id"],
            "quantity": "1",
        })
        assert rejected.status_code == 409
        assert rejected.json()["detail"]["code"] == "precondition_failed"
        assert rejected.json()["detail"]["details"]["box_category"] == "Transport"

        accepted = await api.post(f"/api/contract-boxes/{box['id']}/transactions", json={
            "transaction_type": "service_delivery",
            "service_id": transport["id"],
            "quantity": "10",
        })
        assert accepted.status_code == 201
        assert D(accepted.json()["balance"]) == D("488.00")

    @pytest.mark.asyncio
    async def test_archived_service_cannot_be_deleted(self, api):
        service = (await api.post("/api/services", json={"name": "Transport", "base_cost": "1.20", "unit": "km"})).json()
        for status in ("active", "inactive", "archived"):
            response = await api.post(f"/api/services/{service['id']}/status", json={"status": status})
            assert response.status_code == 200

        response = await api.delete(f"/api/services/{service['id']}")
        assert response.status_code == 409


class TestTemplatesApi:

    @pytest.mark.asyncio
    async def test_defaults_and_duplicate(self, api):
        response = await api.post("/api/bucket-templates", json={
            "name": "To Be Invoiced",
            "category": "fill_up",
            "funding_source": "client",
        })
        assert response.status_code == 201
        template = response.json()
        ids = [c["id"] for c in template["characteristics"]]
        assert "capacity-management" in ids
        assert "zero-behavior" not in ids

        copy = await api.post(f"/api/bucket-templates/{template['id']}/duplicate")
        assert copy.json()["name"] == "To Be Invoiced (Copy)"

    @pytest.mark.asyncio
    async def test_frozen_while_in_use(self, api):
        template, _ = await client_bucket(api)

        frozen = await api.put(f"/api/bucket-templates/{template['id']}", json={"category": "hybrid"})
        assert frozen.status_code == 409
        assert frozen.json()["detail"]["code"] == "template_in_use"

        renamed = await api.put(f"/api/bucket-templates/{template['id']}", json={"name": "Home Care Package"})
        assert renamed.status_code == 200

        toggled = await api.post(
            f"/api/bucket-templates/{template['id']}/characteristics/low-balance-warning/toggle",
            json={"enabled": False},
        )
        assert toggled.status_code == 200

        deleted = await api.delete(f"/api/bucket-templates/{template['id']}")
        assert deleted.status_code == 409

    @pytest.mark.asyncio
    async def test_misplaced_characteristic_rejected(self, api):
        response = await api.post("/api/bucket-templates", json={
            "name": "Broken",
            "category": "draw_down",
            "funding_source": "government",
            "characteristics": [{"id": "capacity-management"}],
        })
        assert response.status_code == 422
