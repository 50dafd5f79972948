"""
End-to-end API tests through the ASGI app.

Each test gets its own SQLite database; get_db is overridden to hand out
sessions bound to it.
"""

import pytest
from decimal import Decimal

from httpx import ASGITransport, AsyncClient

from app.database import get_db
from app.main import app

D = Decimal


@pytest.fixture
async def api(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def auth_headers(api):
    response = await api.post("/api/auth/signup", json={
        "organization_name": "Sunrise Care",
        "email": "owner@sunrise.example",
        "password": "correct-horse",
        "full_name": "Owner",
    })
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


async def active_client(api, headers):
    response = await api.post("/api/clients", headers=headers, json={"first_name": "Ada", "last_name": "Lovelace"})
    assert response.status_code == 201
    client = response.json()
    assert client["status"] == "prospect"
    response = await api.post(f"/api/clients/{client['id']}/status", headers=headers, json={"status": "active"})
    assert response.status_code == 200
    return response.json()


# =============================================================================
# Auth
# =============================================================================

class TestAuth:

    @pytest.mark.asyncio
    async def test_requires_token(self, api):
        response = await api.get("/api/clients")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_and_me(self, api, auth_headers):
        response = await api.post("/api/auth/login", json={
            "email": "owner@sunrise.example",
            "password": "correct-horse",
        })
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = await api.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["role"] == "admin"

    @pytest.mark.asyncio
    async def test_wrong_password(self, api, auth_headers):
        response = await api.post("/api/auth/login", json={
            "email": "owner@sunrise.example",
            "password": "wrong-password",
        })
        assert response.status_code == 401


# =============================================================================
# Funding flow
# =============================================================================

class TestFundingFlow:

    @pytest.mark.asyncio
    async def test_bucket_debit_and_rejection(self, api, auth_headers):
        client = await active_client(api, auth_headers)

        template = await api.post("/api/bucket-templates", headers=auth_headers, json={
            "name": "Government Funding",
            "category": "draw_down",
            "funding_source": "government",
            "auto_provision": False,
        })
        assert template.status_code == 201

        bucket = await api.post(f"/api/clients/{client['id']}/buckets", headers=auth_headers, json={
            "template_id": template.json()["id"],
            "allocated_amount": "10000",
        })
        assert bucket.status_code == 201
        bucket_id = bucket.json()["id"]
        assert D(bucket.json()["current_balance"]) == D("10000")

        debit = await api.post(f"/api/buckets/{bucket_id}/transactions", headers=auth_headers, json={
            "transaction_type": "debit",
            "amount": "4000",
        })
        assert debit.status_code == 201
        assert D(debit.json()["balance"]) == D("6000")

        rejected = await api.post(f"/api/buckets/{bucket_id}/transactions", headers=auth_headers, json={
            "transaction_type": "debit",
            "amount": "7000",
        })
        assert rejected.status_code == 409
        detail = rejected.json()["detail"]
        assert detail["code"] == "insufficient_funds"
        assert detail["details"]["shortfall"] == "1000.00"

        consistency = await api.get(f"/api/buckets/{bucket_id}/consistency", headers=auth_headers)
        assert consistency.status_code == 200
        assert consistency.json()["consistent"] is True

        history = await api.get(f"/api/buckets/{bucket_id}/history", headers=auth_headers)
        assert [t["reference_type"] for t in history.json()] == ["manual_adjustment", "opening_balance"]

    @pytest.mark.asyncio
    async def test_contract_lifecycle(self, api, auth_headers):
        response = await api.post("/api/clients", headers=auth_headers, json={"first_name": "Grace", "last_name": "Hopper"})
        client_id = response.json()["id"]

        contract = await api.post("/api/contracts", headers=auth_headers, json={
            "client_id": client_id,
            "boxes": [{"category": "draw_down", "allocated_amount": "5000"}, {"category": "fill_up"}],
        })
        assert contract.status_code == 201
        body = contract.json()
        assert [box["name"] for box in body["boxes"]] == ["Government Funding", "To Be Invoiced"]
        assert D(body["summary"]["total_value"]) == D("5000")

        blocked = await api.post(f"/api/contracts/{body['id']}/status", headers=auth_headers, json={"status": "active"})
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["code"] == "precondition_failed"

        still_draft = await api.get(f"/api/contracts/{body['id']}", headers=auth_headers)
        assert still_draft.json()["status"] == "draft"

        await api.post(f"/api/clients/{client_id}/status", headers=auth_headers, json={"status": "active"})
        activated = await api.post(f"/api/contracts/{body['id']}/status", headers=auth_headers, json={"status": "active"})
        assert activated.status_code == 200
        assert activated.json()["status"] == "active"

        box_id = body["boxes"][0]["id"]
        spend = await api.post(f"/api/contract-boxes/{box_id}/transactions", headers=auth_headers, json={
            "transaction_type": "debit",
            "amount": "1250",
        })
        assert spend.status_code == 201

        detail = await api.get(f"/api/contracts/{body['id']}", headers=auth_headers)
        box = detail.json()["boxes"][0]
        assert D(box["current_balance"]) == D("3750")
        assert box["utilization"] == 25

    @pytest.mark.asyncio
    async def test_invalid_status_transition(self, api, auth_headers):
        response = await api.post("/api/clients", headers=auth_headers, json={"first_name": "Alan", "last_name": "Turing"})
        client_id = response.json()["id"]

        response = await api.post(f"/api/clients/{client_id}/status", headers=auth_headers, json={"status": "deactivated"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "invalid_status_transition"


class TestTenantIsolation:

    @pytest.mark.asyncio
    async def test_other_organization_sees_404(self, api, auth_headers):
        client = await active_client(api, auth_headers)

        other = await api.post("/api/auth/signup", json={
            "organization_name": "Other Care",
            "email": "owner@other.example",
            "password": "correct-horse",
        })
        other_headers = {"Authorization": f"Bearer {other.json()['access_token']}"}

        response = await api.get(f"/api/clients/{client['id']}", headers=other_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_record(self, api, auth_headers):
        response = await api.get("/api/contracts/ct_missing", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"


# =============================================================================
# Audit history
# =============================================================================

class TestAuditHistory:

    @pytest.mark.asyncio
    async def test_client_history(self, api, auth_headers):
        client = await active_client(api, auth_headers)

        response = await api.get(f"/api/audit/client/{client['id']}", headers=auth_headers)
        assert response.status_code == 200
        entries = response.json()
        assert {entry["action"] for entry in entries} == {"create", "status_change"}
        change = next(entry for entry in entries if entry["action"] == "status_change")
        assert change["old_value"] == "prospect"
        assert change["new_value"] == "active"

    @pytest.mark.asyncio
    async def test_scoped_to_organization(self, api, auth_headers):
        client = await active_client(api, auth_headers)
        other = await api.post("/api/auth/signup", json={
            "organization_name": "Other Care",
            "email": "owner@other.example",
            "password": "correct-horse",
        })
        other_headers = {"Authorization": f"Bearer {other.json()['access_token']}"}

        response = await api.get(f"/api/audit/client/{client['id']}", headers=other_headers)
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_unknown_entity_type(self, api, auth_headers):
        response = await api.get("/api/audit/invoice/inv_1", headers=auth_headers)
        assert response.status_code == 422


# =============================================================================
# Client form configuration
# =============================================================================

class TestFormConfig:

    @pytest.mark.asyncio
    async def test_default_until_saved(self, api, auth_headers):
        response = await api.get("/api/form-config", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["is_default"] is True
        assert [s["section"] for s in body["config"]] == [
            "Personal Information",
            "Health & Support Information",
            "Funding Information",
        ]
        funding = body["config"][2]["fields"][0]
        assert funding["options"] == ["NDIS", "Private"]

    @pytest.mark.asyncio
    async def test_save_and_replace(self, api, auth_headers):
        config = [{
            "section": "Personal Information",
            "enabled": True,
            "fields": [
                {"name": "first_name", "label": "First Name", "type": "text", "required": True},
                {"name": "preferred_name", "label": "Preferred Name", "type": "text"},
            ],
        }]
        saved = await api.put("/api/form-config", headers=auth_headers, json={"config": config})
        assert saved.status_code == 200
        assert saved.json()["is_default"] is False

        loaded = (await api.get("/api/form-config", headers=auth_headers)).json()
        assert loaded["is_default"] is False
        assert [f["name"] for f in loaded["config"][0]["fields"]] == ["first_name", "preferred_name"]

        config[0]["enabled"] = False
        replaced = await api.put("/api/form-config", headers=auth_headers, json={"config": config})
        assert replaced.status_code == 200
        loaded = (await api.get("/api/form-config", headers=auth_headers)).json()
        assert loaded["config"][0]["enabled"] is False

        other = await api.post("/api/auth/signup", json={
            "organization_name": "Other Care",
            "email": "owner@other.example",
            "password": "correct-horse",
        })
        other_headers = {"Authorization": f"Bearer {other.json()['access_token']}"}
        assert (await api.get("/api/form-config", headers=other_headers)).json()["is_default"] is True

    @pytest.mark.asyncio
    async def test_select_without_options_rejected(self, api, auth_headers):
        response = await api.put("/api/form-config", headers=auth_headers, json={"config": [{
            "section": "Funding Information",
            "fields": [{"name": "funding_source", "label": "Funding Source", "type": "select"}],
        }]})
        assert response.status_code == 422
