import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from fastapi import HTTPException

from commandx.models import Customer, Vendor
from commandx.models_quickbooks import QuickBooksIntegration, QuickBooksSyncLog
from commandx.routes import quickbooks

NOW = datetime(2026, 3, 2, 12, 0)


@pytest.fixture
def integration(db, admin_user):
    integration = QuickBooksIntegration(
        connected_by=admin_user.id,
        realm_id="realm-1",
        company_name="Acme Books",
        access_token=quickbooks.encrypt_token("access-1"),
        refresh_token=quickbooks.encrypt_token("refresh-1"),
        token_expires_at=datetime.utcnow() + timedelta(hours=1),
        environment="sandbox",
    )
    db.add(integration)
    db.commit()
    return integration


@pytest.fixture
def qb_api(monkeypatch):
    """Record QuickBooks API calls; responses are queued per (method, path)"""
    calls = []
    responses = {}

    async def fake_api(method, realm_id, path, access_token, json=None):
        calls.append({"method": method, "path": path, "token": access_token, "json": json})
        return responses.get((method, path), httpx.Response(500, text="unexpected call"))

    monkeypatch.setattr(quickbooks, "quickbooks_api", fake_api)
    return calls, responses


def test_tokens_are_encrypted_at_rest():
    encrypted = quickbooks.encrypt_token("secret-token")
    assert encrypted != "secret-token"
    assert quickbooks.decrypt_token(encrypted) == "secret-token"


def test_fresh_token_is_not_refreshed(db, integration, monkeypatch):
    async def unexpected(data):
        raise AssertionError("token endpoint should not be called")

    monkeypatch.setattr(quickbooks, "post_token_request", unexpected)
    integration.token_expires_at = NOW + timedelta(minutes=30)
    assert asyncio.run(quickbooks.refresh_access_token(integration, db, now=NOW)) == "access-1"


def test_token_refreshed_inside_margin(db, integration, monkeypatch):
    requests = []

    async def fake_token(data):
        requests.append(data)
        return httpx.Response(200, json={"access_token": "access-2", "expires_in": 3600})

    monkeypatch.setattr(quickbooks, "post_token_request", fake_token)
    integration.token_expires_at = NOW + timedelta(minutes=4)

    assert asyncio.run(quickbooks.refresh_access_token(integration, db, now=NOW)) == "access-2"
    assert requests == [{"grant_type": "refresh_token", "refresh_token": "refresh-1"}]
    assert integration.token_expires_at == NOW + timedelta(hours=1)
    assert quickbooks.decrypt_token(integration.access_token) == "access-2"
    # QuickBooks did not rotate the refresh token, so the old one is kept
    assert quickbooks.decrypt_token(integration.refresh_token) == "refresh-1"


def test_failed_refresh_is_401(db, integration, monkeypatch):
    async def fake_token(data):
        return httpx.Response(400, json={"error": "invalid_grant"})

    monkeypatch.setattr(quickbooks, "post_token_request", fake_token)
    integration.token_expires_at = NOW
    with pytest.raises(HTTPException) as exc:
        asyncio.run(quickbooks.refresh_access_token(integration, db, now=NOW))
    assert exc.value.status_code == 401


def test_customer_payload():
    customer = Customer(
        name="Acme Builders", email="office@acme.example", address="1 Main St", city="Austin", state="TX"
    )
    payload = quickbooks.build_customer_payload(customer)
    assert payload["DisplayName"] == "Acme Builders"
    assert payload["PrimaryEmailAddr"] == {"Address": "office@acme.example"}
    assert payload["BillAddr"]["CountrySubDivisionCode"] == "TX"
    assert "PrimaryPhone" not in payload


def test_vendor_payload_includes_tax_id():
    payload = quickbooks.build_vendor_payload(Vendor(name="Supply Co", tax_id="12-3456789"))
    assert payload == {"DisplayName": "Supply Co", "TaxIdentifier": "12-3456789"}


def test_status_when_not_connected(client, admin_headers):
    assert client.get("/quickbooks/status", headers=admin_headers).json()["connected"] is False


def test_status_when_connected(client, admin_headers, integration):
    body = client.get("/quickbooks/status", headers=admin_headers).json()
    assert body["connected"] is True
    assert body["company_name"] == "Acme Books"
    assert body["sync_customers"] is True


def test_sync_new_customer(client, db, admin_headers, integration, customer, qb_api):
    calls, responses = qb_api
    responses[("POST", "customer")] = httpx.Response(200, json={"Customer": {"Id": "58"}})

    response = client.post(f"/quickbooks/sync/customer/{customer.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "action": "create", "quickbooks_id": "58"}
    assert calls[0]["token"] == "access-1"
    assert calls[0]["json"]["DisplayName"] == "Acme Builders"

    db.expire_all()
    assert db.query(Customer).filter(Customer.id == customer.id).one().quickbooks_customer_id == "58"
    log = db.query(QuickBooksSyncLog).one()
    assert (log.status, log.action, log.quickbooks_id) == ("success", "create", "58")
    assert db.query(QuickBooksIntegration).one().last_customer_sync is not None


def test_sync_existing_vendor_is_sparse_update(client, db, admin_headers, integration, vendor, qb_api):
    calls, responses = qb_api
    vendor.quickbooks_vendor_id = "77"
    db.commit()
    responses[("GET", "vendor/77")] = httpx.Response(200, json={"Vendor": {"Id": "77", "SyncToken": "3"}})
    responses[("POST", "vendor")] = httpx.Response(200, json={"Vendor": {"Id": "77"}})

    response = client.post(f"/quickbooks/sync/vendor/{vendor.id}", headers=admin_headers)
    assert response.json()["action"] == "update"
    sent = calls[1]["json"]
    assert (sent["Id"], sent["SyncToken"], sent["sparse"]) == ("77", "3", True)


def test_failed_sync_is_logged(client, db, admin_headers, integration, customer, qb_api):
    _, responses = qb_api
    responses[("POST", "customer")] = httpx.Response(400, text="Duplicate Name Exists Error")

    response = client.post(f"/quickbooks/sync/customer/{customer.id}", headers=admin_headers)
    assert response.status_code == 502

    log = db.query(QuickBooksSyncLog).one()
    assert log.status == "failed"
    assert "Duplicate Name" in log.error_message

    logs = client.get("/quickbooks/sync-logs", headers=admin_headers).json()
    assert logs[0]["status"] == "failed"


def test_sync_disabled(client, db, admin_headers, integration, vendor):
    response = client.put(
        "/quickbooks/settings",
        json={"sync_customers": True, "sync_vendors": False},
        headers=admin_headers,
    )
    assert response.status_code == 200
    response = client.post(f"/quickbooks/sync/vendor/{vendor.id}", headers=admin_headers)
    assert response.status_code == 400


def test_sync_without_connection(client, admin_headers, customer):
    response = client.post(f"/quickbooks/sync/customer/{customer.id}", headers=admin_headers)
    assert response.status_code == 400


def test_oauth_callback_stores_encrypted_tokens(client, db, admin_headers, integration, monkeypatch, qb_api):
    _, responses = qb_api
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_ID", "client-id")
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_SECRET", "client-secret")

    async def fake_token(data):
        assert data["code"] == "auth-code"
        return httpx.Response(200, json={"access_token": "new-access", "refresh_token": "new-refresh"})

    monkeypatch.setattr(quickbooks, "post_token_request", fake_token)
    responses[("GET", "companyinfo/realm-2")] = httpx.Response(
        200, json={"CompanyInfo": {"CompanyName": "New Books"}}
    )

    response = client.get(
        "/quickbooks/callback-handler",
        params={"code": "auth-code", "realmId": "realm-2"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["company_name"] == "New Books"

    db.expire_all()
    active = db.query(QuickBooksIntegration).filter(QuickBooksIntegration.is_active.is_(True)).one()
    assert active.realm_id == "realm-2"
    assert active.access_token != "new-access"
    assert quickbooks.decrypt_token(active.refresh_token) == "new-refresh"


def test_oauth_requires_configuration(client, admin_headers, monkeypatch):
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_ID", None)
    assert client.post("/quickbooks/oauth/initiate", headers=admin_headers).status_code == 500


def test_oauth_initiate_is_admin_only(client, manager_headers):
    assert client.post("/quickbooks/oauth/initiate", headers=manager_headers).status_code == 403
