"""HTTP tests for the organizer and admin endpoints."""
import pytest
from sqlalchemy import select

from payout_engine.models.audit_log import AdminAuditLog


BANK_SETUP = {
    "method": "bank_transfer",
    "legal_name": "Marie Joseph",
    "bank_details": {
        "bank_name": "Unibank",
        "account_name": "Marie Joseph",
        "account_number": "0011223344",
    },
}


@pytest.fixture
async def payable(test_db, platform_config, make_event, make_earnings, activate_bank_organizer):
    await activate_bank_organizer()
    event = await make_event()
    await make_earnings(event, net=20000)
    return event


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


# ============================================================================
# AUTH
# ============================================================================

@pytest.mark.asyncio
async def test_requires_bearer_token(client):
    response = await client.get("/api/organizer/balance")
    assert response.status_code == 401

    response = await client.get("/api/organizer/balance", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_reject_organizers(client, organizer_headers):
    for path in ("/api/admin/payouts", "/api/admin/withdrawals", "/api/admin/settings/payouts"):
        response = await client.get(path, headers=organizer_headers)
        assert response.status_code == 403


# ============================================================================
# ORGANIZER
# ============================================================================

@pytest.mark.asyncio
async def test_balance_and_earnings(client, organizer_headers, payable):
    response = await client.get("/api/organizer/balance", headers=organizer_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["available"] == 20000
    assert data["currency"] == "HTG"
    assert data["can_request_payout"] is True

    response = await client.get("/api/organizer/earnings", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["total_available"] == 20000


@pytest.mark.asyncio
async def test_payout_quote_endpoint(client, organizer_headers, payable):
    response = await client.get(f"/api/organizer/events/{payable.id}/payout-quote", headers=organizer_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["amount_cents"] == 20000
    assert data["instant_available"] is False

    response = await client.get("/api/organizer/events/missing/payout-quote", headers=organizer_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotFound"


@pytest.mark.asyncio
async def test_payout_request_flow(client, organizer_headers, admin_headers, payable):
    response = await client.post("/api/organizer/payouts", headers=organizer_headers)
    assert response.status_code == 201
    payout = response.json()
    assert payout["status"] == "pending"
    assert payout["amount"] == 20000

    response = await client.post("/api/organizer/payouts", headers=organizer_headers)
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "PayoutInProgress"
    assert detail["existing_payout_id"] == payout["id"]

    base = f"/api/admin/payouts/{payout['organizer_id']}/{payout['id']}"
    response = await client.post(f"{base}/approve", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["payout"]["status"] == "approved"

    response = await client.post(f"{base}/decline", headers=admin_headers, json={"reason": "Too late"})
    assert response.status_code == 409
    assert response.json()["detail"]["current_status"] == "approved"

    response = await client.post(f"{base}/mark-paid", headers=admin_headers, json={"payment_reference_id": "UNI-55"})
    assert response.status_code == 200
    assert response.json()["payout"]["payment_reference_id"] == "UNI-55"

    response = await client.post(f"{base}/mark-paid", headers=admin_headers, json={"payment_reference_id": "UNI-56"})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "AlreadyPaid"

    response = await client.get("/api/organizer/payouts", headers=organizer_headers)
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["status"] == "completed"


@pytest.mark.asyncio
async def test_payout_request_not_active(client, organizer_headers, platform_config):
    response = await client.post("/api/organizer/payouts", headers=organizer_headers)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "AccountNotActive"
    assert response.json()["detail"]["payout_status"] == "not_setup"


@pytest.mark.asyncio
async def test_decline_endpoint_is_idempotent(client, organizer_headers, admin_headers, payable):
    payout = (await client.post("/api/organizer/payouts", headers=organizer_headers)).json()
    url = f"/api/admin/payouts/{payout['organizer_id']}/{payout['id']}/decline"

    first = await client.post(url, headers=admin_headers, json={"reason": "Wrong bank"})
    second = await client.post(url, headers=admin_headers, json={"reason": "Wrong bank"})

    assert first.json()["idempotent"] is False
    assert second.status_code == 200
    assert second.json()["idempotent"] is True
    assert second.json()["payout"]["decline_reason"] == "Wrong bank"


@pytest.mark.asyncio
async def test_withdrawal_endpoints(client, organizer_headers, admin_headers, payable):
    response = await client.post(
        "/api/organizer/withdrawals",
        headers=organizer_headers,
        json={"event_id": payable.id, "amount": 8000, "method": "bank"},
    )
    assert response.status_code == 201
    withdrawal = response.json()["withdrawal"]
    assert withdrawal["status"] == "pending"
    assert "moncash_number" not in withdrawal

    url = f"/api/admin/withdrawals/{withdrawal['id']}"
    response = await client.post(url, headers=admin_headers, json={"action": "complete"})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "InvalidTransition"

    response = await client.post(url, headers=admin_headers, json={"action": "approve"})
    assert response.status_code == 200
    assert response.json()["withdrawal"]["status"] == "processing"

    response = await client.post(url, headers=admin_headers, json={"action": "refund"})
    assert response.status_code == 422

    response = await client.get("/api/organizer/withdrawals", headers=organizer_headers)
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_withdrawal_amount_must_be_positive(client, organizer_headers, payable):
    response = await client.post(
        "/api/organizer/withdrawals",
        headers=organizer_headers,
        json={"event_id": payable.id, "amount": -5, "method": "bank"},
    )
    assert response.status_code == 422


# ============================================================================
# DESTINATIONS AND VERIFICATION
# ============================================================================

@pytest.mark.asyncio
async def test_payout_method_and_destinations(client, organizer_headers, admin_headers):
    response = await client.put("/api/organizer/payout-method", headers=organizer_headers, json=BANK_SETUP)
    assert response.status_code == 200
    assert response.json()["method"] == "bank_transfer"
    assert response.json()["status"] == "pending_verification"

    response = await client.get("/api/organizer/payout-destinations/bank", headers=organizer_headers)
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["account_number_last4"] == "3344"
    assert items[0]["verified"] is False
    assert "account_number" not in items[0]

    response = await client.get("/api/admin/destinations/org-1/bank_primary", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["account_number"] == "0011223344"

    response = await client.get("/api/admin/destinations/org-1/bank_primary", headers=organizer_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_verification_endpoints(client, organizer_headers, admin_headers):
    await client.put("/api/organizer/payout-method", headers=organizer_headers, json=BANK_SETUP)

    response = await client.post(
        "/api/organizer/verifications",
        headers=organizer_headers,
        json={"type": "identity", "evidence": {"document_url": "https://files.example.com/id.pdf"}},
    )
    assert response.status_code == 201
    response = await client.post(
        "/api/organizer/verifications/bank",
        headers=organizer_headers,
        json={"evidence": {"statement_url": "https://files.example.com/statement.pdf"}},
    )
    assert response.status_code == 201

    queue = (await client.get("/api/admin/verifications", headers=admin_headers)).json()
    assert queue["total"] == 2

    for item in queue["items"]:
        response = await client.post(
            f"/api/admin/verifications/{item['organizer_id']}/{item['doc_key']}/review",
            headers=admin_headers,
            json={"decision": "approve"},
        )
        assert response.status_code == 200

    status = (await client.get("/api/organizer/payout-status", headers=organizer_headers)).json()
    assert status["status"] == "active"
    assert len(status["documents"]) == 2

    response = await client.post(
        "/api/admin/organizers/org-1/hold",
        headers=admin_headers,
        json={"on_hold": True, "reason": "Chargeback review"},
    )
    assert response.json()["status"] == "on_hold"


# ============================================================================
# SETTINGS
# ============================================================================

@pytest.mark.asyncio
async def test_platform_settings(client, test_db, admin_headers, platform_config):
    response = await client.get("/api/admin/settings/payouts", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["minimum_payout_amount"] == 5000

    response = await client.put(
        "/api/admin/settings/payouts",
        headers=admin_headers,
        json={"minimum_payout_amount": 10000, "settlement_hold_days": 5},
    )
    assert response.status_code == 200
    assert response.json()["minimum_payout_amount"] == 10000
    assert response.json()["settlement_hold_days"] == 5
    assert response.json()["updated_by"] == "admin-1"

    audit = (await test_db.execute(
        select(AdminAuditLog).where(AdminAuditLog.action == "payout.settings.update")
    )).scalar_one()
    assert audit.details["minimum_payout_amount"] == [5000, 10000]

    response = await client.put(
        "/api/admin/settings/payouts",
        headers=admin_headers,
        json={"settlement_hold_days": -1},
    )
    assert response.status_code == 422
