"""
Ledger API Tests.

End-to-end HTTP flows: envelopes, status codes and access control.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import select

from backend.app.core.jwt import create_access_token
from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import UserRole
from backend.app.services.audit import AuditAction, get_audit_trail


async def _create_entry(client, headers, **overrides):
    payload = {
        "driverId": "driver-1",
        "orderId": "order-1",
        "type": "earning",
        "amount": "15.50",
        "description": "Delivery fee",
    }
    payload.update(overrides)
    return await client.post("/v1/ledger/entry", json=payload, headers=headers)


@pytest.mark.asyncio
async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "connected"

    response = await client.get("/")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_create_entry_returns_201_envelope(client, restaurant_headers):
    response = await _create_entry(client, restaurant_headers, metadata={"feeType": "delivery", "zone": "north"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    entry = body["data"]
    assert entry["driverId"] == "driver-1"
    assert entry["type"] == "earning"
    assert entry["amount"] == "15.50"
    assert entry["isSettled"] is False
    assert entry["settledAt"] is None
    assert entry["metadata"] == {"feeType": "delivery", "zone": "north"}


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"type": "fee", "amount": "5.00"},
    {"type": "earning", "amount": "-1.00"},
    {"amount": "0"},
    {"amount": "1.234"},
    {"description": ""},
    {"type": "bonus"},
])
async def test_create_entry_validation_errors(client, admin_headers, overrides):
    response = await _create_entry(client, admin_headers, **overrides)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_driver_cannot_create_entries(client, driver_headers):
    response = await _create_entry(client, driver_headers)
    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["error_code"] == "ERR_PERM"


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client):
    response = await client.get("/v1/ledger/balance/driver-1")
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH"


@pytest.mark.asyncio
async def test_logout_revokes_current_token(client):
    token = create_access_token(data={"sub": "admin-2", "role": UserRole.ADMIN.value})
    headers = {"Authorization": f"Bearer {token}"}
    assert (await client.get("/v1/ledger/balance/driver-1", headers=headers)).status_code == 200

    response = await client.post("/v1/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"revoked": True}

    response = await client.get("/v1/ledger/balance/driver-1", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Token has been revoked"

    assert (await client.post("/v1/auth/logout")).status_code == 401


@pytest.mark.asyncio
async def test_logout_fails_when_revocation_list_is_down(client, admin_headers, redis_client_session, mocker):
    mocker.patch.object(redis_client_session, "set", side_effect=RedisConnectionError("down"))

    response = await client.post("/v1/auth/logout", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["error_code"] == "ERR_INTERNAL_SERVER"


@pytest.mark.asyncio
async def test_audit_trail_endpoint(client, admin_headers, restaurant_headers):
    entry = (await _create_entry(client, admin_headers)).json()["data"]
    await _create_entry(client, admin_headers, driverId="driver-2")

    response = await client.get("/v1/ledger/audit?driverId=driver-1", headers=admin_headers)
    assert response.status_code == 200
    trail = response.json()["data"]
    assert trail["total"] == 1
    log = trail["logs"][0]
    assert log["action"] == AuditAction.LEDGER_ENTRY_CREATED
    assert log["actorId"] == "admin-1"
    assert log["driverId"] == "driver-1"
    assert log["metadata"]["entry_id"] == entry["id"]

    response = await client.get("/v1/ledger/audit?limit=1", headers=admin_headers)
    assert response.json()["data"]["total"] == 1

    response = await client.get("/v1/ledger/audit", headers=restaurant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_driver_ledger_with_filters(client, admin_headers, driver_headers):
    await _create_entry(client, admin_headers, amount="10.00")
    await _create_entry(client, admin_headers, type="fee", amount="-1.50", description="Platform fee")
    await _create_entry(client, admin_headers, amount="20.00")

    response = await client.get("/v1/ledger/driver/driver-1?type=earning&limit=1", headers=driver_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
    assert [e["amount"] for e in data["entries"]] == ["20.00"]


@pytest.mark.asyncio
async def test_list_driver_ledger_limit_bounds(client, admin_headers):
    response = await client.get("/v1/ledger/driver/driver-1?limit=101", headers=admin_headers)
    assert response.status_code == 400

    response = await client.get("/v1/ledger/driver/driver-1?page=0", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_driver_cannot_read_other_driver(client):
    token = create_access_token(data={"sub": "driver-2", "role": UserRole.DRIVER.value})
    headers = {"Authorization": f"Bearer {token}"}

    for path in ("/v1/ledger/driver/driver-1", "/v1/ledger/balance/driver-1", "/v1/ledger/settlements/driver-1"):
        response = await client.get(path, headers=headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "ERR_PERM"


@pytest.mark.asyncio
async def test_unknown_driver_reads_are_empty(client, admin_headers):
    response = await client.get("/v1/ledger/driver/ghost", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["entries"] == []

    response = await client.get("/v1/ledger/balance/ghost", headers=admin_headers)
    balance = response.json()["data"]
    assert balance["currentBalance"] == "0.00"
    assert balance["lastSettlement"] is None


@pytest.mark.asyncio
async def test_settlement_flow(client, admin_headers, driver_headers, db_session):
    earning = (await _create_entry(client, admin_headers)).json()["data"]
    fee = (await _create_entry(client, admin_headers, type="fee", amount="-5.00", description="Platform fee")).json()["data"]

    balance = (await client.get("/v1/ledger/balance/driver-1", headers=driver_headers)).json()["data"]
    assert balance["currentBalance"] == "10.50"
    assert balance["pendingSettlement"] == "10.50"

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1",
        "amount": "10.50",
        "settledEntries": [earning["id"], fee["id"]],
        "paymentMethod": "bank_transfer",
        "paymentReference": "TX-42",
    }, headers=admin_headers)

    assert response.status_code == 201
    settlement = response.json()["data"]
    assert settlement["amount"] == "10.50"
    assert settlement["settledEntries"] == [earning["id"], fee["id"]]

    balance = (await client.get("/v1/ledger/balance/driver-1", headers=driver_headers)).json()["data"]
    assert balance["pendingSettlement"] == "0.00"
    assert balance["totalSettlements"] == "10.50"
    assert balance["lastSettlement"]["id"] == settlement["id"]

    detail = (await client.get(f"/v1/ledger/settlement/{settlement['id']}", headers=driver_headers)).json()["data"]
    assert [e["id"] for e in detail["entries"]] == [earning["id"], fee["id"]]
    assert all(e["isSettled"] for e in detail["entries"])
    assert all(e["settlementId"] == settlement["id"] for e in detail["entries"])

    history = (await client.get("/v1/ledger/settlements/driver-1", headers=driver_headers)).json()["data"]
    assert history["pagination"]["total"] == 1
    assert history["pagination"]["limit"] == 20

    actions = (await db_session.execute(select(AuditLog.action).order_by(AuditLog.id))).scalars().all()
    assert actions == [
        AuditAction.LEDGER_ENTRY_CREATED,
        AuditAction.LEDGER_ENTRY_CREATED,
        AuditAction.SETTLEMENT_CREATED,
    ]

    trail = await get_audit_trail(db_session, driver_id="driver-1", action=AuditAction.SETTLEMENT_CREATED)
    assert len(trail) == 1
    assert trail[0].actor_id == "admin-1"
    assert trail[0].actor_role == "admin"
    assert trail[0].meta_data["settlement_id"] == settlement["id"]


@pytest.mark.asyncio
async def test_settlement_errors(client, admin_headers):
    earning = (await _create_entry(client, admin_headers)).json()["data"]

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "11.00", "settledEntries": [earning["id"]],
    }, headers=admin_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_RECONCILIATION"
    assert body["details"]["expected_amount"] == "15.50"

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "15.50", "settledEntries": [earning["id"], 999],
    }, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["details"]["missing_entry_ids"] == [999]

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "15.50", "settledEntries": [],
    }, headers=admin_headers)
    assert response.status_code == 400

    ok = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "15.50", "settledEntries": [earning["id"]],
    }, headers=admin_headers)
    assert ok.status_code == 201

    again = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "15.50", "settledEntries": [earning["id"]],
    }, headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "ERR_CONFLICT"


@pytest.mark.asyncio
async def test_unknown_settlement_is_404(client, admin_headers):
    response = await client.get("/v1/ledger/settlement/12345", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND"


@pytest.mark.asyncio
async def test_auto_settle_endpoint(client, admin_headers, restaurant_headers):
    await _create_entry(client, admin_headers, amount="30.00")

    response = await client.post("/v1/ledger/auto-settle/driver-1", json={"minAmount": "50"}, headers=admin_headers)
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["processed"] is False
    assert result["settlementId"] is None

    response = await client.post("/v1/ledger/auto-settle/driver-1", headers=admin_headers)
    assert response.json()["data"]["processed"] is False

    response = await client.post("/v1/ledger/auto-settle/driver-1", json={"minAmount": "25.00"}, headers=admin_headers)
    result = response.json()["data"]
    assert result["processed"] is True
    assert result["amount"] == "30.00"
    assert result["entriesSettled"] == 1

    response = await client.post("/v1/ledger/auto-settle/driver-1", json={}, headers=restaurant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_summary_requires_admin(client, admin_headers, restaurant_headers):
    response = await client.get("/v1/ledger/summary/all", headers=restaurant_headers)
    assert response.status_code == 403

    response = await client.get("/v1/ledger/summary/all?period=decade", headers=admin_headers)
    assert response.status_code == 400

    response = await client.get("/v1/ledger/summary/all", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["period"] == "week"
