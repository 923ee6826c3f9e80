"""
Restaurant Ledger Tests.

Per-driver-per-restaurant scoping: filters, settlement scope checks,
the confirming actor and restaurant access control.
"""

import pytest
from decimal import Decimal

from backend.app.core.exceptions import ConflictError
from backend.app.core.jwt import create_access_token
from backend.app.domain.ledger.auto_settlement import AutoSettlementPolicy
from backend.app.domain.ledger.balance_calculator import BalanceCalculator
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.settlement_engine import SettlementEngine
from backend.app.models.enums import UserRole
from backend.app.models.ledger_enums import LedgerEntryType


async def _seed_two_restaurants(db):
    """driver-1 owes at rest-a (20.00 - 2.00) and at rest-b (10.00)."""
    a_earn = await LedgerStore.append(db, "driver-1", LedgerEntryType.EARNING, "20.00", "Delivery fee", restaurant_id="rest-a")
    a_fee = await LedgerStore.append(db, "driver-1", LedgerEntryType.FEE, "-2.00", "Platform fee", restaurant_id="rest-a")
    b_earn = await LedgerStore.append(db, "driver-1", LedgerEntryType.EARNING, "10.00", "Delivery fee", restaurant_id="rest-b")
    await db.commit()
    return a_earn.id, a_fee.id, b_earn.id


def _headers(user_id, role, **claims):
    token = create_access_token(data={"sub": user_id, "role": role.value, **claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_entries_and_balance_are_scoped_by_restaurant(db_session):
    await _seed_two_restaurants(db_session)
    await LedgerStore.append(db_session, "driver-1", LedgerEntryType.EARNING, "5.00", "Platform bonus")
    await db_session.commit()

    page = await LedgerStore.list_entries(db_session, "driver-1", restaurant_id="rest-a")
    assert page.total == 2
    assert {e.restaurant_id for e in page.items} == {"rest-a"}

    scoped = await BalanceCalculator.compute_balance(db_session, "driver-1", restaurant_id="rest-a")
    assert scoped.restaurant_id == "rest-a"
    assert scoped.current_balance == Decimal("18.00")
    assert scoped.pending_settlement == Decimal("18.00")

    overall = await BalanceCalculator.compute_balance(db_session, "driver-1")
    assert overall.restaurant_id is None
    assert overall.total_earnings == Decimal("35.00")


@pytest.mark.asyncio
async def test_settlement_records_restaurant_and_confirmer(db_session):
    a_earn, a_fee, _ = await _seed_two_restaurants(db_session)

    settlement = await SettlementEngine.settle(
        db_session, "driver-1", [a_earn, a_fee], "18.00", confirmed_by="rest-a-manager"
    )

    assert settlement.restaurant_id == "rest-a"
    assert settlement.confirmed_by == "rest-a-manager"
    assert (await LedgerStore.list_settlements(db_session, "driver-1", restaurant_id="rest-a")).total == 1
    assert (await LedgerStore.list_settlements(db_session, "driver-1", restaurant_id="rest-b")).total == 0

    rest_b = await BalanceCalculator.compute_balance(db_session, "driver-1", restaurant_id="rest-b")
    assert rest_b.total_settlements == Decimal("0")
    assert rest_b.pending_settlement == Decimal("10.00")


@pytest.mark.asyncio
async def test_settle_rejects_entries_outside_one_restaurant(db_session):
    a_earn, a_fee, b_earn = await _seed_two_restaurants(db_session)

    with pytest.raises(ConflictError) as exc_info:
        await SettlementEngine.settle(db_session, "driver-1", [a_earn, b_earn], "30.00")
    assert exc_info.value.details["entry_restaurant_ids"] == ["rest-a", "rest-b"]

    with pytest.raises(ConflictError):
        await SettlementEngine.settle(db_session, "driver-1", [a_earn, a_fee], "18.00", restaurant_id="rest-b")

    entries = await LedgerStore.get_entries(db_session, [a_earn, a_fee, b_earn])
    assert not any(e.is_settled for e in entries)


@pytest.mark.asyncio
async def test_auto_settle_runs_per_restaurant(db_session):
    await _seed_two_restaurants(db_session)

    with pytest.raises(ConflictError) as exc_info:
        await AutoSettlementPolicy.auto_settle(db_session, "driver-1", "0")
    assert exc_info.value.details["restaurant_ids"] == ["rest-a", "rest-b"]

    result = await AutoSettlementPolicy.auto_settle(
        db_session, "driver-1", "10", restaurant_id="rest-a", confirmed_by="admin-1"
    )
    assert result.processed is True
    assert result.amount == Decimal("18.00")
    assert result.entries_settled == 2

    settlement = await LedgerStore.get_settlement(db_session, result.settlement_id)
    assert settlement.restaurant_id == "rest-a"
    assert settlement.confirmed_by == "admin-1"

    remaining = await LedgerStore.list_unsettled_entries(db_session, "driver-1")
    assert [e.restaurant_id for e in remaining] == ["rest-b"]


@pytest.mark.asyncio
async def test_restaurant_caller_is_pinned_to_own_ledger(client, admin_headers, restaurant_headers):
    await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "restaurantId": "rest-b", "type": "earning",
        "amount": "15.50", "description": "Delivery fee",
    }, headers=admin_headers)

    response = await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "type": "earning", "amount": "8.00", "description": "Delivery fee",
    }, headers=restaurant_headers)
    assert response.status_code == 201
    assert response.json()["data"]["restaurantId"] == "restaurant-1"

    response = await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "restaurantId": "rest-b", "type": "earning",
        "amount": "1.00", "description": "Delivery fee",
    }, headers=restaurant_headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM"

    data = (await client.get("/v1/ledger/driver/driver-1", headers=restaurant_headers)).json()["data"]
    assert data["pagination"]["total"] == 1
    assert data["entries"][0]["amount"] == "8.00"

    response = await client.get("/v1/ledger/driver/driver-1?restaurantId=rest-b", headers=restaurant_headers)
    assert response.status_code == 403

    balance = (await client.get("/v1/ledger/balance/driver-1", headers=restaurant_headers)).json()["data"]
    assert balance["restaurantId"] == "restaurant-1"
    assert balance["totalEarnings"] == "8.00"

    balance = (await client.get("/v1/ledger/balance/driver-1", headers=admin_headers)).json()["data"]
    assert balance["restaurantId"] is None
    assert balance["totalEarnings"] == "23.50"


@pytest.mark.asyncio
async def test_restaurant_cannot_settle_or_read_other_restaurant(client, admin_headers, restaurant_headers):
    foreign = (await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "restaurantId": "rest-b", "type": "earning",
        "amount": "15.50", "description": "Delivery fee",
    }, headers=admin_headers)).json()["data"]

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "15.50", "settledEntries": [foreign["id"]],
    }, headers=restaurant_headers)
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT"

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "restaurantId": "rest-b", "amount": "15.50", "settledEntries": [foreign["id"]],
    }, headers=admin_headers)
    assert response.status_code == 201
    settlement = response.json()["data"]
    assert settlement["restaurantId"] == "rest-b"
    assert settlement["confirmedBy"] == "admin-1"

    response = await client.get(f"/v1/ledger/settlement/{settlement['id']}", headers=restaurant_headers)
    assert response.status_code == 403

    history = (await client.get("/v1/ledger/settlements/driver-1", headers=restaurant_headers)).json()["data"]
    assert history["pagination"]["total"] == 0

    history = (await client.get("/v1/ledger/settlements/driver-1?restaurantId=rest-b", headers=admin_headers)).json()["data"]
    assert history["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_restaurant_settles_own_ledger(client, restaurant_headers):
    own = (await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "type": "earning", "amount": "12.00", "description": "Delivery fee",
    }, headers=restaurant_headers)).json()["data"]

    response = await client.post("/v1/ledger/settlement", json={
        "driverId": "driver-1", "amount": "12.00", "settledEntries": [own["id"]], "notes": "Cash handover",
    }, headers=restaurant_headers)

    assert response.status_code == 201
    settlement = response.json()["data"]
    assert settlement["restaurantId"] == "restaurant-1"
    assert settlement["confirmedBy"] == "restaurant-1"

    detail = await client.get(f"/v1/ledger/settlement/{settlement['id']}", headers=restaurant_headers)
    assert detail.status_code == 200


@pytest.mark.asyncio
async def test_restaurant_claim_in_token_selects_ledger(client, admin_headers):
    await client.post("/v1/ledger/entry", json={
        "driverId": "driver-1", "restaurantId": "rest-b", "type": "earning",
        "amount": "15.50", "description": "Delivery fee",
    }, headers=admin_headers)
    manager = _headers("manager-9", UserRole.RESTAURANT, restaurant_id="rest-b")

    data = (await client.get("/v1/ledger/driver/driver-1", headers=manager)).json()["data"]
    assert [e["restaurantId"] for e in data["entries"]] == ["rest-b"]


@pytest.mark.asyncio
async def test_auto_settle_endpoint_accepts_restaurant(client, admin_headers):
    for restaurant_id, amount in (("rest-a", "20.00"), ("rest-b", "10.00")):
        await client.post("/v1/ledger/entry", json={
            "driverId": "driver-1", "restaurantId": restaurant_id, "type": "earning",
            "amount": amount, "description": "Delivery fee",
        }, headers=admin_headers)

    response = await client.post("/v1/ledger/auto-settle/driver-1", json={"minAmount": "0"}, headers=admin_headers)
    assert response.status_code == 409

    response = await client.post(
        "/v1/ledger/auto-settle/driver-1", json={"minAmount": "0", "restaurantId": "rest-b"}, headers=admin_headers
    )
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["processed"] is True
    assert result["amount"] == "10.00"
