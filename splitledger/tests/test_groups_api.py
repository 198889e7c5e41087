import pytest

from flask_jwt_extended import create_access_token

pytestmark = pytest.mark.integration


def _auth_headers(app, user_id: int, roles=("groups:write",)):
    with app.app_context():
        token = create_access_token(identity=str(user_id), additional_claims={"roles": list(roles)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def ledger(make_user, make_group, make_transaction):
    alice, bob = make_user("Alice"), make_user("Bob")
    group = make_group(alice, bob)
    tx = make_transaction(group, alice, "120.00")
    return alice, bob, group, tx


def _split_evenly(client, app, alice, bob, tx):
    return client.post(
        f"/api/transactions/{tx.id}/split",
        json={"splits": [{"member_id": alice.id, "amount": "60.00"}, {"member_id": bob.id, "amount": "60.00"}]},
        headers=_auth_headers(app, alice.id),
    )


def test_split_then_read_balances(app, client, ledger):
    alice, bob, group, tx = ledger

    resp = _split_evenly(client, app, alice, bob, tx)
    assert resp.status_code == 200
    body = resp.get_json()
    assert [s["member_id"] for s in body["splits"]] == [alice.id, bob.id]
    assert [s["is_paid"] for s in body["splits"]] == [True, False]
    assert body["events"][0]["event_type"] == "groups.split.created"
    assert body["events"][0]["user_id"] == bob.id

    resp = client.get(f"/api/groups/{group.id}/balances", headers=_auth_headers(app, bob.id, roles=()))
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["currency"] == "USD"
    rows = {row["member"]["id"]: row for row in data["balances"]}
    assert rows[alice.id]["net_balance"] == "60.00"
    assert rows[alice.id]["is_owed"] == [{"member_id": bob.id, "name": "Bob", "amount": "60.00"}]
    assert rows[bob.id]["net_balance"] == "-60.00"
    assert rows[bob.id]["owes"] == [{"member_id": alice.id, "name": "Alice", "amount": "60.00"}]
    assert rows[bob.id]["member"]["is_current_member"] is True

    resp = client.get(f"/api/groups/{group.id}/balances/debts", headers=_auth_headers(app, bob.id))
    assert resp.get_json()["items"] == [{"from_member_id": bob.id, "to_member_id": alice.id, "amount": "60.00"}]


def test_split_sum_mismatch_is_a_validation_error(app, client, ledger):
    alice, bob, group, tx = ledger

    resp = client.post(
        f"/api/transactions/{tx.id}/split",
        json={"splits": [{"member_id": alice.id, "amount": "40"}, {"member_id": bob.id, "amount": "50"}]},
        headers=_auth_headers(app, alice.id),
    )

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["error"] == "validation_error"
    assert body["details"] == {"expected": "120.00", "actual": "90.00"}


def test_malformed_split_payload(app, client, ledger):
    alice, bob, group, tx = ledger

    resp = client.post(
        f"/api/transactions/{tx.id}/split",
        json={"splits": [{"member_id": alice.id, "amount": "-1"}]},
        headers=_auth_headers(app, alice.id),
    )

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"


def test_split_requires_write_role(app, client, ledger):
    alice, bob, group, tx = ledger

    resp = client.post(
        f"/api/transactions/{tx.id}/split",
        json={"splits": []},
        headers=_auth_headers(app, alice.id, roles=()),
    )

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_missing_token_is_rejected(client, ledger):
    alice, bob, group, tx = ledger

    assert client.get(f"/api/groups/{group.id}/balances").status_code == 401


def test_outsider_cannot_read_balances(app, client, ledger, make_user):
    alice, bob, group, tx = ledger
    outsider = make_user()

    resp = client.get(f"/api/groups/{group.id}/balances", headers=_auth_headers(app, outsider.id))

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "unauthorized"


def test_unknown_group_is_404(app, client, ledger):
    alice, bob, group, tx = ledger

    resp = client.get("/api/groups/999/balances", headers=_auth_headers(app, alice.id))

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_corrupt_splits_surface_as_422(app, client, make_user, make_group, make_transaction):
    alice, bob = make_user(), make_user()
    group = make_group(alice, bob)
    make_transaction(group, alice, "100", {alice.id: "10", bob.id: "10"})

    resp = client.get(f"/api/groups/{group.id}/balances", headers=_auth_headers(app, alice.id))

    assert resp.status_code == 422
    assert resp.get_json()["error"] == "data_integrity_error"


def test_mark_split_paid_endpoint(app, client, ledger):
    alice, bob, group, tx = ledger
    _split_evenly(client, app, alice, bob, tx)

    resp = client.post(f"/api/transactions/{tx.id}/splits/{bob.id}/paid", headers=_auth_headers(app, bob.id))
    assert resp.status_code == 200
    assert resp.get_json()["split"]["is_paid"] is True

    resp = client.get(f"/api/transactions/{tx.id}/splits", headers=_auth_headers(app, bob.id))
    assert all(item["is_paid"] for item in resp.get_json()["items"])

    resp = client.get(f"/api/groups/{group.id}/balances", headers=_auth_headers(app, alice.id))
    assert {row["net_balance"] for row in resp.get_json()["balances"]} == {"0.00"}


def test_settlement_lifecycle_over_http(app, client, ledger):
    alice, bob, group, tx = ledger
    headers = _auth_headers(app, bob.id)

    resp = client.post(
        f"/api/groups/{group.id}/settlements",
        json={"to_user_id": alice.id, "amount": "60.00", "currency": "gbp"},
        headers=headers,
    )
    assert resp.status_code == 201
    settlement = resp.get_json()["settlement"]
    assert settlement["from_user_id"] == bob.id
    assert settlement["currency"] == "GBP"
    assert settlement["amount"] == "60.00"
    assert settlement["status"] == "pending"

    resp = client.post(f"/api/settlements/{settlement['id']}/paid", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["settlement"]["status"] == "paid"

    resp = client.post(f"/api/settlements/{settlement['id']}/paid", headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "invalid_state_transition"

    resp = client.get(f"/api/groups/{group.id}/settlements?status=paid", headers=headers)
    body = resp.get_json()
    assert body["total"] == 1
    assert body["items"][0]["id"] == settlement["id"]


def test_settlement_list_pagination_and_bad_status(app, client, ledger):
    alice, bob, group, tx = ledger
    headers = _auth_headers(app, alice.id)
    for amount in ("1", "2", "3"):
        resp = client.post(
            f"/api/groups/{group.id}/settlements",
            json={"from_user_id": bob.id, "to_user_id": alice.id, "amount": amount},
            headers=headers,
        )
        assert resp.status_code == 201

    resp = client.get(f"/api/groups/{group.id}/settlements?per_page=2&page=2", headers=headers)
    body = resp.get_json()
    assert body["total"] == 3
    assert body["pages"] == 2
    assert len(body["items"]) == 1

    resp = client.get(f"/api/groups/{group.id}/settlements?status=refunded", headers=headers)
    assert resp.status_code == 400


def test_cancel_endpoint(app, client, ledger):
    alice, bob, group, tx = ledger
    headers = _auth_headers(app, alice.id)
    resp = client.post(
        f"/api/groups/{group.id}/settlements",
        json={"from_user_id": bob.id, "to_user_id": alice.id, "amount": "5"},
        headers=headers,
    )
    settlement_id = resp.get_json()["settlement"]["id"]

    resp = client.post(f"/api/settlements/{settlement_id}/cancel", headers=headers)

    assert resp.status_code == 200
    assert resp.get_json()["settlement"]["status"] == "cancelled"


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_outsider_cannot_list_settlements(app, client, ledger, make_user):
    alice, bob, group, tx = ledger
    outsider = make_user()

    resp = client.get(f"/api/groups/{group.id}/settlements", headers=_auth_headers(app, outsider.id))

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "unauthorized"
