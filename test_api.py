"""
API tests for the casino service, run against the Flask test client with a
temp-dir JSON store, a fixed clock and a seeded RNG.
"""
import pytest

import config
from app import create_app
from conftest import FixedRng


@pytest.fixture
def client(store, clock):
    app = create_app(store=store, rng=FixedRng(), clock=clock,
                     secret_key="test-secret-key-0123456789-abcdefghijklmnop")
    app.config["TESTING"] = True
    return app.test_client()

def register(client, nickname, password="secret123"):
    r = client.post("/api/auth/register", json={
        "nickname": nickname, "email": f"{nickname}@example.com", "password": password})
    assert r.status_code == 201, r.get_json()
    d = r.get_json()
    return d["user"], {"Authorization": f"Bearer {d['access_token']}"}


def test_health(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.get_json()["ok"] is True

def test_register_and_login(client):
    user, _ = register(client, "alice")
    assert user["balance"] == config.STARTING_BALANCE
    assert "password_hash" not in user

    for ident in ("alice", "ALICE@example.com"):
        r = client.post("/api/auth/login", json={"identifier": ident, "password": "secret123"})
        assert r.status_code == 200
        assert r.get_json()["user"]["id"] == user["id"]

    r = client.post("/api/auth/login", json={"identifier": "alice", "password": "wrong-pass"})
    assert r.status_code == 401

def test_register_validation(client):
    register(client, "alice")
    r = client.post("/api/auth/register", json={"nickname": "Alice", "email": "x@example.com", "password": "secret123"})
    assert r.status_code == 409
    assert r.get_json()["error"] == "already_exists"
    r = client.post("/api/auth/register", json={"nickname": "bob", "email": "b@example.com", "password": "123"})
    assert r.status_code == 400

def test_register_draws_bank_account_from_app_rng(client):
    alice, _ = register(client, "alice")
    bob, _ = register(client, "bob")
    assert alice["bank_account"] == "9999999999"
    assert bob["bank_account"] == "1000000000"

def test_malformed_fields_are_rejected(client):
    bad = [
        {"nickname": 5, "email": "five@example.com", "password": "secret123"},
        {"nickname": "bob", "email": ["b@example.com"], "password": "secret123"},
        {"nickname": "bob", "email": "b@example.com", "password": 123456789},
    ]
    for payload in bad:
        r = client.post("/api/auth/register", json=payload)
        assert r.status_code == 400, payload
        assert r.get_json()["error"] == "invalid_argument"

    r = client.post("/api/auth/register", json=[1, 2])
    assert r.status_code == 400 and r.get_json()["message"] == "invalid_body"
    r = client.post("/api/auth/login", json={"identifier": {"nick": "x"}, "password": "secret123"})
    assert r.status_code == 400

    _, h = register(client, "alice")
    for path, payload in [
        ("/api/clans", {"name": 123}),
        ("/api/clans", [1, 2]),
        ("/api/bank/deposit", ["amount", 5]),
        ("/api/bank/transfer", {"to_account": 1234567890, "amount": 5}),
        ("/api/admin/grant", {"amount": 5, "target_id": 7}),
    ]:
        r = client.post(path, json=payload, headers=h)
        assert r.status_code == 400, (path, payload)

def test_clan_inputs_must_be_text(client, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAILS", {"boss@example.com"})
    boss, hb = register(client, "boss")
    member, hm = register(client, "member")
    client.post("/api/admin/grant", json={"amount": 100000}, headers=hb)
    clan_id = client.post("/api/clans", json={"name": "Sharks"}, headers=hb).get_json()["clan"]["id"]
    client.post(f"/api/clans/{clan_id}/join", headers=hm)

    r = client.post(f"/api/clans/{clan_id}/messages", json={"text": 99}, headers=hm)
    assert r.status_code == 400
    r = client.post(f"/api/clans/{clan_id}/action",
                    json={"action": "warn", "target_id": member["id"], "reason": 3}, headers=hb)
    assert r.status_code == 400
    r = client.post(f"/api/clans/{clan_id}/action", json={"action": ["kick"], "target_id": member["id"]}, headers=hb)
    assert r.status_code == 400
    assert len(client.get(f"/api/clans/{clan_id}").get_json()["clan"]["members"]) == 2

def test_auth_required(client):
    assert client.post("/api/bonus").status_code == 401
    assert client.post("/api/games/slots", json={"bet": 1}).status_code == 401

def test_bonus_too_early_carries_retry_time(client, clock):
    _, h = register(client, "alice")
    r = client.post("/api/bonus", headers=h)
    assert r.status_code == 200
    assert r.get_json()["amount"] == config.BONUS_MAX

    clock.advance(hours=1)
    r = client.post("/api/bonus", headers=h)
    assert r.status_code == 429
    d = r.get_json()
    assert d["error"] == "too_early"
    assert d["next_available"].startswith("2026-01-02T12:00:00")

def test_bank_flow(client):
    alice, ha = register(client, "alice")
    bob, _ = register(client, "bob")

    r = client.post("/api/bank/deposit", json={"amount": 10**9}, headers=ha)
    assert r.status_code == 400
    assert r.get_json()["error"] == "insufficient_funds"

    r = client.post("/api/bank/deposit", json={"amount": 1000}, headers=ha)
    assert r.get_json() == {"balance": 4000, "bank_balance": 1000}
    r = client.post("/api/bank/withdraw", json={"amount": 500}, headers=ha)
    assert r.get_json() == {"balance": 4500, "bank_balance": 500}

    r = client.post("/api/bank/transfer", json={"to_account": bob["bank_account"], "amount": 4500}, headers=ha)
    assert r.status_code == 200
    assert client.get(f"/api/profile/{bob['id']}").get_json()["profile"]["bank_balance"] == 4500

    r = client.post("/api/bank/transfer", json={"to_account": "nope", "amount": 1}, headers=ha)
    assert r.status_code == 404

    kinds = [t["kind"] for t in client.get("/api/transactions", headers=ha).get_json()["transactions"]]
    assert {"deposit", "withdraw", "transfer_out", "registration"} <= set(kinds)

def test_bad_amount_is_rejected(client):
    _, h = register(client, "alice")
    for payload in ({}, {"amount": -1}, {"amount": "lots"}, {"amount": 1.5}):
        r = client.post("/api/bank/deposit", json=payload, headers=h)
        assert r.status_code == 400, payload

def test_games(client):
    _, h = register(client, "alice")
    r = client.post("/api/games/slots", json={"bet": 100}, headers=h)
    d = r.get_json()
    assert r.status_code == 200
    assert d["symbols"] == ["777", "777", "777"] and d["win"] == 1000
    assert d["balance"] == config.STARTING_BALANCE + 900

    r = client.post("/api/games/basketball", json={"bet": 100}, headers=h)
    assert r.get_json()["multiplier"] == 2

    r = client.post("/api/games/rocket", json={"bet": 10**9}, headers=h)
    assert r.status_code == 400

    me = client.get("/api/users/me", headers=h).get_json()["user"]
    assert me["games_played"] == 2 and me["max_win"] == 1000

def test_clan_lifecycle(client, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAILS", {"boss@example.com"})
    boss, hb = register(client, "boss")
    member, hm = register(client, "member")

    r = client.post("/api/clans", json={"name": "Sharks"}, headers=hm)
    assert r.status_code == 400 and r.get_json()["error"] == "insufficient_funds"

    client.post("/api/admin/grant", json={"amount": 100000}, headers=hb)
    r = client.post("/api/admin/grant", json={"amount": 1}, headers=hm)
    assert r.status_code == 403

    r = client.post("/api/clans", json={"name": "Sharks", "description": "we bite"}, headers=hb)
    assert r.status_code == 201
    clan_id = r.get_json()["clan"]["id"]

    assert client.post(f"/api/clans/{clan_id}/join", headers=hm).status_code == 200
    assert client.post(f"/api/clans/{clan_id}/join", headers=hm).status_code == 409
    assert client.get("/api/clans").get_json()["clans"][0]["members"] == 2

    r = client.post(f"/api/clans/{clan_id}/messages", json={"text": "hi all"}, headers=hm)
    assert r.status_code == 200

    r = client.post(f"/api/clans/{clan_id}/action", json={"action": "promote", "target_id": boss["id"]}, headers=hm)
    assert r.status_code == 403

    for i in range(3):
        r = client.post(f"/api/clans/{clan_id}/action",
                        json={"action": "warn", "target_id": member["id"], "reason": f"r{i}"}, headers=hb)
        assert r.status_code == 200
    assert r.get_json()["kicked"] is True

    clan = client.get(f"/api/clans/{clan_id}").get_json()["clan"]
    assert [m["account_id"] for m in clan["members"]] == [boss["id"]]
    msgs = client.get(f"/api/clans/{clan_id}/messages", headers=hb).get_json()["messages"]
    assert msgs[-1]["system"] and "kicked" in msgs[-1]["text"]

    r = client.post(f"/api/clans/{clan_id}/action", json={"action": "dance", "target_id": member["id"]}, headers=hb)
    assert r.status_code == 400 and r.get_json()["message"] == "unknown_action"

def test_statuses_and_leaderboard(client):
    _, h = register(client, "alice")
    bob, _ = register(client, "bob")
    assert len(client.get("/api/statuses").get_json()["statuses"]) == 6

    r = client.post("/api/buy-status", json={"status_id": "s3"}, headers=h)
    assert r.status_code == 400
    r = client.post("/api/set-status", json={"status_id": "s1"}, headers=h)
    assert r.get_json()["status"] == "Newbie"

    client.post("/api/bank/deposit", json={"amount": 100}, headers=h)
    board = client.get("/api/leaderboard").get_json()
    assert board["players"][0]["id"] == bob["id"]
    assert client.get("/api/search-user?q=bo").get_json()["results"][0]["id"] == bob["id"]
