"""
HTTP tests for /api/me and /api/me/xp.

Auth is overridden with a fixed identity (see conftest.client); the store
layer is the in-memory FakeStore.
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.main import app, http_exception_handler
from tests.fixtures.ledger_store import TEST_EXTERNAL_ID, FakeStore, store_down

pytestmark = pytest.mark.asyncio


async def test_get_me_creates_user_on_first_call(client: AsyncClient, store: FakeStore):
    resp = await client.get("/api/me")

    assert resp.status_code == 200
    data = resp.json()
    assert data["externalId"] == TEST_EXTERNAL_ID
    assert data["name"] == "Test Caller"
    assert data["role"] == "USER"
    user_id = store.users[TEST_EXTERNAL_ID]["id"]
    assert store.ledger[user_id] == {"xp": 0, "level": 1}

    again = await client.get("/api/me")
    assert again.json()["id"] == data["id"]


async def test_get_xp_without_user_record_is_404(client: AsyncClient, store: FakeStore):
    resp = await client.get("/api/me/xp")

    assert resp.status_code == 404
    assert resp.json() == {"detail": "User not found", "code": "not_found"}


async def test_get_xp_new_user(client: AsyncClient, store: FakeStore):
    store.add_user(TEST_EXTERNAL_ID)

    resp = await client.get("/api/me/xp")

    assert resp.status_code == 200
    assert resp.json() == {
        "xp": 0,
        "level": 1,
        "totalXP": 0,
        "xpToNextLevel": 100,
        "xpProgressPercent": 0,
    }


async def test_post_xp_levels_up(client: AsyncClient, store: FakeStore):
    user_id = store.add_user(TEST_EXTERNAL_ID)
    store.set_ledger(user_id, xp=60, level=1)

    resp = await client.post("/api/me/xp", json={"amount": 50, "action": "job_application"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["xp"] == 110
    assert data["level"] == 2
    assert data["totalXP"] == 210
    assert data["xpToNextLevel"] == 200
    assert data["xpProgress"] == pytest.approx(55.0)
    assert data["leveledUp"] is True
    assert data["reasonTag"] == "job_application"
    assert data["amountAdded"] == 50
    assert data["message"] == "XP added successfully"


async def test_post_xp_without_level_up(client: AsyncClient, store: FakeStore):
    user_id = store.add_user(TEST_EXTERNAL_ID)
    store.set_ledger(user_id, xp=30, level=2)

    resp = await client.post("/api/me/xp", json={"amount": 20, "action": "course_start"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["xp"] == 50
    assert data["level"] == 2
    assert data["leveledUp"] is False
    assert data["totalXP"] == 150


@pytest.mark.parametrize(
    "body",
    [
        {"amount": -5, "action": "job_application"},
        {"amount": 0},
        {"action": "job_application"},
        {"amount": "50"},
        {"amount": None},
        {"amount": 12.5},
    ],
)
async def test_post_xp_invalid_amount_is_400(client: AsyncClient, store: FakeStore, body):
    user_id = store.add_user(TEST_EXTERNAL_ID)
    store.set_ledger(user_id, xp=40, level=1)

    resp = await client.post("/api/me/xp", json=body)

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_argument"
    assert store.ledger[user_id] == {"xp": 40, "level": 1}
    assert store.xp_log == []


async def test_post_xp_malformed_body_is_400(client: AsyncClient, store: FakeStore):
    store.add_user(TEST_EXTERNAL_ID)

    resp = await client.post(
        "/api/me/xp",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_argument"


async def test_post_xp_bad_amount_checked_before_user_lookup(client: AsyncClient, store: FakeStore):
    resp = await client.post("/api/me/xp", json={"amount": -1})

    assert resp.status_code == 400
    assert store.queries == []


async def test_post_xp_without_user_record_is_404(client: AsyncClient, store: FakeStore):
    resp = await client.post("/api/me/xp", json={"amount": 10, "action": "quest"})

    assert resp.status_code == 404


async def test_get_xp_twice_returns_same_result(client: AsyncClient, store: FakeStore):
    user_id = store.add_user(TEST_EXTERNAL_ID)
    store.set_ledger(user_id, xp=250, level=2)

    first = await client.get("/api/me/xp")
    second = await client.get("/api/me/xp")

    assert first.json() == second.json()
    assert first.json()["xpProgressPercent"] == 125.0


async def test_store_unavailable_is_500(client: AsyncClient, store: FakeStore):
    store.add_user(TEST_EXTERNAL_ID)
    store.fail_next = store_down()

    resp = await client.get("/api/me/xp")

    assert resp.status_code == 500
    assert resp.json()["code"] == "store_unavailable"


async def test_unauthenticated_requests_are_401(anon_client: AsyncClient, store: FakeStore):
    for method, path in (("GET", "/api/me"), ("GET", "/api/me/xp")):
        resp = await anon_client.request(method, path)
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthenticated"

    resp = await anon_client.post("/api/me/xp", json={"amount": 10})
    assert resp.status_code == 401
    assert store.queries == []


async def test_invalid_bearer_token_is_401(anon_client: AsyncClient, store: FakeStore):
    resp = await anon_client.get("/api/me/xp", headers={"Authorization": "Bearer not-a-jwt"})

    assert resp.status_code == 401


async def test_response_carries_request_id(client: AsyncClient, store: FakeStore):
    store.add_user(TEST_EXTERNAL_ID)

    resp = await client.get("/api/me/xp", headers={"X-Request-Id": "req-123"})

    assert resp.headers["X-Request-Id"] == "req-123"


async def test_anonymous_malformed_body_is_401(anon_client: AsyncClient, store: FakeStore):
    resp = await anon_client.post(
        "/api/me/xp",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthenticated"
    assert store.queries == []


@pytest.mark.parametrize("content", [b"[10]", b"42", b""])
async def test_post_xp_non_object_body_is_400(client: AsyncClient, store: FakeStore, content):
    store.add_user(TEST_EXTERNAL_ID)

    resp = await client.post("/api/me/xp", content=content, headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_argument"
    assert store.queries == []


async def test_unknown_route_goes_through_http_error_handler(anon_client: AsyncClient):
    assert app.exception_handlers[StarletteHTTPException] is http_exception_handler

    resp = await anon_client.get("/api/nope", headers={"Origin": "http://localhost:3000"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not Found"}
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    resp = await anon_client.put("/api/me/xp")
    assert resp.status_code == 405
    assert "allow" in resp.headers
