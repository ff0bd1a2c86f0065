"""Degraded mode — the API keeps running when the store is unreachable.

Learn: With the store given up on, the process still answers: /health
says "degraded", token checks still run first (no token → 401), and
anything that needs the store fails on its own with 503. The same holds
for a store that has not finished connecting, or one that dropped after
connecting.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import DBAPIError

from taskflow.db.engine import StoreConnection, StoreState
from taskflow.main import create_app

from conftest import TEST_DB_URL, auth_header, make_settings


async def _no_wait(seconds: float) -> None:
    return None


@pytest_asyncio.fixture()
async def degraded_app(tmp_path):
    """App whose store failed all 3 connection attempts."""
    url = f"sqlite+aiosqlite:///{tmp_path}/missing/taskflow.db"
    store = StoreConnection(url)
    state = await store.establish(max_attempts=3, delay=5.0, sleep=_no_wait)
    assert state is StoreState.DEGRADED
    try:
        yield create_app(settings=make_settings(database_url=url), store=store)
    finally:
        await store.close()


@pytest_asyncio.fixture()
async def degraded_client(degraded_app):
    transport = ASGITransport(app=degraded_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ═══════════════════════════════════════════════════════════
# Store never reached
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_health_still_answers(degraded_client):
    r = await degraded_client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "degraded"
    assert r.json()["store"] == "degraded"


@pytest.mark.asyncio
async def test_task_request_with_valid_token_gets_503(degraded_app, degraded_client):
    token = degraded_app.state.tokens.issue(str(uuid.uuid4()))
    r = await degraded_client.get("/api/tasks", headers=auth_header(token))
    assert r.status_code == 503
    assert r.json()["detail"] == "Database unavailable"


@pytest.mark.asyncio
async def test_missing_token_is_still_401(degraded_client):
    """The token check runs before anything touches the store."""
    r = await degraded_client.get("/api/tasks")
    assert r.status_code == 401

    r = await degraded_client.get("/api/tasks", headers=auth_header("garbage"))
    assert r.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path,body",
    [
        ("/api/auth/register", {"name": "Ann", "email": "ann@example.com", "password": "secret1"}),
        ("/api/auth/login", {"email": "ann@example.com", "password": "secret1"}),
    ],
)
async def test_auth_routes_get_503(degraded_client, path, body):
    r = await degraded_client.post(path, json=body)
    assert r.status_code == 503


@pytest.mark.asyncio
async def test_server_keeps_serving(degraded_app, degraded_client):
    token = degraded_app.state.tokens.issue(str(uuid.uuid4()))
    for _ in range(3):
        r = await degraded_client.post(
            "/api/tasks", json={"title": "x"}, headers=auth_header(token)
        )
        assert r.status_code == 503
    assert (await degraded_client.get("/api/health")).status_code == 200


# ═══════════════════════════════════════════════════════════
# Store still connecting / dropped later
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_store_not_yet_connected_gets_503():
    """Requests arriving before establish() has finished."""
    store = StoreConnection(TEST_DB_URL)
    app = create_app(settings=make_settings(), store=store)
    token = app.state.tokens.issue(str(uuid.uuid4()))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        r = await client.get("/api/tasks", headers=auth_header(token))
        health = await client.get("/api/health")

    assert r.status_code == 503
    assert health.json()["store"] == "unconnected"


@pytest.mark.asyncio
async def test_disconnect_mid_request_marks_store(app, client, store, signup):
    ann = await signup()

    async def _dropped():
        raise DBAPIError("SELECT 1", {}, OSError("server closed"), connection_invalidated=True)

    app.add_api_route("/api/dropped", _dropped)
    r = await client.get("/api/dropped")
    assert r.status_code == 503
    assert store.state is StoreState.DISCONNECTED

    # Nothing reconnects: store-backed requests keep failing, health says so
    r = await client.get("/api/tasks", headers=ann["headers"])
    assert r.status_code == 503
    assert (await client.get("/api/health")).json()["store"] == "disconnected"
