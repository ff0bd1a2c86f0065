"""Test fixtures — an in-memory store per test, no database server needed.

Learn: Each test gets a fresh SQLite database (aiosqlite, StaticPool so
every session shares the one in-memory connection) wrapped in a
StoreConnection that has already been established. The app is built with
create_app(settings, store), so tests decide what state the store is in.

httpx's ASGITransport does not run the lifespan, so no background connect
task and no Redis: the fixtures set everything up explicitly.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from taskflow.config import Settings
from taskflow.db.engine import StoreConnection
from taskflow.main import create_app

TEST_DB_URL = "sqlite+aiosqlite://"
TEST_SECRET = "test-signing-secret-0123456789-abcdefghij"


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": TEST_DB_URL,
        "jwt_secret": TEST_SECRET,
        "environment": "test",
        "bcrypt_rounds": 4,
        "redis_url": "",
    }
    values.update(overrides)
    return Settings(**values)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def settings():
    return make_settings()


@pytest_asyncio.fixture()
async def store():
    """A connected store backed by a private in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    store = StoreConnection(TEST_DB_URL, engine=engine)
    await store.establish(max_attempts=1, delay=0, create_schema=True)
    try:
        yield store
    finally:
        await store.close()


@pytest_asyncio.fixture()
async def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def signup(client):
    """Register + login helper. Returns {"user", "token", "headers"}.

    Learn: Uses a unique email per call so one test can create as many
    users as it needs.
    """

    async def _signup(name: str = "Test User", email: str = None, password: str = "secret1"):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        r = await client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert r.status_code == 201, r.text

        r = await client.post(
            "/api/auth/login",
            json={"email": email, "password": password},
        )
        assert r.status_code == 200, r.text
        body = r.json()
        return {
            "user": body["user"],
            "token": body["token"],
            "headers": auth_header(body["token"]),
        }

    return _signup
