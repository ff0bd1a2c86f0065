"""Store connection — async SQLAlchemy engine behind a retrying connector.

Learn: The process must come up even when the database doesn't. At startup
StoreConnection.establish() probes the store in a bounded loop:

  unconnected → connecting → connected
  unconnected → connecting → failed → connecting → ... → degraded
  unconnected → connecting → degraded            (schema creation failed)

Degraded is not fatal. The app keeps serving /health, and every request
that needs the store fails on its own with 503 (get_db checks the state
before opening a session). A disconnect after a successful connect is
logged and flips the state to "disconnected"; nothing re-runs the retry
loop after that.

The connection object lives on app.state.store so tests can hand the app
a store in whatever state they need.
"""

import asyncio
import enum
from typing import AsyncIterator, Awaitable, Callable, Optional

import structlog
from fastapi import Depends, Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskflow.db.models import Base
from taskflow.errors import StoreUnavailableError

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class StoreState(str, enum.Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    DEGRADED = "degraded"
    DISCONNECTED = "disconnected"


class FailureKind(str, enum.Enum):
    CONNECTION_REFUSED = "connection_refused"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


FAILURE_HINTS: dict[FailureKind, str] = {
    FailureKind.CONNECTION_REFUSED: (
        "Database is not running or not reachable: check the service is "
        "started, the host/port in TASKFLOW_DATABASE_URL and firewall rules"
    ),
    FailureKind.AUTHENTICATION: (
        "Authentication failed: check the username and password in "
        "TASKFLOW_DATABASE_URL and the user's permissions"
    ),
    FailureKind.TIMEOUT: (
        "Connection timed out: check network access to the database host "
        "and any IP allow-list in front of it"
    ),
    FailureKind.UNKNOWN: "Unexpected connection error, see the error message",
}


def _exception_chain(exc: BaseException):
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        orig = getattr(current, "orig", None)
        current = orig if isinstance(orig, BaseException) else (
            current.__cause__ or current.__context__
        )


def classify_failure(exc: BaseException) -> FailureKind:
    """Best-effort diagnosis of a failed connection attempt.

    Only used for log output and the check-store command. The retry policy
    is the same whatever the kind.
    """
    for err in _exception_chain(exc):
        if isinstance(err, (asyncio.TimeoutError, TimeoutError)):
            return FailureKind.TIMEOUT
        if isinstance(err, ConnectionRefusedError):
            return FailureKind.CONNECTION_REFUSED

    message = " ".join(str(err) for err in _exception_chain(exc)).lower()
    if "refused" in message:
        return FailureKind.CONNECTION_REFUSED
    if "authentication" in message or "password" in message:
        return FailureKind.AUTHENTICATION
    if "timeout" in message or "timed out" in message:
        return FailureKind.TIMEOUT
    return FailureKind.UNKNOWN


def redact_url(url: str) -> str:
    """Render a database URL with the password masked."""
    if not url:
        return "NOT SET"
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable url>"


class StoreConnection:
    """Owns the engine, the session factory and the connection state."""

    def __init__(
        self,
        url: str = "",
        *,
        engine: Optional[AsyncEngine] = None,
        echo: bool = False,
        connect_timeout: float = 5.0,
    ):
        self.url = url
        self.echo = echo
        self.connect_timeout = connect_timeout
        self.state = StoreState.UNCONNECTED
        self.last_failure: Optional[FailureKind] = None
        self._engine = engine
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._listening = False

    # ─── Engine ──────────────────────────────────────────

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = self._build_engine()
        return self._engine

    def _build_engine(self) -> AsyncEngine:
        kwargs = {"echo": self.echo, "pool_pre_ping": True}
        if not make_url(self.url).get_backend_name().startswith("sqlite"):
            # Connection pool: 5 steady, up to 20 under load.
            kwargs.update(pool_size=5, max_overflow=15)
        return create_async_engine(self.url, **kwargs)

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory

    @property
    def is_connected(self) -> bool:
        return self.state is StoreState.CONNECTED

    def require_connected(self) -> None:
        """Raise StoreUnavailableError unless the store is usable."""
        if not self.is_connected:
            raise StoreUnavailableError()

    # ─── Establish (bounded retry) ───────────────────────

    async def _probe(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def establish(
        self,
        max_attempts: int,
        delay: float,
        *,
        sleep: Sleep = asyncio.sleep,
        create_schema: bool = False,
    ) -> StoreState:
        """Try to connect up to max_attempts times, delay seconds apart.

        Never raises for a store failure: after the last attempt, or when
        create_schema fails on a reachable store, the state is DEGRADED and
        control returns to the caller.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        if not self.url and self._engine is None:
            logger.error(
                "taskflow.store.skipped",
                reason="TASKFLOW_DATABASE_URL is not set",
            )
            self.state = StoreState.DEGRADED
            return self.state

        logger.info("taskflow.store.connecting", url=redact_url(self.url))

        for attempt in range(1, max_attempts + 1):
            self.state = StoreState.CONNECTING
            try:
                await asyncio.wait_for(self._probe(), timeout=self.connect_timeout)
            except Exception as e:
                self.state = StoreState.FAILED
                self.last_failure = classify_failure(e)
                logger.warning(
                    "taskflow.store.connect_failed",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    kind=self.last_failure.value,
                    error=str(e),
                    hint=FAILURE_HINTS[self.last_failure],
                )
                if attempt < max_attempts:
                    logger.info("taskflow.store.retrying", delay_seconds=delay)
                    await sleep(delay)
                continue

            if create_schema:
                try:
                    await self.create_schema()
                except Exception as e:
                    # Schema errors are not retried
                    self.state = StoreState.DEGRADED
                    self.last_failure = classify_failure(e)
                    logger.error(
                        "taskflow.store.schema_failed",
                        kind=self.last_failure.value,
                        error=str(e),
                        message="Server keeps running; database operations will fail",
                    )
                    return self.state

            self.state = StoreState.CONNECTED
            self.last_failure = None
            self._listen_for_disconnects()
            logger.info(
                "taskflow.store.connected",
                url=redact_url(self.url),
                attempt=attempt,
            )
            return self.state

        self.state = StoreState.DEGRADED
        logger.error(
            "taskflow.store.degraded",
            attempts=max_attempts,
            message="Server keeps running; database operations will fail",
        )
        return self.state

    # ─── Disconnects ─────────────────────────────────────

    def _listen_for_disconnects(self) -> None:
        if self._listening:
            return
        event.listen(self.engine.sync_engine, "handle_error", self._on_engine_error)
        self._listening = True

    def _on_engine_error(self, context) -> None:
        if context.is_disconnect:
            self.mark_disconnected(str(context.original_exception))
        else:
            logger.error(
                "taskflow.store.error",
                error=str(context.original_exception),
            )

    def mark_disconnected(self, reason: str = "") -> None:
        """Record a dropped connection. Store requests fail until restart."""
        if self.state is StoreState.DISCONNECTED:
            return
        self.state = StoreState.DISCONNECTED
        logger.warning("taskflow.store.disconnected", reason=reason)

    # ─── Schema / shutdown ───────────────────────────────

    async def create_schema(self) -> None:
        """Create missing tables (dev and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


# ─── FastAPI dependencies ────────────────────────────────


def get_store(request: Request) -> StoreConnection:
    return request.app.state.store


async def get_db(
    store: StoreConnection = Depends(get_store),
) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes.

    Fails the request with 503 when the store is not connected.
    """
    store.require_connected()
    async with store.session_factory() as session:
        yield session
