"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (store connection, Redis).
Middleware, exception handlers and routers are all registered here.

Startup never blocks on the database: the connection attempts run as a
background task, so /health answers while the store is still connecting
and after it has given up (degraded mode).
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskflow import __version__
from taskflow.api import build_api_router
from taskflow.auth.jwt import TokenIssuer
from taskflow.config import Settings, settings as default_settings
from taskflow.db.engine import StoreConnection
from taskflow.errors import register_exception_handlers

logger = structlog.get_logger()


async def init_redis(url: str) -> Optional[aioredis.Redis]:
    """Connect to Redis for rate limiting. None when unavailable."""
    if not url:
        return None
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except Exception as e:
        # Redis is optional: without it there is no rate limiting
        logger.warning("taskflow.redis_unavailable", error=str(e))
        await client.aclose()
        return None
    logger.info("taskflow.redis_connected")
    return client


def report_missing_settings(config: Settings) -> list[str]:
    """Log every required setting that is unset. Does not stop startup."""
    missing = config.missing_required()
    for name in missing:
        logger.error(
            "taskflow.config.missing",
            setting=f"TASKFLOW_{name.upper()}",
            message="Server will start, but dependent features will fail",
        )
    return missing


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown.
    """
    config: Settings = app.state.settings
    store: StoreConnection = app.state.store

    logger.info(
        "taskflow.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
    )
    report_missing_settings(config)

    connect_task = asyncio.create_task(
        store.establish(
            config.store_connect_attempts,
            config.store_connect_delay_seconds,
            create_schema=config.auto_create_schema,
        )
    )
    app.state.redis = await init_redis(config.redis_url)

    yield

    logger.info("taskflow.shutdown")

    connect_task.cancel()
    try:
        await connect_task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.error("taskflow.store.connect_crashed", error=str(e))

    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None

    await store.close()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[StoreConnection] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    config = settings or default_settings
    app = FastAPI(
        title="TaskFlow",
        description="Multi-user task tracker API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.store = store or StoreConnection(
        config.database_url,
        echo=config.debug,
        connect_timeout=config.store_connect_timeout_seconds,
    )
    app.state.tokens = TokenIssuer(
        config.jwt_secret,
        algorithm=config.jwt_algorithm,
        ttl=timedelta(minutes=config.access_token_expire_minutes),
    )
    app.state.redis = None

    register_exception_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration, so the
    # catch-all sits innermost and its 500s still get headers and IDs.
    # Request flow: CORS → RateLimit → Security → RequestId → CatchAll → handler

    from taskflow.middleware.errors import CatchAllErrorMiddleware
    from taskflow.middleware.rate_limit import RateLimitMiddleware
    from taskflow.middleware.request_id import RequestIdMiddleware
    from taskflow.middleware.security import SecurityHeadersMiddleware

    prefix = config.api_prefix
    app.add_middleware(CatchAllErrorMiddleware, expose_errors=not config.is_production)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=config.rate_limit_rpm,
        auth_rpm=config.rate_limit_auth_rpm,
        auth_paths=(f"{prefix}/auth/login", f"{prefix}/auth/register"),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(build_api_router(prefix))

    return app


# Default app instance (used by uvicorn: taskflow.main:app)
app = create_app()
