"""TaskFlow CLI — operator tooling for the backend.

Usage:
    taskflow serve                      # Run the API with uvicorn
    taskflow check-store                # Diagnose the database connection
    taskflow health                     # Ask a running server for /health
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from taskflow import __version__
from taskflow.config import Settings
from taskflow.db.engine import (
    FAILURE_HINTS,
    StoreConnection,
    StoreState,
    redact_url,
)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:5000/api"


def _api_url() -> str:
    return os.environ.get("TASKFLOW_API_URL", DEFAULT_API_URL).rstrip("/")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _state_color(state: str) -> str:
    return {
        "connected": "green",
        "connecting": "yellow",
        "failed": "red",
        "degraded": "red",
        "disconnected": "red",
    }.get(state, "white")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="taskflow")
def main():
    """TaskFlow — multi-user task tracker backend."""


# ---------------------------------------------------------------------------
# taskflow serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: TASKFLOW_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: TASKFLOW_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes (dev only)")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    config = Settings()
    uvicorn.run(
        "taskflow.main:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# taskflow check-store
# ---------------------------------------------------------------------------


@main.command("check-store")
@click.option("--database-url", default=None, help="Override TASKFLOW_DATABASE_URL")
@click.option("--attempts", "-n", default=1, show_default=True, help="Connection attempts")
@click.option("--delay", "-d", default=1.0, show_default=True, help="Seconds between attempts")
def check_store(database_url: Optional[str], attempts: int, delay: float):
    """Try to connect to the database and explain any failure."""
    config = Settings()
    url = database_url or config.database_url

    click.secho("Database connection diagnostics", bold=True)
    click.echo(f"URL: {redact_url(url)}")
    if not url:
        click.secho(
            "TASKFLOW_DATABASE_URL is not set. Add it to your environment or .env file.",
            fg="red",
            err=True,
        )
        sys.exit(2)

    store = StoreConnection(url, connect_timeout=config.store_connect_timeout_seconds)
    state = _run(_check_store_impl(store, attempts, delay))

    click.secho(f"State: {state.value}", fg=_state_color(state.value))
    if state is StoreState.CONNECTED:
        click.secho("Connection OK", fg="green")
        return

    if store.last_failure is not None:
        click.echo(f"Failure: {store.last_failure.value}")
        click.echo(f"Hint: {FAILURE_HINTS[store.last_failure]}")
    sys.exit(1)


async def _check_store_impl(store: StoreConnection, attempts: int, delay: float) -> StoreState:
    try:
        return await store.establish(attempts, delay)
    finally:
        await store.close()


# ---------------------------------------------------------------------------
# taskflow health
# ---------------------------------------------------------------------------


@main.command()
@click.option("--api-url", default=None, help="API base URL (or set TASKFLOW_API_URL)")
def health(api_url: Optional[str]):
    """Query /health on a running server."""
    base = (api_url or _api_url()).rstrip("/")
    try:
        r = httpx.get(f"{base}/health", timeout=5.0)
        r.raise_for_status()
    except httpx.HTTPError as e:
        click.secho(f"Server not reachable at {base}: {e}", fg="red", err=True)
        sys.exit(1)

    data = r.json()
    click.echo(json.dumps(data, indent=2))
    if data.get("status") != "ok":
        click.secho(f"Store: {data.get('store')}", fg=_state_color(data.get("store", "")))
        sys.exit(1)


if __name__ == "__main__":
    main()
