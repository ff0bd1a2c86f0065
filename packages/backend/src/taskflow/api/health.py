"""Health check endpoint.

Learn: Always answers 200 — this is the endpoint that must keep working
when the store is down. "status" says whether everything is up; "store"
carries the connection state (connecting, degraded, disconnected...).
Reading the state does not touch the database.
"""

from fastapi import APIRouter, Depends, Request

from taskflow import __version__
from taskflow.db.engine import StoreConnection, get_store

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, store: StoreConnection = Depends(get_store)):
    """Report server status and dependency state."""
    redis = getattr(request.app.state, "redis", None)
    checks = {
        "server": "ok",
        "version": __version__,
        "store": store.state.value,
        "redis": "ok" if redis is not None else "unavailable",
    }
    status = "ok" if store.is_connected else "degraded"
    return {"status": status, **checks}
