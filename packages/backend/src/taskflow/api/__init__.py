"""API route aggregation.

All routers registered here get mounted in main.py under the configured
prefix (settings.api_prefix, "/api" by default).

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. Health and auth routers are open (no auth
required); the handlers in users/tasks also depend on get_current_user
to receive the user, and FastAPI resolves it once per request.
"""

from fastapi import APIRouter, Depends

from taskflow.api.auth import router as auth_router
from taskflow.api.health import router as health_router
from taskflow.api.tasks import router as tasks_router
from taskflow.api.users import router as users_router
from taskflow.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]


def build_api_router(prefix: str = "/api") -> APIRouter:
    api_router = APIRouter(prefix=prefix)

    # Open routes, no auth required
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router, tags=["auth"])

    # Protected routes, bearer token required
    api_router.include_router(users_router, tags=["user"], dependencies=_auth)
    api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
    return api_router
