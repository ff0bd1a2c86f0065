"""Error taxonomy and the HTTP mapping for it.

Services raise these instead of HTTPException so the same rules apply
everywhere a request can fail:

- ValidationError → 400 (missing/malformed input, duplicate email)
- AuthError → 401 (one public message per outcome, cause kept internal)
- NotFoundError → 404 (absent and not-owned are indistinguishable)
- StoreUnavailableError → 503 (store never connected or dropped)
- ConfigurationError → 500 (known misconfiguration, logged where raised)

Unexpected faults are turned into 500 by CatchAllErrorMiddleware.
"""

import enum
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

logger = structlog.get_logger()


class TaskflowError(Exception):
    """Base for errors that map onto a client-facing response."""

    status_code = 500
    detail = "Server error"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

    def headers(self) -> Optional[dict[str, str]]:
        return None

    def body(self) -> dict[str, Any]:
        return {"detail": self.detail}


class ValidationError(TaskflowError):
    status_code = 400
    detail = "Invalid request"


class NotFoundError(TaskflowError):
    status_code = 404
    detail = "Not found"


class StoreUnavailableError(TaskflowError):
    status_code = 503
    detail = "Database unavailable"


class ConfigurationError(TaskflowError):
    """A required setting is missing, so the request can't be served.

    The message is for logs; the client gets the generic 500 body.
    """

    status_code = 500

    def __init__(self, message: str):
        super().__init__()
        self.message = message


class AuthFailure(str, enum.Enum):
    """Why a bearer token was rejected. Logged, never returned."""

    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    UNKNOWN_SUBJECT = "unknown_subject"


class AuthError(TaskflowError):
    """Rejected authorization.

    The reason distinguishes the four failure causes for logs and tests;
    the response only says whether a token was present at all.
    """

    status_code = 401

    def __init__(self, reason: AuthFailure):
        self.reason = reason
        if reason is AuthFailure.MISSING_TOKEN:
            detail = "No token, authorization denied"
        else:
            detail = "Token is not valid"
        super().__init__(detail)

    def headers(self) -> Optional[dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


def _error_response(exc: TaskflowError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.body(),
        headers=exc.headers(),
    )


async def _taskflow_error_handler(request: Request, exc: TaskflowError):
    if isinstance(exc, StoreUnavailableError):
        logger.warning(
            "taskflow.store.request_rejected",
            path=request.url.path,
            store_state=request.app.state.store.state.value,
        )
    return _error_response(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def _dbapi_error_handler(request: Request, exc: DBAPIError):
    """Connection loss mid-request is a store outage, anything else is a bug."""
    if exc.connection_invalidated:
        store = request.app.state.store
        store.mark_disconnected(str(exc.orig))
        return _error_response(StoreUnavailableError())
    raise exc


def register_exception_handlers(app: FastAPI) -> None:
    """Install the taxonomy's handlers on an app."""
    app.add_exception_handler(TaskflowError, _taskflow_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(DBAPIError, _dbapi_error_handler)
