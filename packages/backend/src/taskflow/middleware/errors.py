"""Catch-all error middleware — last line of defence for request faults.

Learn: Anything the exception handlers in taskflow.errors don't map ends
up here. The fault is logged with its traceback and the client gets a
generic 500; the message of the underlying error is included only outside
production. The process itself never goes down because of a request.
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into 500 responses."""

    def __init__(self, app, expose_errors: bool = False):
        super().__init__(app)
        self.expose_errors = expose_errors

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "taskflow.request.unhandled_error",
                method=request.method,
                path=request.url.path,
            )
            content = {"detail": "Server error"}
            if self.expose_errors:
                content["error"] = str(e)
            return JSONResponse(status_code=500, content=content)
