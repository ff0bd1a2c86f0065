"""Security headers middleware.

Learn: Adds standard hardening headers to every response:
- X-Content-Type-Options: no MIME-type sniffing
- X-Frame-Options: no framing (clickjacking)
- Referrer-Policy: limit referrer leakage
- Cache-Control: API responses carry tokens and personal data, never cache them
- Strict-Transport-Security: only when the request arrived over HTTPS,
  directly or through a proxy that sets X-Forwarded-Proto
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
}


def _is_https(request: Request) -> bool:
    forwarded = request.headers.get("X-Forwarded-Proto", "")
    return request.url.scheme == "https" or forwarded.lower() == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if _is_https(request):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response
