"""Hardening headers for every JSON response, including error responses."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Nothing this API returns is ever rendered or framed.
_BASE_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
_HSTS = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(_BASE_HEADERS)
        response.headers.setdefault("Content-Security-Policy", _CSP)
        # Moderation and admin payloads carry user data.
        response.headers.setdefault("Cache-Control", "no-store")
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = _HSTS
        return response
