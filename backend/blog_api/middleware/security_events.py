"""Record a security event for every rejected request."""

from __future__ import annotations

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from blog_api.domain import container
from blog_api.domain.security_log import status_event


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class SecurityEventMiddleware(BaseHTTPMiddleware):
    """Maps 4xx/5xx responses onto security events.

    401 becomes AUTH_FAILURE, 403 UNAUTHORIZED_ACCESS, 429 RATE_LIMIT_EXCEEDED
    and any other error status INVALID_INPUT. Recording goes through the
    bounded recorder and never affects the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            # Unhandled errors surface as 500 from the outermost handler.
            self._record(request, 500)
            raise
        self._record(request, response.status_code)
        return response

    def _record(self, request: Request, status_code: int) -> None:
        event_type = status_event(status_code)
        if event_type is None:
            return
        container.get_security_recorder().record(
            event_type,
            ip=client_ip(request),
            endpoint=f"{request.method} {request.url.path}",
            user_id=getattr(request.state, "user_id", None),
            user_agent=request.headers.get("User-Agent"),
            details=f"HTTP {status_code}",
        )
