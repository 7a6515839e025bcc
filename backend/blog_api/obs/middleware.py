"""Per-request timing, Prometheus observation and the ``http_request`` log line."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from blog_api.api.request_id import REQUEST_ID_ATTR
from blog_api.obs import logging as obs_logging
from blog_api.obs import metrics

_log = obs_logging.get_logger("blog.http")


def route_label(request: Request) -> str:
	"""Use the matched route template so ids do not explode metric cardinality."""
	route = request.scope.get("route")
	return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = getattr(request.state, REQUEST_ID_ATTR, None) or str(uuid4())
		token = obs_logging.bind_context(
			request_id=request_id,
			route=request.url.path,
			client_ip=request.client.host if request.client else None,
		)
		started = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
			return response
		except Exception:
			_log.exception("http_request_failed", extra={"method": request.method})
			raise
		finally:
			elapsed = time.perf_counter() - started
			label = route_label(request)
			metrics.observe_request(label, request.method, status_code, elapsed)
			level = "warning" if status_code >= 500 else "info"
			getattr(_log, level)(
				"http_request",
				extra={
					"method": request.method,
					"status": status_code,
					"route_template": label,
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
			obs_logging.reset_context(token)


def install(app: FastAPI) -> None:
	app.add_middleware(ObservabilityMiddleware)
