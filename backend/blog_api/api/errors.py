"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_api.api.request_id import get_request_id
from blog_api.domain.errors import DomainError

logger = logging.getLogger("blog.errors")


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_exc_handler(request: Request, exc: DomainError):  # type: ignore[override]
        payload = exc.as_payload()
        payload["request_id"] = get_request_id(request)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = {
            "error": "validation_error",
            "detail": "Request validation failed",
            "errors": jsonable_errors(exc),
            "request_id": get_request_id(request),
        }
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.exception("unhandled_error", extra={"path": request.url.path})
        payload = {"error": "internal_error", "detail": "Internal server error", "request_id": get_request_id(request)}
        return JSONResponse(status_code=500, content=payload)


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", "")), "type": error.get("type")}
        for error in exc.errors()
    ]
