"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blog_api.api import admin, moderator, ops, posts, reports
from blog_api.api.errors import install_error_handlers
from blog_api.api.middleware_request_id import RequestIdMiddleware
from blog_api.domain import container
from blog_api.infra import postgres
from blog_api.middleware import SecurityEventMiddleware, SecurityHeadersMiddleware
from blog_api.obs import init as obs_init
from blog_api.obs import logging as obs_logging
from blog_api.settings import settings

logger = obs_logging.get_logger("blog.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.postgres_enabled:
		pool = await postgres.init_pool()
		container.configure_postgres(pool)
	else:
		logger.warning("postgres_disabled", extra={"mode": "memory"})
	recorder = container.get_security_recorder()
	recorder.start()
	try:
		yield
	finally:
		await recorder.stop()
		await postgres.close_pool()


app = FastAPI(title="Blog API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins and settings.is_dev():
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = [origin for origin in allow_origins if origin != "*"]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["GET", "POST", "PATCH", "DELETE"],
	allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.hsts_enabled)
app.add_middleware(SecurityEventMiddleware)
obs_init(app)

# Ensure every request carries an X-Request-Id and make it available on request.state
app.add_middleware(RequestIdMiddleware)

app.include_router(posts.router)
app.include_router(reports.router)
app.include_router(moderator.router)
app.include_router(admin.router)
app.include_router(ops.router)
