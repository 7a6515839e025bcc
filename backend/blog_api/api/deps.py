"""Shared FastAPI dependencies: principal resolution and rate budgets."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from blog_api.domain.models import Principal
from blog_api.infra import rate_limit
from blog_api.infra.auth import get_current_principal
from blog_api.middleware.security_events import client_ip
from blog_api.obs import metrics as obs_metrics
from blog_api.settings import settings

_WINDOW_SECONDS = 60


async def enforce_rate(kind: str, actor: str, limit: int) -> None:
    if await rate_limit.allow(kind, actor, limit=limit, window_seconds=_WINDOW_SECONDS):
        return
    obs_metrics.RATE_LIMITED.labels(kind=kind).inc()
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="rate_limited",
        headers={"Retry-After": str(rate_limit.retry_after(_WINDOW_SECONDS))},
    )


async def current_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Authenticated principal, charged against the general API budget."""

    await enforce_rate("api", principal.id, settings.rate_limit_api_per_minute)
    return principal


async def reporting_principal(principal: Principal = Depends(current_principal)) -> Principal:
    await enforce_rate("reports", principal.id, settings.rate_limit_reports_per_minute)
    return principal


async def anonymous_budget(request: Request) -> None:
    """Charge unauthenticated reads to the caller's IP."""

    await enforce_rate("api:ip", client_ip(request), settings.rate_limit_api_per_minute)
