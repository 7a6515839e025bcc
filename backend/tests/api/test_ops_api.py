import pytest

from blog_api.settings import settings


@pytest.mark.asyncio
async def test_health_endpoints(api_client):
    live = await api_client.get("/health/live")
    assert live.json() == {"status": "ok"}

    ready = await api_client.get("/health/ready")
    assert ready.status_code == 200
    checks = ready.json()["checks"]
    assert checks["redis"]["ok"] is True
    assert checks["postgres"] == {"ok": True, "mode": "memory"}


@pytest.mark.asyncio
async def test_metrics_fail_closed_without_token(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    monkeypatch.setattr(settings, "obs_admin_token", None)
    response = await api_client.get("/metrics")
    assert response.status_code == 403
    assert response.json()["detail"] == "admin_token_not_configured"


@pytest.mark.asyncio
async def test_metrics_with_token(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    monkeypatch.setattr(settings, "obs_admin_token", "secret-token")

    wrong = await api_client.get("/metrics", headers={"X-Admin-Token": "nope"})
    assert wrong.status_code == 403
    assert wrong.json()["detail"] == "forbidden"

    response = await api_client.get("/metrics", headers={"X-Admin-Token": "secret-token"})
    assert response.status_code == 200
    assert "blog_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_security_headers_and_request_id(api_client):
    response = await api_client.get("/health/live", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Content-Security-Policy"].startswith("default-src 'none'")
    assert response.headers["Cache-Control"] == "no-store"
    assert "Strict-Transport-Security" not in response.headers
