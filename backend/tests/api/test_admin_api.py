import pytest

from blog_api.domain import container
from blog_api.domain.models import Role


def _as(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_admin_dashboard_requires_admin(api_client, seed):
    await seed.user("admin", Role.ADMIN)
    await seed.user("mod", Role.MODERATOR)

    denied = await api_client.get("/api/admin/stats", headers=_as("mod"))
    assert denied.status_code == 403

    response = await api_client.get("/api/admin/stats", headers=_as("admin"))
    assert response.status_code == 200
    body = response.json()
    assert body["users"]["total"] == 2
    assert body["users"]["byRole"] == {"admin": 1, "moderator": 1}
    assert body["openReports"] == 0
    assert "securityEvents24h" in body


@pytest.mark.asyncio
async def test_user_management(api_client, seed):
    await seed.user("admin", Role.ADMIN)
    await seed.user("bob")
    await seed.post("p1", "bob", views=4)

    users = await api_client.get("/api/admin/users", params={"role": "user"}, headers=_as("admin"))
    assert [user["id"] for user in users.json()["items"]] == ["bob"]

    detail = await api_client.get("/api/admin/users/bob", headers=_as("admin"))
    assert detail.status_code == 200
    assert detail.json()["postCount"] == 1
    assert detail.json()["totalViews"] == 4
    assert detail.json()["recentPosts"][0]["id"] == "p1"

    promoted = await api_client.patch("/api/admin/users/bob/role", json={"role": "moderator"}, headers=_as("admin"))
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "moderator"

    escalate = await api_client.patch("/api/admin/users/bob/role", json={"role": "admin"}, headers=_as("admin"))
    assert escalate.status_code == 400

    deleted = await api_client.delete("/api/admin/users/bob", headers=_as("admin"))
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "User deleted", "postsRemoved": 1}

    self_delete = await api_client.delete("/api/admin/users/admin", headers=_as("admin"))
    assert self_delete.status_code == 403


@pytest.mark.asyncio
async def test_top_posts_route_is_not_shadowed_by_post_id(api_client, seed):
    await seed.user("admin", Role.ADMIN)
    await seed.post("p1", "admin", views=3, likes=7)
    await seed.post("p2", "admin", views=9, likes=1)

    by_views = await api_client.get("/api/admin/posts/top", headers=_as("admin"))
    assert by_views.status_code == 200
    assert [post["id"] for post in by_views.json()] == ["p2", "p1"]

    by_likes = await api_client.get("/api/admin/posts/top", params={"by": "likes", "limit": "1"}, headers=_as("admin"))
    assert [post["id"] for post in by_likes.json()] == ["p1"]

    invalid = await api_client.get("/api/admin/posts/top", params={"by": "shares"}, headers=_as("admin"))
    assert invalid.status_code == 400

    single = await api_client.get("/api/admin/posts/p2", headers=_as("admin"))
    assert single.json()["views"] == 9


@pytest.mark.asyncio
async def test_security_logs_capture_rejected_requests(api_client, seed):
    await seed.user("admin", Role.ADMIN)
    await seed.user("alice")

    assert (await api_client.get("/api/admin/stats", headers=_as("alice"))).status_code == 403
    assert (await api_client.get("/api/admin/stats")).status_code == 401
    await container.get_security_recorder().flush()

    response = await api_client.get(
        "/api/admin/security-logs", params={"eventType": "UNAUTHORIZED_ACCESS"}, headers=_as("admin")
    )
    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["userId"] == "alice"
    assert items[0]["endpoint"] == "GET /api/admin/stats"

    failures = await api_client.get(
        "/api/admin/security-logs", params={"eventType": "AUTH_FAILURE"}, headers=_as("admin")
    )
    assert failures.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_recent_activity_feed(api_client, seed):
    await seed.user("admin", Role.ADMIN)
    await seed.user("bob")
    await seed.post("p1", "bob", title="Hello")

    denied = await api_client.get("/api/admin/recent-activity", headers=_as("bob"))
    assert denied.status_code == 403

    response = await api_client.get("/api/admin/recent-activity", params={"limit": "2"}, headers=_as("admin"))
    assert response.status_code == 200
    activities = response.json()["activities"]
    assert len(activities) == 2
    assert {item["type"] for item in activities} <= {"post", "user"}
    assert all("createdAt" in item and "subjectId" in item for item in activities)
    stamps = [item["createdAt"] for item in activities]
    assert stamps == sorted(stamps, reverse=True)
