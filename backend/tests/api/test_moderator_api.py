import pytest

from blog_api.domain import container
from blog_api.domain.models import Comment, Role


def _as(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_report_review_flow(api_client, seed):
    await seed.user("alice")
    await seed.user("bob")
    await seed.user("mod", Role.MODERATOR)
    await seed.post("p1", "bob")

    created = await api_client.post(
        "/api/reports",
        json={"targetType": "post", "targetId": "p1", "reason": "spam", "description": "link farm"},
        headers=_as("alice"),
    )
    assert created.status_code == 201
    report = created.json()
    assert report["status"] == "pending"
    assert report["reporterId"] == "alice"

    duplicate = await api_client.post(
        "/api/reports",
        json={"targetType": "post", "targetId": "p1", "reason": "spam"},
        headers=_as("alice"),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "conflict"

    listing = await api_client.get("/api/moderator/reports", params={"status": "pending"}, headers=_as("mod"))
    assert listing.status_code == 200
    body = listing.json()
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert body["items"][0]["id"] == report["id"]

    detail = await api_client.get(f"/api/moderator/reports/{report['id']}", headers=_as("mod"))
    assert detail.status_code == 200
    assert detail.json()["target"]["ownerId"] == "bob"

    reviewing = await api_client.patch(
        f"/api/moderator/reports/{report['id']}", json={"status": "reviewing"}, headers=_as("mod")
    )
    assert reviewing.status_code == 200
    assert reviewing.json()["status"] == "reviewing"

    resolved = await api_client.patch(
        f"/api/moderator/reports/{report['id']}",
        json={"status": "resolved", "actionTaken": "content_removed", "reviewNotes": "Spam link"},
        headers=_as("mod"),
    )
    assert resolved.status_code == 200
    payload = resolved.json()
    assert payload["actionTaken"] == "content_removed"
    assert payload["reviewerId"] == "mod"
    assert await container.get_post_repository().get("p1") is None

    reopened = await api_client.patch(
        f"/api/moderator/reports/{report['id']}", json={"status": "pending"}, headers=_as("mod")
    )
    assert reopened.status_code == 409
    assert reopened.json()["error"] == "invalid_transition"


@pytest.mark.asyncio
async def test_regular_user_is_kept_out_of_moderator_console(api_client, seed):
    await seed.user("alice")
    response = await api_client.get("/api/moderator/reports", headers=_as("alice"))
    assert response.status_code == 403
    assert response.json()["error"] == "authorization_error"
    assert "request_id" in response.json()


@pytest.mark.asyncio
async def test_unknown_sort_key_is_rejected(api_client, seed):
    await seed.user("mod", Role.MODERATOR)
    response = await api_client.get("/api/moderator/reports", params={"sortBy": "secret"}, headers=_as("mod"))
    assert response.status_code == 400
    assert response.json()["field"] == "sortBy"


@pytest.mark.asyncio
async def test_ban_and_unban(api_client, seed):
    await seed.user("bob")
    await seed.user("mod", Role.MODERATOR)
    await seed.user("mod2", Role.MODERATOR)

    banned = await api_client.post("/api/moderator/users/bob/ban", json={"reason": "Spamming"}, headers=_as("mod"))
    assert banned.status_code == 200
    assert banned.json()["isBanned"] is True
    assert banned.json()["banReason"] == "Spamming"

    listing = await api_client.get("/api/moderator/users/banned", headers=_as("mod"))
    assert [user["id"] for user in listing.json()["items"]] == ["bob"]

    # A banned user can still authenticate but cannot file reports.
    blocked = await api_client.post(
        "/api/reports",
        json={"targetType": "user", "targetId": "mod", "reason": "other"},
        headers=_as("bob"),
    )
    assert blocked.status_code == 403

    peer = await api_client.post("/api/moderator/users/mod2/ban", json={}, headers=_as("mod"))
    assert peer.status_code == 403
    assert peer.json()["error"] == "policy_violation"

    unbanned = await api_client.post("/api/moderator/users/bob/unban", headers=_as("mod"))
    assert unbanned.status_code == 200
    assert unbanned.json()["isBanned"] is False


@pytest.mark.asyncio
async def test_moderator_removes_post_and_comment(api_client, seed):
    await seed.user("bob")
    await seed.user("mod", Role.MODERATOR)
    await seed.post("p1", "bob")
    await seed.post("p2", "bob")
    await container.get_post_repository().add_comment(Comment(id="c1", post_id="p2", author_id="bob", body="hey"))

    removed = await api_client.delete("/api/moderator/posts/p1", params={"reason": "spam"}, headers=_as("mod"))
    assert removed.status_code == 200
    assert removed.json()["id"] == "p1"

    missing = await api_client.delete("/api/moderator/posts/p1", headers=_as("mod"))
    assert missing.status_code == 404

    comment = await api_client.delete("/api/moderator/comments/c1", headers=_as("mod"))
    assert comment.status_code == 200
    assert comment.json()["postId"] == "p2"


@pytest.mark.asyncio
async def test_moderator_stats(api_client, seed):
    await seed.user("alice")
    await seed.user("bob")
    await seed.user("mod", Role.MODERATOR)
    await seed.post("p1", "bob")
    await api_client.post(
        "/api/reports",
        json={"targetType": "post", "targetId": "p1", "reason": "harassment"},
        headers=_as("alice"),
    )

    response = await api_client.get("/api/moderator/stats", headers=_as("mod"))
    assert response.status_code == 200
    assert response.json() == {
        "pending": 1,
        "reviewing": 0,
        "resolvedToday": 0,
        "bannedUsers": 0,
        "reportsByReason": {"harassment": 1},
    }
