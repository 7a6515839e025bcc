from datetime import timedelta

import pytest

from blog_api.domain.admin_service import AdminService
from blog_api.domain.dispatcher import ModerationDispatcher
from blog_api.domain.errors import AuthorizationError, NotFound, PolicyViolation, ValidationError
from blog_api.domain.models import (
    Post,
    PostCategory,
    Principal,
    Report,
    ReportReason,
    Role,
    SecurityEventType,
    SecurityLogEntry,
    TargetType,
    User,
    utcnow,
)
from blog_api.domain.moderation_service import ModerationService
from blog_api.domain.repositories import (
    InMemoryPostRepository,
    InMemoryReportRepository,
    InMemorySecurityLogRepository,
    InMemoryUserRepository,
)


class Harness:
    def __init__(self) -> None:
        self.users = InMemoryUserRepository()
        self.posts = InMemoryPostRepository()
        self.reports = InMemoryReportRepository()
        self.logs = InMemorySecurityLogRepository()
        dispatcher = ModerationDispatcher(self.users, self.posts, self.reports)
        moderation = ModerationService(self.users, self.posts, self.reports, dispatcher)
        self.service = AdminService(self.users, self.posts, self.reports, self.logs, moderation)

    async def user(self, user_id: str, role: Role = Role.USER, **kwargs) -> Principal:
        user = await self.users.create(User(id=user_id, email=f"{user_id}@example.com", role=role, **kwargs))
        return Principal.from_user(user)

    async def post(self, post_id: str, owner_id: str, **kwargs) -> Post:
        kwargs.setdefault("category", PostCategory.TECH)
        return await self.posts.create(Post(id=post_id, owner_id=owner_id, title=post_id, **kwargs))


@pytest.fixture
def h():
    return Harness()


@pytest.mark.asyncio
async def test_dashboard_stats(h):
    admin = await h.user("admin", Role.ADMIN, verified=True)
    await h.user("bob", verified=True)
    await h.user("mod", Role.MODERATOR)
    await h.post("p1", "bob", views=10, likes=2)
    await h.post("p2", "bob", views=5, likes=1, category=PostCategory.FOOD)
    await h.reports.create(Report(id="r1", reporter_id="mod", target_type=TargetType.POST, target_id="p1", reason=ReportReason.SPAM))
    await h.logs.append(SecurityLogEntry(event_type=SecurityEventType.AUTH_FAILURE, ip="1.1.1.1", endpoint="/x"))
    await h.logs.append(
        SecurityLogEntry(
            event_type=SecurityEventType.AUTH_FAILURE,
            ip="1.1.1.1",
            endpoint="/x",
            timestamp=utcnow() - timedelta(days=2),
        )
    )

    stats = await h.service.stats(admin)
    assert stats.users.total == 3
    assert stats.users.verified == 2
    assert stats.users.by_role == {"admin": 1, "user": 1, "moderator": 1}
    assert stats.posts.total_views == 15
    assert stats.posts.total_likes == 3
    assert stats.posts.by_category == {"food": 1, "tech": 1}
    assert stats.open_reports == 1
    assert stats.security_events_24h == {"AUTH_FAILURE": 1}


@pytest.mark.asyncio
async def test_moderator_cannot_use_admin_console(h):
    mod = await h.user("mod", Role.MODERATOR)
    with pytest.raises(AuthorizationError):
        await h.service.stats(mod)
    with pytest.raises(AuthorizationError):
        await h.service.list_users(mod, {})
    with pytest.raises(AuthorizationError):
        await h.service.list_security_logs(mod, {})


@pytest.mark.asyncio
async def test_list_users_filters(h):
    admin = await h.user("admin", Role.ADMIN)
    await h.user("bob", verified=True)
    await h.user("carol", is_banned=True)
    await h.user("dave", Role.MODERATOR)

    banned = await h.service.list_users(admin, {"banned": "true"})
    assert [user.id for user in banned.items] == ["carol"]
    mods = await h.service.list_users(admin, {"role": "moderator"})
    assert [user.id for user in mods.items] == ["dave"]
    search = await h.service.list_users(admin, {"search": "BOB@"})
    assert [user.id for user in search.items] == ["bob"]
    with pytest.raises(ValidationError):
        await h.service.list_users(admin, {"role": "root"})


@pytest.mark.asyncio
async def test_get_user_detail_for_admin_and_self(h):
    admin = await h.user("admin", Role.ADMIN)
    bob = await h.user("bob")
    carol = await h.user("carol")
    for idx in range(7):
        await h.post(f"p{idx}", "bob", views=idx)

    detail = await h.service.get_user(admin, "bob")
    assert detail.post_count == 7
    assert detail.total_views == 21
    assert len(detail.recent_posts) == 5
    assert (await h.service.get_user(bob, "bob")).user.id == "bob"
    with pytest.raises(AuthorizationError):
        await h.service.get_user(carol, "bob")
    with pytest.raises(NotFound):
        await h.service.get_user(admin, "ghost")


@pytest.mark.asyncio
async def test_update_role(h):
    admin = await h.user("admin", Role.ADMIN)
    await h.user("bob")
    await h.user("root", Role.ADMIN)

    promoted = await h.service.update_role(admin, "bob", "moderator")
    assert promoted.role is Role.MODERATOR
    assert (await h.service.update_role(admin, "bob", "moderator")).role is Role.MODERATOR
    with pytest.raises(ValidationError):
        await h.service.update_role(admin, "bob", "admin")
    with pytest.raises(PolicyViolation):
        await h.service.update_role(admin, "admin", "user")
    with pytest.raises(PolicyViolation):
        await h.service.update_role(admin, "root", "user")


@pytest.mark.asyncio
async def test_delete_user_removes_posts_but_keeps_reports(h):
    admin = await h.user("admin", Role.ADMIN)
    await h.user("bob")
    await h.user("root", Role.ADMIN)
    await h.post("p1", "bob")
    await h.post("p2", "bob")
    await h.reports.create(Report(id="r1", reporter_id="bob", target_type=TargetType.USER, target_id="root", reason=ReportReason.OTHER))

    assert await h.service.delete_user(admin, "bob") == 2
    assert await h.users.get("bob") is None
    assert await h.posts.get("p1") is None
    assert await h.reports.get("r1") is not None

    with pytest.raises(PolicyViolation):
        await h.service.delete_user(admin, "admin")
    with pytest.raises(PolicyViolation):
        await h.service.delete_user(admin, "root")
    with pytest.raises(NotFound):
        await h.service.delete_user(admin, "bob")


@pytest.mark.asyncio
async def test_top_posts(h):
    admin = await h.user("admin", Role.ADMIN)
    await h.post("a", "admin", views=5, likes=9)
    await h.post("b", "admin", views=50, likes=1)
    await h.post("c", "admin", views=20, likes=3)

    assert [post.id for post in await h.service.top_posts(admin)] == ["b", "c", "a"]
    assert [post.id for post in await h.service.top_posts(admin, by="likes", limit="2")] == ["a", "c"]
    with pytest.raises(ValidationError):
        await h.service.top_posts(admin, by="comments")


@pytest.mark.asyncio
async def test_security_logs_filter_by_ip_and_type(h):
    admin = await h.user("admin", Role.ADMIN)
    await h.logs.append(SecurityLogEntry(event_type=SecurityEventType.AUTH_FAILURE, ip="10.0.0.1", endpoint="/a"))
    await h.logs.append(SecurityLogEntry(event_type=SecurityEventType.RATE_LIMIT_EXCEEDED, ip="10.0.0.1", endpoint="/b"))
    await h.logs.append(SecurityLogEntry(event_type=SecurityEventType.AUTH_FAILURE, ip="192.168.1.9", endpoint="/c"))

    page = await h.service.list_security_logs(admin, {"ip": "10.0.0", "eventType": "AUTH_FAILURE"})
    assert [entry.endpoint for entry in page.items] == ["/a"]
    assert page.meta.limit == 20
    with pytest.raises(ValidationError):
        await h.service.list_security_logs(admin, {"eventType": "NOPE"})


@pytest.mark.asyncio
async def test_recent_activity_merges_posts_and_signups_newest_first(h):
    now = utcnow()
    admin = await h.user("admin", Role.ADMIN, created_at=now - timedelta(days=30))
    await h.user("bob", name="Bob", created_at=now - timedelta(hours=5))
    await h.user("carol", created_at=now - timedelta(hours=1))
    await h.post("p-old", "bob", created_at=now - timedelta(hours=4))
    await h.post("p-new", "bob", created_at=now - timedelta(minutes=10), category=PostCategory.FOOD)

    feed = await h.service.recent_activity(admin)
    assert [(item.kind, item.subject_id) for item in feed] == [
        ("post", "p-new"),
        ("user", "carol"),
        ("post", "p-old"),
        ("user", "bob"),
        ("user", "admin"),
    ]
    assert feed[0].title == "New post: p-new"
    assert feed[0].category == "food"
    assert feed[0].actor_id == "bob"
    assert feed[1].title == "New user: carol@example.com"
    assert feed[3].title == "New user: Bob"

    bounded = await h.service.recent_activity(admin, limit="2")
    assert [item.subject_id for item in bounded] == ["p-new", "carol"]
    clamped = await h.service.recent_activity(admin, limit="0")
    assert len(clamped) == 1


@pytest.mark.asyncio
async def test_recent_activity_is_admin_only(h):
    mod = await h.user("mod", Role.MODERATOR)
    with pytest.raises(AuthorizationError):
        await h.service.recent_activity(mod)
