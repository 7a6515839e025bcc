import pytest

from blog_api.domain.dispatcher import ModerationDispatcher
from blog_api.domain.errors import AuthorizationError, NotFound, PolicyViolation, ValidationError
from blog_api.domain.models import (
    Comment,
    Post,
    PostCategory,
    Principal,
    Report,
    ReportReason,
    ReportStatus,
    Role,
    TargetType,
    User,
)
from blog_api.domain.moderation_service import ModerationService
from blog_api.domain.repositories import (
    InMemoryPostRepository,
    InMemoryReportRepository,
    InMemoryUserRepository,
)


@pytest.fixture
def repos():
    users = InMemoryUserRepository()
    posts = InMemoryPostRepository()
    reports = InMemoryReportRepository()
    dispatcher = ModerationDispatcher(users, posts, reports, default_ban_reason="House rules")
    service = ModerationService(users, posts, reports, dispatcher)
    return users, posts, reports, dispatcher, service


async def _principal(users, user_id: str, role: Role = Role.USER) -> Principal:
    return Principal.from_user(await users.create(User(id=user_id, email=f"{user_id}@example.com", role=role)))


def _report(report_id: str, target_type: TargetType, target_id: str, reason=ReportReason.SPAM) -> Report:
    return Report(id=report_id, reporter_id="alice", target_type=target_type, target_id=target_id, reason=reason)


@pytest.mark.asyncio
async def test_ban_uses_default_reason_and_keeps_first_timestamp(repos):
    users, _, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    await _principal(users, "bob")

    first = await service.ban_user(mod, "bob", "   ")
    assert first.is_banned
    assert first.ban_reason == "House rules"
    assert first.banned_by == "mod"

    again = await service.ban_user(mod, "bob", "Spamming")
    assert again.banned_at == first.banned_at
    assert again.ban_reason == "Spamming"


@pytest.mark.asyncio
async def test_ban_rank_rules(repos):
    users, _, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    admin = await _principal(users, "admin", Role.ADMIN)
    await _principal(users, "mod2", Role.MODERATOR)

    with pytest.raises(PolicyViolation):
        await service.ban_user(mod, "mod2", None)
    with pytest.raises(PolicyViolation):
        await service.ban_user(mod, "admin", None)
    with pytest.raises(PolicyViolation):
        await service.ban_user(admin, "admin", None)
    assert (await service.ban_user(admin, "mod2", None)).is_banned
    with pytest.raises(NotFound):
        await service.ban_user(admin, "ghost", None)


@pytest.mark.asyncio
async def test_unban_clears_ban_and_is_idempotent(repos):
    users, _, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    await _principal(users, "bob")
    await service.ban_user(mod, "bob", "x")

    cleared = await service.unban_user(mod, "bob")
    assert not cleared.is_banned
    assert cleared.banned_at is None
    assert cleared.ban_reason is None
    assert not (await service.unban_user(mod, "bob")).is_banned


@pytest.mark.asyncio
async def test_regular_user_cannot_ban(repos):
    users, _, _, _, service = repos
    alice = await _principal(users, "alice")
    await _principal(users, "bob")
    with pytest.raises(AuthorizationError):
        await service.ban_user(alice, "bob", None)


@pytest.mark.asyncio
async def test_stats_counts_queue_and_bans(repos):
    users, _, reports, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    await _principal(users, "bob")
    await reports.create(_report("r1", TargetType.USER, "bob"))
    await reports.create(_report("r2", TargetType.USER, "bob", ReportReason.HARASSMENT))
    r3 = await reports.create(_report("r3", TargetType.USER, "mod"))
    await reports.apply_transition(
        r3.id,
        expected_status=ReportStatus.PENDING,
        status=ReportStatus.RESOLVED,
        action_taken=None,
        review_notes=None,
        reviewer_id="mod",
        reviewed_at=r3.created_at,
    )
    await service.ban_user(mod, "bob", None)

    stats = await service.stats(mod)
    assert stats.pending == 2
    assert stats.reviewing == 0
    assert stats.resolved_today == 1
    assert stats.banned_users == 1
    assert stats.reports_by_reason == {"spam": 1, "harassment": 1}


@pytest.mark.asyncio
async def test_list_banned_users_only_returns_banned(repos):
    users, _, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    for user_id in ("bob", "carol", "dave"):
        await _principal(users, user_id)
    await service.ban_user(mod, "bob", None)
    await service.ban_user(mod, "dave", None)

    page = await service.list_banned_users(mod, {})
    assert {user.id for user in page.items} == {"bob", "dave"}
    assert page.meta.total == 2


@pytest.mark.asyncio
async def test_delete_post_closes_open_reports(repos):
    users, posts, reports, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    await _principal(users, "bob")
    await posts.create(Post(id="p1", owner_id="bob", title="t", category=PostCategory.TECH))
    await reports.create(_report("r1", TargetType.POST, "p1"))

    removed = await service.delete_post(mod, "p1", "off-topic")
    assert removed.id == "p1"
    assert await posts.get("p1") is None
    closed = await reports.get("r1")
    assert closed.status is ReportStatus.RESOLVED
    assert closed.reviewer_id == "mod"

    with pytest.raises(NotFound):
        await service.delete_post(mod, "p1")


@pytest.mark.asyncio
async def test_delete_comment_requires_moderator(repos):
    users, posts, reports, _, service = repos
    alice = await _principal(users, "alice")
    mod = await _principal(users, "mod", Role.MODERATOR)
    await posts.create(Post(id="p1", owner_id="bob", title="t", category=PostCategory.TECH))
    await posts.add_comment(Comment(id="c1", post_id="p1", author_id="alice", body="first"))
    await reports.create(_report("r1", TargetType.COMMENT, "c1"))

    with pytest.raises(AuthorizationError):
        await service.delete_comment(alice, "c1")
    assert await posts.get_comment("c1") is not None
    assert (await reports.get("r1")).status is ReportStatus.PENDING

    assert (await service.delete_comment(mod, "c1")).id == "c1"
    assert await posts.get_comment("c1") is None
    closed = await reports.get("r1")
    assert closed.status is ReportStatus.RESOLVED
    assert closed.reviewer_id == "mod"


@pytest.mark.asyncio
async def test_owner_cannot_close_reports_through_console_delete(repos):
    users, posts, reports, _, service = repos
    owner = await _principal(users, "owner")
    await posts.create(Post(id="p1", owner_id="owner", title="t", category=PostCategory.TECH))
    await reports.create(_report("r1", TargetType.POST, "p1"))

    with pytest.raises(AuthorizationError):
        await service.delete_post(owner, "p1", "bye")
    assert await posts.get("p1") is not None
    report = await reports.get("r1")
    assert report.status is ReportStatus.PENDING
    assert report.reviewer_id is None


@pytest.mark.asyncio
async def test_dispatcher_refuses_to_remove_users(repos):
    users, _, _, dispatcher, _ = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    with pytest.raises(ValidationError):
        await dispatcher.delete_content(TargetType.USER, "bob", None, mod)


@pytest.mark.asyncio
async def test_dispatcher_resolves_owner_per_target_type(repos):
    users, posts, _, dispatcher, _ = repos
    await _principal(users, "bob")
    await posts.create(Post(id="p1", owner_id="bob", title="t", category=PostCategory.TECH))
    await posts.add_comment(Comment(id="c1", post_id="p1", author_id="carol", body="x"))

    assert await dispatcher.resolve_owner(TargetType.USER, "bob") == "bob"
    assert await dispatcher.resolve_owner(TargetType.POST, "p1") == "bob"
    assert await dispatcher.resolve_owner(TargetType.COMMENT, "c1") == "carol"
    assert await dispatcher.resolve_owner(TargetType.POST, "gone") is None


@pytest.mark.asyncio
async def test_ban_then_unban_restores_pristine_ban_fields(repos):
    users, _, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    await _principal(users, "bob")
    before = await users.get("bob")

    await service.ban_user(mod, "bob", "Spamming")
    await service.unban_user(mod, "bob")
    after = await users.get("bob")
    fields = ("is_banned", "banned_at", "banned_by", "ban_reason")
    assert [getattr(after, name) for name in fields] == [getattr(before, name) for name in fields]


@pytest.mark.asyncio
async def test_user_cannot_delete_someone_elses_post_through_console(repos):
    users, posts, _, _, service = repos
    alice = await _principal(users, "alice")
    await _principal(users, "bob")
    await posts.create(Post(id="p1", owner_id="bob", title="t", category=PostCategory.TECH))

    with pytest.raises(AuthorizationError):
        await service.delete_post(alice, "p1")
    assert await posts.get("p1") is not None


@pytest.mark.asyncio
async def test_category_listing_sorted_by_views(repos):
    users, posts, _, _, service = repos
    mod = await _principal(users, "mod", Role.MODERATOR)
    for idx in range(25):
        await posts.create(Post(id=f"t{idx:02d}", owner_id="bob", title="t", category=PostCategory.TECH, views=idx * 3))
    for idx in range(5):
        await posts.create(Post(id=f"f{idx}", owner_id="bob", title="f", category=PostCategory.FOOD, views=1000))

    page = await service.list_posts(
        mod, {"category": "tech", "sortBy": "views", "sortOrder": "desc", "page": "1", "limit": "10"}
    )
    assert len(page.items) == 10
    assert all(post.category is PostCategory.TECH for post in page.items)
    views = [post.views for post in page.items]
    assert views == sorted(views, reverse=True)
    assert views[0] == 72
    assert page.meta.total == 25
    assert page.meta.pages == 3

    past_end = await service.list_posts(mod, {"category": "tech", "page": "4", "limit": "10"})
    assert past_end.items == ()
    assert past_end.meta.total == 25
