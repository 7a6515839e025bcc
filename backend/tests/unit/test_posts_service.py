import pytest

from blog_api.domain.errors import AuthorizationError, NotFound, ValidationError
from blog_api.domain.models import PostCategory, Principal, Role
from blog_api.domain.posts_service import PostService
from blog_api.domain.repositories import InMemoryPostRepository

ALICE = Principal(id="alice", role=Role.USER)
BOB = Principal(id="bob", role=Role.USER)
MOD = Principal(id="mod", role=Role.MODERATOR)
ADMIN = Principal(id="admin", role=Role.ADMIN)


@pytest.fixture
def service():
    return PostService(posts=InMemoryPostRepository())


async def _create(service: PostService, author: Principal = ALICE, **overrides):
    fields = {"title": "Ramen guide", "category": "food", "description": "Where to eat", "content": "..."}
    fields.update(overrides)
    return await service.create_post(author, **fields)


@pytest.mark.asyncio
async def test_create_post_validates_fields(service):
    post = await _create(service)
    assert post.owner_id == "alice"
    assert post.category is PostCategory.FOOD
    assert post.views == 0 and post.likes == 0

    with pytest.raises(ValidationError):
        await _create(service, title="   ")
    with pytest.raises(ValidationError):
        await _create(service, title="x" * 201)
    with pytest.raises(ValidationError):
        await _create(service, category="gardening")
    with pytest.raises(AuthorizationError):
        await _create(service, author=Principal(id="eve", role=Role.USER, is_banned=True))


@pytest.mark.asyncio
async def test_read_counts_views(service):
    post = await _create(service)
    await service.read_post(post.id)
    again = await service.read_post(post.id)
    assert again.views == 2
    with pytest.raises(NotFound):
        await service.read_post("missing")


@pytest.mark.asyncio
async def test_only_owner_can_edit(service):
    post = await _create(service)
    edited = await service.edit_post(ALICE, post.id, {"title": "Best ramen", "category": "travelling"})
    assert edited.title == "Best ramen"
    assert edited.category is PostCategory.TRAVELLING

    with pytest.raises(AuthorizationError):
        await service.edit_post(BOB, post.id, {"title": "mine now"})
    with pytest.raises(AuthorizationError):
        await service.edit_post(ADMIN, post.id, {"title": "admin edit"})
    with pytest.raises(NotFound):
        await service.edit_post(ALICE, "missing", {"title": "x"})


@pytest.mark.asyncio
async def test_edit_without_changes_returns_post(service):
    post = await _create(service)
    unchanged = await service.edit_post(ALICE, post.id, {})
    assert unchanged.title == post.title
    assert unchanged.updated_at == post.updated_at


@pytest.mark.asyncio
async def test_delete_by_owner_or_moderator(service):
    first = await _create(service)
    second = await _create(service)
    with pytest.raises(AuthorizationError):
        await service.delete_post(BOB, first.id)
    await service.delete_post(ALICE, first.id)
    await service.delete_post(MOD, second.id)
    with pytest.raises(NotFound):
        await service.read_post(second.id)


@pytest.mark.asyncio
async def test_likes_count_once_per_user(service):
    post = await _create(service)
    await service.like_post(BOB, post.id)
    await service.like_post(BOB, post.id)
    liked = await service.like_post(MOD, post.id)
    assert liked.likes == 2
    with pytest.raises(NotFound):
        await service.like_post(BOB, "missing")


@pytest.mark.asyncio
async def test_comments_require_existing_post(service):
    post = await _create(service)
    comment = await service.add_comment(BOB, post.id, "Great list")
    assert comment.author_id == "bob"
    assert comment.post_id == post.id
    with pytest.raises(NotFound):
        await service.add_comment(BOB, "missing", "hello")
    with pytest.raises(ValidationError):
        await service.add_comment(BOB, post.id, "x" * 1001)


@pytest.mark.asyncio
async def test_comment_author_or_moderator_can_delete(service):
    post = await _create(service)
    first = await service.add_comment(BOB, post.id, "first")
    second = await service.add_comment(BOB, post.id, "second")

    with pytest.raises(AuthorizationError):
        await service.delete_comment(ALICE, first.id)
    await service.delete_comment(BOB, first.id)
    await service.delete_comment(MOD, second.id)
    assert await service.posts.get_comment(first.id) is None
    assert await service.posts.get_comment(second.id) is None
    with pytest.raises(NotFound):
        await service.delete_comment(BOB, first.id)


@pytest.mark.asyncio
async def test_public_listing_filters_by_category(service):
    await _create(service)
    await _create(service, category="tech", title="Rust vs Go")
    page = await service.list_posts({"category": "tech"})
    assert [post.title for post in page.items] == ["Rust vs Go"]
    with pytest.raises(ValidationError):
        await service.list_posts({"sortBy": "ownerId"})
