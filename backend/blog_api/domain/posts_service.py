"""Author-facing post operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping
from uuid import uuid4

from .errors import NotFound, ValidationError
from .filters import POST_FIELDS, build_query
from .models import Comment, Post, PostCategory, Principal, utcnow
from .pagination import Page
from .rbac import Operation, authorize
from .reports_service import parse_choice
from .repositories import PostRepository

logger = logging.getLogger(__name__)

TITLE_MAX = 200
DESCRIPTION_MAX = 500
COMMENT_MAX = 1000


def _bounded_text(value: Any, field: str, maximum: int, *, required: bool = True) -> str:
    text = str(value or "").strip()
    if required and not text:
        raise ValidationError(f"{field} is required", field=field)
    if len(text) > maximum:
        raise ValidationError(f"{field} must be at most {maximum} characters", field=field)
    return text


@dataclass
class PostService:
    posts: PostRepository
    default_limit: int = 10
    max_limit: int = 100

    async def create_post(
        self,
        principal: Principal | None,
        *,
        title: Any,
        category: Any,
        description: Any = None,
        content: Any = None,
        image: str | None = None,
    ) -> Post:
        author = authorize(principal, Operation.POST_CREATE)
        now = utcnow()
        post = Post(
            id=str(uuid4()),
            owner_id=author.id,
            title=_bounded_text(title, "title", TITLE_MAX),
            category=parse_choice(PostCategory, category, "category"),
            description=_bounded_text(description, "description", DESCRIPTION_MAX),
            content=str(content or ""),
            image=image,
            created_at=now,
            updated_at=now,
        )
        created = await self.posts.create(post)
        logger.info("post_created", extra={"post_id": created.id, "category": created.category.value})
        return created

    async def list_posts(self, params: Mapping[str, Any]) -> Page[Post]:
        query = build_query(
            POST_FIELDS,
            search=params.get("search"),
            filters={"category": params.get("category")},
            sort_by=params.get("sortBy"),
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.posts.list(query)
        return Page.build(items, total, query.page)

    async def read_post(self, post_id: str) -> Post:
        """Public read; every successful read counts as a view."""

        post = await self.posts.increment_views(post_id)
        if post is None:
            raise NotFound("post", post_id)
        return post

    async def _owned(self, principal: Principal | None, post_id: str, operation: Operation) -> tuple[Post, Principal]:
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFound("post", post_id)
        return post, authorize(principal, operation, owner_id=post.owner_id)

    async def edit_post(self, principal: Principal | None, post_id: str, changes: Mapping[str, Any]) -> Post:
        # post.edit is owner-scoped only; no role holds it outright.
        post, _ = await self._owned(principal, post_id, Operation.POST_EDIT)
        updates: dict[str, Any] = {}
        if changes.get("title") is not None:
            updates["title"] = _bounded_text(changes["title"], "title", TITLE_MAX)
        if changes.get("description") is not None:
            updates["description"] = _bounded_text(changes["description"], "description", DESCRIPTION_MAX)
        if changes.get("category") is not None:
            updates["category"] = parse_choice(PostCategory, changes["category"], "category")
        if changes.get("content") is not None:
            updates["content"] = str(changes["content"])
        if "image" in changes:
            updates["image"] = changes["image"]
        if not updates:
            return post
        updated = await self.posts.update_content(post_id, updates)
        if updated is None:
            raise NotFound("post", post_id)
        return updated

    async def delete_post(self, principal: Principal | None, post_id: str) -> None:
        _, actor = await self._owned(principal, post_id, Operation.POST_DELETE)
        await self.posts.delete(post_id)
        logger.info("post_deleted", extra={"post_id": post_id, "actor_id": actor.id})

    async def delete_comment(self, principal: Principal | None, comment_id: str) -> None:
        """Authors remove their own comments here. Reports against it stay open."""

        comment = await self.posts.get_comment(comment_id)
        if comment is None:
            raise NotFound("comment", comment_id)
        actor = authorize(principal, Operation.COMMENT_DELETE, owner_id=comment.author_id)
        await self.posts.delete_comment(comment_id)
        logger.info("comment_deleted", extra={"comment_id": comment_id, "actor_id": actor.id})

    async def like_post(self, principal: Principal | None, post_id: str) -> Post:
        """Count a like once per principal; repeat likes leave the counter alone."""

        liker = authorize(principal, Operation.POST_LIKE)
        post = await self.posts.add_like(post_id, liker.id)
        if post is None:
            raise NotFound("post", post_id)
        return post

    async def add_comment(self, principal: Principal | None, post_id: str, body: Any) -> Comment:
        author = authorize(principal, Operation.POST_CREATE)
        text = _bounded_text(body, "body", COMMENT_MAX)
        if await self.posts.get(post_id) is None:
            raise NotFound("post", post_id)
        return await self.posts.add_comment(
            Comment(id=str(uuid4()), post_id=post_id, author_id=author.id, body=text)
        )
