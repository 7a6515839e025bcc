"""Admin console: dashboard, user management, posts and security logs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping, Sequence

from .errors import NotFound, PolicyViolation, ValidationError
from .filters import POST_FIELDS, SECURITY_LOG_FIELDS, USER_FIELDS, build_query
from .models import Post, Principal, Role, SecurityLogEntry, User, utcnow
from .moderation_service import ModerationService
from .pagination import Page, PageRequest
from .rbac import Operation, authorize, ensure_role_assignable
from .repositories import (
    PostRepository,
    PostTotals,
    ReportRepository,
    SecurityLogRepository,
    UserRepository,
    UserTotals,
)

logger = logging.getLogger("blog.audit")

RECENT_POSTS_LIMIT = 5
TOP_POSTS_DEFAULT = 10
RECENT_ACTIVITY_DEFAULT = 20
_TOP_POST_COLUMNS = {"views": "views", "likes": "likes"}


def start_of_month(now: datetime | None = None) -> datetime:
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@dataclass(slots=True)
class DashboardStats:
    users: UserTotals
    posts: PostTotals
    open_reports: int
    security_events_24h: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class UserDetail:
    user: User
    post_count: int
    total_views: int
    recent_posts: Sequence[Post]


@dataclass(slots=True)
class ActivityItem:
    """One line of the admin feed: a new post or a new account."""

    kind: str
    title: str
    subject_id: str
    actor_id: str
    created_at: datetime
    category: str | None = None


@dataclass
class AdminService:
    users: UserRepository
    posts: PostRepository
    reports: ReportRepository
    security_logs: SecurityLogRepository
    moderation: ModerationService
    default_limit: int = 10
    max_limit: int = 100
    security_log_default_limit: int = 20

    async def stats(self, principal: Principal | None) -> DashboardStats:
        authorize(principal, Operation.ADMIN_STATS)
        month = start_of_month()
        report_totals = await self.reports.totals(since=month)
        return DashboardStats(
            users=await self.users.totals(since=month),
            posts=await self.posts.totals(since=month),
            open_reports=sum(
                report_totals.by_status.get(status, 0) for status in ("pending", "reviewing")
            ),
            security_events_24h=await self.security_logs.counts_since(utcnow() - timedelta(hours=24)),
        )

    async def list_users(self, principal: Principal | None, params: Mapping[str, Any]) -> Page[User]:
        authorize(principal, Operation.USER_READ)
        query = build_query(
            USER_FIELDS,
            search=params.get("search"),
            filters={"role": params.get("role")},
            flags={"verified": params.get("verified"), "banned": params.get("banned")},
            start_date=params.get("startDate"),
            end_date=params.get("endDate"),
            sort_by=params.get("sortBy"),
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.users.list(query)
        return Page.build(items, total, query.page)

    async def get_user(self, principal: Principal | None, user_id: str) -> UserDetail:
        authorize(principal, Operation.PROFILE_READ, owner_id=user_id)
        user = await self.users.get(user_id)
        if user is None:
            raise NotFound("user", user_id)
        post_count, total_views = await self.posts.owner_totals(user_id)
        return UserDetail(
            user=user,
            post_count=post_count,
            total_views=total_views,
            recent_posts=await self.posts.list_by_owner(user_id, limit=RECENT_POSTS_LIMIT),
        )

    async def update_role(self, principal: Principal | None, user_id: str, role: Any) -> User:
        actor = authorize(principal, Operation.ROLE_MANAGE)
        target = await self.users.get(user_id)
        if target is None:
            raise NotFound("user", user_id)
        new_role = ensure_role_assignable(actor, target, str(role or "").strip())
        if new_role is target.role:
            return target
        updated = await self.users.set_role(user_id, new_role)
        if updated is None:
            raise NotFound("user", user_id)
        logger.info(
            "role_changed",
            extra={"actor_id": actor.id, "target_id": user_id, "from_role": target.role.value, "to_role": new_role.value},
        )
        return updated

    async def delete_user(self, principal: Principal | None, user_id: str) -> int:
        """Delete a user and their posts. Reports they filed are kept for the audit trail."""

        actor = authorize(principal, Operation.USER_DELETE)
        target = await self.users.get(user_id)
        if target is None:
            raise NotFound("user", user_id)
        if target.id == actor.id:
            raise PolicyViolation("Cannot delete your own account")
        if target.role is Role.ADMIN:
            raise PolicyViolation("Cannot delete an admin account")
        removed_posts = await self.posts.delete_by_owner(user_id)
        await self.users.delete(user_id)
        logger.info(
            "user_deleted",
            extra={"actor_id": actor.id, "target_id": user_id, "posts_removed": removed_posts},
        )
        return removed_posts

    async def list_posts(self, principal: Principal | None, params: Mapping[str, Any]) -> Page[Post]:
        return await self.moderation.list_posts(principal, params)

    async def get_post(self, principal: Principal | None, post_id: str) -> Post:
        post = await self.posts.get(post_id)
        if post is None:
            authorize(principal, Operation.POST_READ)
            raise NotFound("post", post_id)
        authorize(principal, Operation.POST_READ, owner_id=post.owner_id)
        return post

    async def delete_post(self, principal: Principal | None, post_id: str, reason: str | None = None) -> Post:
        return await self.moderation.delete_post(principal, post_id, reason)

    async def top_posts(self, principal: Principal | None, *, by: Any = None, limit: Any = None) -> Sequence[Post]:
        authorize(principal, Operation.ADMIN_STATS)
        key = str(by or "views").strip()
        column = _TOP_POST_COLUMNS.get(key)
        if column is None:
            raise ValidationError("by must be 'views' or 'likes'", field="by")
        query = build_query(POST_FIELDS, limit=limit, default_limit=TOP_POSTS_DEFAULT, max_limit=self.max_limit)
        return await self.posts.top(column=column, limit=query.page.limit)

    async def recent_activity(self, principal: Principal | None, *, limit: Any = None) -> list[ActivityItem]:
        """Newest posts and sign-ups merged into one feed, newest first."""

        authorize(principal, Operation.ADMIN_STATS)
        bound = PageRequest.from_raw(
            limit=limit, default_limit=RECENT_ACTIVITY_DEFAULT, max_limit=self.max_limit
        ).limit
        posts = await self.posts.recent(limit=bound)
        users = await self.users.recent(limit=bound)
        feed = [
            ActivityItem(
                kind="post",
                title=f"New post: {post.title}",
                subject_id=post.id,
                actor_id=post.owner_id,
                created_at=post.created_at,
                category=post.category.value,
            )
            for post in posts
        ]
        feed.extend(
            ActivityItem(
                kind="user",
                title=f"New user: {user.name or user.email}",
                subject_id=user.id,
                actor_id=user.id,
                created_at=user.created_at,
            )
            for user in users
        )
        feed.sort(key=lambda item: item.created_at, reverse=True)
        return feed[:bound]

    async def list_security_logs(
        self, principal: Principal | None, params: Mapping[str, Any]
    ) -> Page[SecurityLogEntry]:
        authorize(principal, Operation.SECURITY_LOG_READ)
        query = build_query(
            SECURITY_LOG_FIELDS,
            search=params.get("ip"),
            filters={"eventType": params.get("eventType")},
            start_date=params.get("startDate"),
            end_date=params.get("endDate"),
            sort_by=params.get("sortBy"),
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.security_log_default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.security_logs.list(query)
        return Page.build(items, total, query.page)
