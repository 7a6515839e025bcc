"""Moderator console: dashboard counts, bans and content removal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Mapping

from .dispatcher import ModerationDispatcher
from .errors import NotFound
from .filters import POST_FIELDS, USER_FIELDS, build_query
from .models import Comment, Post, Principal, ReportStatus, TargetType, User, utcnow
from .pagination import Page
from .rbac import Operation, authorize
from .repositories import PostRepository, ReportRepository, UserRepository


def start_of_day(now: datetime | None = None) -> datetime:
    now = now or utcnow()
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


@dataclass(slots=True)
class ModerationStats:
    pending: int
    reviewing: int
    resolved_today: int
    banned_users: int
    reports_by_reason: dict[str, int]


@dataclass
class ModerationService:
    users: UserRepository
    posts: PostRepository
    reports: ReportRepository
    dispatcher: ModerationDispatcher
    default_limit: int = 10
    max_limit: int = 100

    async def stats(self, principal: Principal | None) -> ModerationStats:
        authorize(principal, Operation.MODERATION_STATS)
        today = start_of_day()
        report_totals = await self.reports.totals(since=today)
        user_totals = await self.users.totals(since=today)
        return ModerationStats(
            pending=report_totals.by_status.get(ReportStatus.PENDING.value, 0),
            reviewing=report_totals.by_status.get(ReportStatus.REVIEWING.value, 0),
            resolved_today=report_totals.resolved_since,
            banned_users=user_totals.banned,
            reports_by_reason=report_totals.pending_by_reason,
        )

    async def list_banned_users(self, principal: Principal | None, params: Mapping[str, Any]) -> Page[User]:
        authorize(principal, Operation.USER_LIST_BANNED)
        query = build_query(
            USER_FIELDS,
            search=params.get("search"),
            flags={"banned": True},
            sort_by=params.get("sortBy") or "bannedAt",
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.users.list(query)
        return Page.build(items, total, query.page)

    async def ban_user(self, principal: Principal | None, user_id: str, reason: str | None) -> User:
        actor = authorize(principal, Operation.USER_BAN)
        return await self.dispatcher.ban_user(user_id, reason, actor)

    async def unban_user(self, principal: Principal | None, user_id: str) -> User:
        actor = authorize(principal, Operation.USER_UNBAN)
        return await self.dispatcher.unban_user(user_id, actor)

    async def list_posts(self, principal: Principal | None, params: Mapping[str, Any]) -> Page[Post]:
        authorize(principal, Operation.POST_READ)
        query = build_query(
            POST_FIELDS,
            search=params.get("search"),
            filters={"category": params.get("category")},
            start_date=params.get("startDate"),
            end_date=params.get("endDate"),
            sort_by=params.get("sortBy"),
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.posts.list(query)
        return Page.build(items, total, query.page)

    async def delete_post(self, principal: Principal | None, post_id: str, reason: str | None = None) -> Post:
        """Remove a post on moderation grounds and close the reports against it."""

        # No owner override: closing reports is reserved to moderators.
        actor = authorize(principal, Operation.POST_DELETE)
        post = await self.posts.get(post_id)
        if post is None:
            raise NotFound("post", post_id)
        await self.dispatcher.delete_content(TargetType.POST, post_id, reason, actor)
        await self.dispatcher.close_related_reports(TargetType.POST, post_id, actor)
        return post

    async def delete_comment(self, principal: Principal | None, comment_id: str, reason: str | None = None) -> Comment:
        actor = authorize(principal, Operation.COMMENT_DELETE)
        comment = await self.posts.get_comment(comment_id)
        if comment is None:
            raise NotFound("comment", comment_id)
        await self.dispatcher.delete_content(TargetType.COMMENT, comment_id, reason, actor)
        await self.dispatcher.close_related_reports(TargetType.COMMENT, comment_id, actor)
        return comment
