"""Persistence contracts plus in-memory implementations for development and tests.

The PostgreSQL implementations live in :mod:`blog_api.infra.postgres_repo`.
Every mutating method touches only the fields of the intended update and
returns a fresh copy, so callers never alias stored state.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Mapping, Protocol, Sequence

from .filters import QueryDescriptor
from .models import (
    ActionTaken,
    Comment,
    Post,
    PostCategory,
    Report,
    ReportStatus,
    Role,
    SecurityLogEntry,
    TargetType,
    User,
    utcnow,
)
from .pagination import slice_window

OPEN_REPORT_STATES = (ReportStatus.PENDING, ReportStatus.REVIEWING)


@dataclass(slots=True)
class UserTotals:
    total: int = 0
    verified: int = 0
    banned: int = 0
    new_since: int = 0
    by_role: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class PostTotals:
    total: int = 0
    new_since: int = 0
    total_views: int = 0
    total_likes: int = 0
    by_category: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class ReportTotals:
    by_status: dict[str, int] = field(default_factory=dict)
    resolved_since: int = 0
    pending_by_reason: dict[str, int] = field(default_factory=dict)


class UserRepository(Protocol):
    async def get(self, user_id: str) -> User | None:
        ...

    async def create(self, user: User) -> User:
        ...

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[User], int]:
        ...

    async def set_ban(self, user_id: str, *, banned_at: datetime, banned_by: str, reason: str) -> User | None:
        """Mark banned; an existing ``banned_at`` is kept."""
        ...

    async def clear_ban(self, user_id: str) -> User | None:
        ...

    async def set_role(self, user_id: str, role: Role) -> User | None:
        ...

    async def delete(self, user_id: str) -> bool:
        ...

    async def recent(self, *, limit: int) -> Sequence[User]:
        """Newest accounts first."""
        ...

    async def totals(self, *, since: datetime) -> UserTotals:
        ...


class PostRepository(Protocol):
    async def get(self, post_id: str) -> Post | None:
        ...

    async def create(self, post: Post) -> Post:
        ...

    async def update_content(self, post_id: str, changes: Mapping[str, object]) -> Post | None:
        ...

    async def delete(self, post_id: str) -> bool:
        """Delete the post and its comments; False when it was already gone."""
        ...

    async def delete_by_owner(self, owner_id: str) -> int:
        ...

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Post], int]:
        ...

    async def list_by_owner(self, owner_id: str, *, limit: int) -> Sequence[Post]:
        ...

    async def owner_totals(self, owner_id: str) -> tuple[int, int]:
        """Return ``(post_count, total_views)`` for ``owner_id``."""
        ...

    async def recent(self, *, limit: int) -> Sequence[Post]:
        ...

    async def top(self, *, column: str, limit: int) -> Sequence[Post]:
        ...

    async def increment_views(self, post_id: str) -> Post | None:
        ...

    async def add_like(self, post_id: str, user_id: str) -> Post | None:
        ...

    async def totals(self, *, since: datetime) -> PostTotals:
        ...

    async def get_comment(self, comment_id: str) -> Comment | None:
        ...

    async def add_comment(self, comment: Comment) -> Comment:
        ...

    async def delete_comment(self, comment_id: str) -> bool:
        ...


class ReportRepository(Protocol):
    async def create(self, report: Report) -> Report:
        ...

    async def get(self, report_id: str) -> Report | None:
        ...

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Report], int]:
        ...

    async def find_open(self, reporter_id: str, target_type: TargetType, target_id: str) -> Report | None:
        ...

    async def apply_transition(
        self,
        report_id: str,
        *,
        expected_status: ReportStatus,
        status: ReportStatus,
        action_taken: ActionTaken | None,
        review_notes: str | None,
        reviewer_id: str,
        reviewed_at: datetime,
    ) -> Report | None:
        """Compare-and-set the status; None when the report is no longer in ``expected_status``."""
        ...

    async def resolve_open_for_target(
        self,
        target_type: TargetType,
        target_id: str,
        *,
        reviewer_id: str,
        review_notes: str,
        reviewed_at: datetime,
        exclude_id: str | None = None,
    ) -> int:
        ...

    async def totals(self, *, since: datetime) -> ReportTotals:
        ...


class SecurityLogRepository(Protocol):
    async def append(self, entry: SecurityLogEntry) -> SecurityLogEntry:
        ...

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[SecurityLogEntry], int]:
        ...

    async def counts_since(self, since: datetime) -> dict[str, int]:
        ...


def _page(items: list, query: QueryDescriptor) -> tuple[list, int]:
    matched = query.order([item for item in items if query.matches(item)])
    return slice_window(matched, query.page), len(matched)


def _copy_post(post: Post) -> Post:
    return replace(post, liked_by=set(post.liked_by))


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._items: dict[str, User] = {}

    async def get(self, user_id: str) -> User | None:
        user = self._items.get(user_id)
        return replace(user) if user else None

    async def create(self, user: User) -> User:
        self._items[user.id] = replace(user)
        return replace(user)

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[User], int]:
        window, total = _page(list(self._items.values()), query)
        return [replace(user) for user in window], total

    async def set_ban(self, user_id: str, *, banned_at: datetime, banned_by: str, reason: str) -> User | None:
        user = self._items.get(user_id)
        if user is None:
            return None
        user.is_banned = True
        user.banned_at = user.banned_at or banned_at
        user.banned_by = banned_by
        user.ban_reason = reason
        return replace(user)

    async def clear_ban(self, user_id: str) -> User | None:
        user = self._items.get(user_id)
        if user is None:
            return None
        user.is_banned = False
        user.banned_at = None
        user.banned_by = None
        user.ban_reason = None
        return replace(user)

    async def set_role(self, user_id: str, role: Role) -> User | None:
        user = self._items.get(user_id)
        if user is None:
            return None
        user.role = role
        return replace(user)

    async def delete(self, user_id: str) -> bool:
        return self._items.pop(user_id, None) is not None

    async def recent(self, *, limit: int) -> Sequence[User]:
        newest = sorted(self._items.values(), key=lambda user: (user.created_at, user.id), reverse=True)
        return [replace(user) for user in newest[:limit]]

    async def totals(self, *, since: datetime) -> UserTotals:
        users = list(self._items.values())
        return UserTotals(
            total=len(users),
            verified=sum(1 for user in users if user.verified),
            banned=sum(1 for user in users if user.is_banned),
            new_since=sum(1 for user in users if user.created_at >= since),
            by_role=dict(Counter(user.role.value for user in users)),
        )


class InMemoryPostRepository(PostRepository):
    def __init__(self) -> None:
        self._items: dict[str, Post] = {}
        self._comments: dict[str, Comment] = {}

    async def get(self, post_id: str) -> Post | None:
        post = self._items.get(post_id)
        return _copy_post(post) if post else None

    async def create(self, post: Post) -> Post:
        self._items[post.id] = _copy_post(post)
        return _copy_post(post)

    async def update_content(self, post_id: str, changes: Mapping[str, object]) -> Post | None:
        post = self._items.get(post_id)
        if post is None:
            return None
        for key, value in changes.items():
            setattr(post, key, value)
        post.updated_at = utcnow()
        return _copy_post(post)

    async def delete(self, post_id: str) -> bool:
        removed = self._items.pop(post_id, None)
        if removed is None:
            return False
        for comment_id in [cid for cid, c in self._comments.items() if c.post_id == post_id]:
            del self._comments[comment_id]
        return True

    async def delete_by_owner(self, owner_id: str) -> int:
        owned = [post_id for post_id, post in self._items.items() if post.owner_id == owner_id]
        for post_id in owned:
            await self.delete(post_id)
        return len(owned)

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Post], int]:
        window, total = _page(list(self._items.values()), query)
        return [_copy_post(post) for post in window], total

    async def list_by_owner(self, owner_id: str, *, limit: int) -> Sequence[Post]:
        owned = [post for post in self._items.values() if post.owner_id == owner_id]
        owned.sort(key=lambda post: (post.created_at, post.id), reverse=True)
        return [_copy_post(post) for post in owned[:limit]]

    async def owner_totals(self, owner_id: str) -> tuple[int, int]:
        owned = [post for post in self._items.values() if post.owner_id == owner_id]
        return len(owned), sum(post.views for post in owned)

    async def recent(self, *, limit: int) -> Sequence[Post]:
        newest = sorted(self._items.values(), key=lambda post: (post.created_at, post.id), reverse=True)
        return [_copy_post(post) for post in newest[:limit]]

    async def top(self, *, column: str, limit: int) -> Sequence[Post]:
        ranked = sorted(self._items.values(), key=lambda post: (getattr(post, column), post.id), reverse=True)
        return [_copy_post(post) for post in ranked[:limit]]

    async def increment_views(self, post_id: str) -> Post | None:
        post = self._items.get(post_id)
        if post is None:
            return None
        post.views += 1
        return _copy_post(post)

    async def add_like(self, post_id: str, user_id: str) -> Post | None:
        post = self._items.get(post_id)
        if post is None:
            return None
        if user_id not in post.liked_by:
            post.liked_by.add(user_id)
            post.likes += 1
        return _copy_post(post)

    async def totals(self, *, since: datetime) -> PostTotals:
        posts = list(self._items.values())
        by_category = Counter(post.category.value for post in posts)
        return PostTotals(
            total=len(posts),
            new_since=sum(1 for post in posts if post.created_at >= since),
            total_views=sum(post.views for post in posts),
            total_likes=sum(post.likes for post in posts),
            by_category={category.value: by_category.get(category.value, 0) for category in PostCategory if by_category.get(category.value)},
        )

    async def get_comment(self, comment_id: str) -> Comment | None:
        comment = self._comments.get(comment_id)
        return replace(comment) if comment else None

    async def add_comment(self, comment: Comment) -> Comment:
        self._comments[comment.id] = replace(comment)
        return replace(comment)

    async def delete_comment(self, comment_id: str) -> bool:
        return self._comments.pop(comment_id, None) is not None


class InMemoryReportRepository(ReportRepository):
    def __init__(self) -> None:
        self._items: dict[str, Report] = {}

    async def create(self, report: Report) -> Report:
        self._items[report.id] = replace(report)
        return replace(report)

    async def get(self, report_id: str) -> Report | None:
        report = self._items.get(report_id)
        return replace(report) if report else None

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Report], int]:
        window, total = _page(list(self._items.values()), query)
        return [replace(report) for report in window], total

    async def find_open(self, reporter_id: str, target_type: TargetType, target_id: str) -> Report | None:
        for report in self._items.values():
            if (
                report.reporter_id == reporter_id
                and report.target_type is target_type
                and report.target_id == target_id
                and report.status in OPEN_REPORT_STATES
            ):
                return replace(report)
        return None

    async def apply_transition(
        self,
        report_id: str,
        *,
        expected_status: ReportStatus,
        status: ReportStatus,
        action_taken: ActionTaken | None,
        review_notes: str | None,
        reviewer_id: str,
        reviewed_at: datetime,
    ) -> Report | None:
        report = self._items.get(report_id)
        if report is None or report.status is not expected_status:
            return None
        report.status = status
        report.action_taken = action_taken
        report.review_notes = review_notes
        report.reviewer_id = reviewer_id
        report.reviewed_at = reviewed_at
        report.updated_at = reviewed_at
        return replace(report)

    async def resolve_open_for_target(
        self,
        target_type: TargetType,
        target_id: str,
        *,
        reviewer_id: str,
        review_notes: str,
        reviewed_at: datetime,
        exclude_id: str | None = None,
    ) -> int:
        touched = 0
        for report in self._items.values():
            if report.id == exclude_id or report.status not in OPEN_REPORT_STATES:
                continue
            if report.target_type is not target_type or report.target_id != target_id:
                continue
            report.status = ReportStatus.RESOLVED
            report.action_taken = ActionTaken.CONTENT_REMOVED
            report.review_notes = review_notes
            report.reviewer_id = reviewer_id
            report.reviewed_at = reviewed_at
            report.updated_at = reviewed_at
            touched += 1
        return touched

    async def totals(self, *, since: datetime) -> ReportTotals:
        reports = list(self._items.values())
        pending_by_reason = Counter(r.reason.value for r in reports if r.status is ReportStatus.PENDING)
        return ReportTotals(
            by_status=dict(Counter(r.status.value for r in reports)),
            resolved_since=sum(
                1
                for r in reports
                if r.status is ReportStatus.RESOLVED and r.reviewed_at is not None and r.reviewed_at >= since
            ),
            pending_by_reason=dict(pending_by_reason.most_common()),
        )


class InMemorySecurityLogRepository(SecurityLogRepository):
    def __init__(self) -> None:
        self._items: list[SecurityLogEntry] = []

    async def append(self, entry: SecurityLogEntry) -> SecurityLogEntry:
        stored = replace(entry, id=entry.id or str(len(self._items) + 1))
        self._items.append(stored)
        return replace(stored)

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[SecurityLogEntry], int]:
        window, total = _page(list(self._items), query)
        return [replace(entry) for entry in window], total

    async def counts_since(self, since: datetime) -> dict[str, int]:
        return dict(Counter(entry.event_type.value for entry in self._items if entry.timestamp >= since))
