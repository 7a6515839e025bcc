"""PostgreSQL persistence for users, posts, reports and security logs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Sequence, TypeVar

import asyncpg

from blog_api.domain.filters import QueryDescriptor
from blog_api.domain.models import (
    ActionTaken,
    Comment,
    Post,
    PostCategory,
    Report,
    ReportReason,
    ReportStatus,
    Role,
    SecurityEventType,
    SecurityLogEntry,
    TargetType,
    User,
)
from blog_api.domain.repositories import (
    PostRepository,
    PostTotals,
    ReportRepository,
    ReportTotals,
    SecurityLogRepository,
    UserRepository,
    UserTotals,
)

T = TypeVar("T")

_USER_COLUMNS = "id, email, name, role, verified, is_banned, banned_at, banned_by, ban_reason, created_at"
_POST_COLUMNS = "id, owner_id, title, category, description, content, image, views, likes, created_at, updated_at"
_REPORT_COLUMNS = (
    "id, reporter_id, target_type, target_id, reason, description, status, action_taken, "
    "review_notes, reviewer_id, reviewed_at, created_at, updated_at"
)
_LOG_COLUMNS = "id, timestamp, event_type, ip, endpoint, user_id, user_agent, details"

_EDITABLE_POST_COLUMNS = frozenset({"title", "description", "content", "category", "image"})
_TOP_COLUMNS = frozenset({"views", "likes"})


def _opt_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _row_to_user(row: asyncpg.Record) -> User:
    return User(
        id=str(row["id"]),
        email=str(row["email"]),
        name=str(row["name"] or ""),
        role=Role(str(row["role"])),
        verified=bool(row["verified"]),
        is_banned=bool(row["is_banned"]),
        banned_at=row["banned_at"],
        banned_by=_opt_str(row["banned_by"]),
        ban_reason=_opt_str(row["ban_reason"]),
        created_at=row["created_at"],
    )


def _row_to_post(row: asyncpg.Record) -> Post:
    return Post(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        title=str(row["title"]),
        category=PostCategory(str(row["category"])),
        description=str(row["description"] or ""),
        content=str(row["content"] or ""),
        image=_opt_str(row["image"]),
        views=int(row["views"]),
        likes=int(row["likes"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_comment(row: asyncpg.Record) -> Comment:
    return Comment(
        id=str(row["id"]),
        post_id=str(row["post_id"]),
        author_id=str(row["author_id"]),
        body=str(row["body"]),
        created_at=row["created_at"],
    )


def _row_to_report(row: asyncpg.Record) -> Report:
    return Report(
        id=str(row["id"]),
        reporter_id=str(row["reporter_id"]),
        target_type=TargetType(str(row["target_type"])),
        target_id=str(row["target_id"]),
        reason=ReportReason(str(row["reason"])),
        description=str(row["description"] or ""),
        status=ReportStatus(str(row["status"])),
        action_taken=ActionTaken(str(row["action_taken"])) if row["action_taken"] is not None else None,
        review_notes=_opt_str(row["review_notes"]),
        reviewer_id=_opt_str(row["reviewer_id"]),
        reviewed_at=row["reviewed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_log(row: asyncpg.Record) -> SecurityLogEntry:
    return SecurityLogEntry(
        id=str(row["id"]),
        timestamp=row["timestamp"],
        event_type=SecurityEventType(str(row["event_type"])),
        ip=str(row["ip"]),
        endpoint=str(row["endpoint"]),
        user_id=_opt_str(row["user_id"]),
        user_agent=_opt_str(row["user_agent"]),
        details=_opt_str(row["details"]),
    )


async def _fetch_page(
    pool: asyncpg.Pool,
    table: str,
    columns: str,
    query: QueryDescriptor,
    convert: Callable[[asyncpg.Record], T],
) -> tuple[list[T], int]:
    params: list[object] = []
    where = query.where_clause(params)
    where_sql = f"WHERE {where}" if where else ""
    total = await pool.fetchval(f"SELECT COUNT(*) FROM {table} {where_sql}", *params)
    params.extend([query.page.limit, query.page.offset])
    rows = await pool.fetch(
        f"""
        SELECT {columns}
        FROM {table}
        {where_sql}
        ORDER BY {query.order_by()}
        LIMIT ${len(params) - 1} OFFSET ${len(params)}
        """,
        *params,
    )
    return [convert(row) for row in rows], int(total or 0)


class PostgresUserRepository(UserRepository):
    """Stores accounts in the users table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, user_id: str) -> User | None:
        row = await self._pool.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
        return _row_to_user(row) if row else None

    async def create(self, user: User) -> User:
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO users (id, email, name, role, verified, created_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING {_USER_COLUMNS}
            """,
            user.id,
            user.email,
            user.name,
            user.role.value,
            user.verified,
            user.created_at,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert user")
        return _row_to_user(row)

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[User], int]:
        return await _fetch_page(self._pool, "users", _USER_COLUMNS, query, _row_to_user)

    async def set_ban(self, user_id: str, *, banned_at: datetime, banned_by: str, reason: str) -> User | None:
        row = await self._pool.fetchrow(
            f"""
            UPDATE users
            SET is_banned = TRUE,
                banned_at = COALESCE(banned_at, $2),
                banned_by = $3,
                ban_reason = $4
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
            """,
            user_id,
            banned_at,
            banned_by,
            reason,
        )
        return _row_to_user(row) if row else None

    async def clear_ban(self, user_id: str) -> User | None:
        row = await self._pool.fetchrow(
            f"""
            UPDATE users
            SET is_banned = FALSE, banned_at = NULL, banned_by = NULL, ban_reason = NULL
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
            """,
            user_id,
        )
        return _row_to_user(row) if row else None

    async def set_role(self, user_id: str, role: Role) -> User | None:
        row = await self._pool.fetchrow(
            f"UPDATE users SET role = $2 WHERE id = $1 RETURNING {_USER_COLUMNS}",
            user_id,
            role.value,
        )
        return _row_to_user(row) if row else None

    async def delete(self, user_id: str) -> bool:
        result = await self._pool.execute("DELETE FROM users WHERE id = $1", user_id)
        return result.endswith(" 1")

    async def recent(self, *, limit: int) -> Sequence[User]:
        rows = await self._pool.fetch(
            f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC, id DESC LIMIT $1",
            limit,
        )
        return [_row_to_user(row) for row in rows]

    async def totals(self, *, since: datetime) -> UserTotals:
        row = await self._pool.fetchrow(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE verified) AS verified,
                   COUNT(*) FILTER (WHERE is_banned) AS banned,
                   COUNT(*) FILTER (WHERE created_at >= $1) AS new_since
            FROM users
            """,
            since,
        )
        roles = await self._pool.fetch("SELECT role, COUNT(*) AS n FROM users GROUP BY role")
        return UserTotals(
            total=int(row["total"]),
            verified=int(row["verified"]),
            banned=int(row["banned"]),
            new_since=int(row["new_since"]),
            by_role={str(r["role"]): int(r["n"]) for r in roles},
        )


class PostgresPostRepository(PostRepository):
    """Stores posts, their likes and their comments."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, post_id: str) -> Post | None:
        row = await self._pool.fetchrow(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = $1", post_id)
        return _row_to_post(row) if row else None

    async def create(self, post: Post) -> Post:
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO posts (id, owner_id, title, category, description, content, image, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {_POST_COLUMNS}
            """,
            post.id,
            post.owner_id,
            post.title,
            post.category.value,
            post.description,
            post.content,
            post.image,
            post.created_at,
            post.updated_at,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert post")
        return _row_to_post(row)

    async def update_content(self, post_id: str, changes: Mapping[str, object]) -> Post | None:
        params: list[object] = [post_id]
        assignments: list[str] = []
        for column, value in changes.items():
            if column not in _EDITABLE_POST_COLUMNS:
                raise ValueError(f"column {column} is not editable")
            params.append(value.value if isinstance(value, PostCategory) else value)
            assignments.append(f"{column} = ${len(params)}")
        assignments.append("updated_at = now()")
        row = await self._pool.fetchrow(
            f"UPDATE posts SET {', '.join(assignments)} WHERE id = $1 RETURNING {_POST_COLUMNS}",
            *params,
        )
        return _row_to_post(row) if row else None

    async def delete(self, post_id: str) -> bool:
        # comments and post_likes cascade
        result = await self._pool.execute("DELETE FROM posts WHERE id = $1", post_id)
        return result.endswith(" 1")

    async def delete_by_owner(self, owner_id: str) -> int:
        result = await self._pool.execute("DELETE FROM posts WHERE owner_id = $1", owner_id)
        return int(result.split()[-1])

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Post], int]:
        return await _fetch_page(self._pool, "posts", _POST_COLUMNS, query, _row_to_post)

    async def list_by_owner(self, owner_id: str, *, limit: int) -> Sequence[Post]:
        rows = await self._pool.fetch(
            f"""
            SELECT {_POST_COLUMNS}
            FROM posts
            WHERE owner_id = $1
            ORDER BY created_at DESC, id DESC
            LIMIT $2
            """,
            owner_id,
            limit,
        )
        return [_row_to_post(row) for row in rows]

    async def owner_totals(self, owner_id: str) -> tuple[int, int]:
        row = await self._pool.fetchrow(
            "SELECT COUNT(*) AS n, COALESCE(SUM(views), 0) AS views FROM posts WHERE owner_id = $1",
            owner_id,
        )
        return int(row["n"]), int(row["views"])

    async def recent(self, *, limit: int) -> Sequence[Post]:
        rows = await self._pool.fetch(
            f"SELECT {_POST_COLUMNS} FROM posts ORDER BY created_at DESC, id DESC LIMIT $1",
            limit,
        )
        return [_row_to_post(row) for row in rows]

    async def top(self, *, column: str, limit: int) -> Sequence[Post]:
        if column not in _TOP_COLUMNS:
            raise ValueError(f"cannot rank posts by {column}")
        rows = await self._pool.fetch(
            f"SELECT {_POST_COLUMNS} FROM posts ORDER BY {column} DESC, id DESC LIMIT $1",
            limit,
        )
        return [_row_to_post(row) for row in rows]

    async def increment_views(self, post_id: str) -> Post | None:
        row = await self._pool.fetchrow(
            f"UPDATE posts SET views = views + 1 WHERE id = $1 RETURNING {_POST_COLUMNS}",
            post_id,
        )
        return _row_to_post(row) if row else None

    async def add_like(self, post_id: str, user_id: str) -> Post | None:
        row = await self._pool.fetchrow(
            f"""
            WITH inserted AS (
                INSERT INTO post_likes (post_id, user_id)
                SELECT $1, $2 WHERE EXISTS (SELECT 1 FROM posts WHERE id = $1)
                ON CONFLICT DO NOTHING
                RETURNING post_id
            )
            UPDATE posts
            SET likes = likes + (SELECT COUNT(*) FROM inserted)
            WHERE id = $1
            RETURNING {_POST_COLUMNS}
            """,
            post_id,
            user_id,
        )
        return _row_to_post(row) if row else None

    async def totals(self, *, since: datetime) -> PostTotals:
        row = await self._pool.fetchrow(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE created_at >= $1) AS new_since,
                   COALESCE(SUM(views), 0) AS views,
                   COALESCE(SUM(likes), 0) AS likes
            FROM posts
            """,
            since,
        )
        categories = await self._pool.fetch(
            "SELECT category, COUNT(*) AS n FROM posts GROUP BY category ORDER BY n DESC"
        )
        return PostTotals(
            total=int(row["total"]),
            new_since=int(row["new_since"]),
            total_views=int(row["views"]),
            total_likes=int(row["likes"]),
            by_category={str(r["category"]): int(r["n"]) for r in categories},
        )

    async def get_comment(self, comment_id: str) -> Comment | None:
        row = await self._pool.fetchrow(
            "SELECT id, post_id, author_id, body, created_at FROM comments WHERE id = $1",
            comment_id,
        )
        return _row_to_comment(row) if row else None

    async def add_comment(self, comment: Comment) -> Comment:
        row = await self._pool.fetchrow(
            """
            INSERT INTO comments (id, post_id, author_id, body, created_at)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id, post_id, author_id, body, created_at
            """,
            comment.id,
            comment.post_id,
            comment.author_id,
            comment.body,
            comment.created_at,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert comment")
        return _row_to_comment(row)

    async def delete_comment(self, comment_id: str) -> bool:
        result = await self._pool.execute("DELETE FROM comments WHERE id = $1", comment_id)
        return result.endswith(" 1")


class PostgresReportRepository(ReportRepository):
    """Stores reports; rows are updated in place and never deleted."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def create(self, report: Report) -> Report:
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO reports (id, reporter_id, target_type, target_id, reason, description, status, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {_REPORT_COLUMNS}
            """,
            report.id,
            report.reporter_id,
            report.target_type.value,
            report.target_id,
            report.reason.value,
            report.description,
            report.status.value,
            report.created_at,
            report.updated_at,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert report")
        return _row_to_report(row)

    async def get(self, report_id: str) -> Report | None:
        row = await self._pool.fetchrow(f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = $1", report_id)
        return _row_to_report(row) if row else None

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[Report], int]:
        return await _fetch_page(self._pool, "reports", _REPORT_COLUMNS, query, _row_to_report)

    async def find_open(self, reporter_id: str, target_type: TargetType, target_id: str) -> Report | None:
        row = await self._pool.fetchrow(
            f"""
            SELECT {_REPORT_COLUMNS}
            FROM reports
            WHERE reporter_id = $1 AND target_type = $2 AND target_id = $3
              AND status IN ('pending', 'reviewing')
            LIMIT 1
            """,
            reporter_id,
            target_type.value,
            target_id,
        )
        return _row_to_report(row) if row else None

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
        row = await self._pool.fetchrow(
            f"""
            UPDATE reports
            SET status = $3,
                action_taken = $4,
                review_notes = $5,
                reviewer_id = $6,
                reviewed_at = $7,
                updated_at = $7
            WHERE id = $1 AND status = $2
            RETURNING {_REPORT_COLUMNS}
            """,
            report_id,
            expected_status.value,
            status.value,
            action_taken.value if action_taken else None,
            review_notes,
            reviewer_id,
            reviewed_at,
        )
        return _row_to_report(row) if row else None

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
        result = await self._pool.execute(
            """
            UPDATE reports
            SET status = 'resolved',
                action_taken = 'content_removed',
                review_notes = $3,
                reviewer_id = $4,
                reviewed_at = $5,
                updated_at = $5
            WHERE target_type = $1 AND target_id = $2
              AND status IN ('pending', 'reviewing')
              AND ($6::text IS NULL OR id <> $6)
            """,
            target_type.value,
            target_id,
            review_notes,
            reviewer_id,
            reviewed_at,
            exclude_id,
        )
        return int(result.split()[-1])

    async def totals(self, *, since: datetime) -> ReportTotals:
        statuses = await self._pool.fetch("SELECT status, COUNT(*) AS n FROM reports GROUP BY status")
        resolved = await self._pool.fetchval(
            "SELECT COUNT(*) FROM reports WHERE status = 'resolved' AND reviewed_at >= $1",
            since,
        )
        reasons = await self._pool.fetch(
            """
            SELECT reason, COUNT(*) AS n
            FROM reports
            WHERE status = 'pending'
            GROUP BY reason
            ORDER BY n DESC
            """
        )
        return ReportTotals(
            by_status={str(r["status"]): int(r["n"]) for r in statuses},
            resolved_since=int(resolved or 0),
            pending_by_reason={str(r["reason"]): int(r["n"]) for r in reasons},
        )


class PostgresSecurityLogRepository(SecurityLogRepository):
    """Append-only security_logs table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def append(self, entry: SecurityLogEntry) -> SecurityLogEntry:
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO security_logs (timestamp, event_type, ip, endpoint, user_id, user_agent, details)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {_LOG_COLUMNS}
            """,
            entry.timestamp,
            entry.event_type.value,
            entry.ip,
            entry.endpoint,
            entry.user_id,
            entry.user_agent,
            entry.details,
        )
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to insert security log")
        return _row_to_log(row)

    async def list(self, query: QueryDescriptor) -> tuple[Sequence[SecurityLogEntry], int]:
        return await _fetch_page(self._pool, "security_logs", _LOG_COLUMNS, query, _row_to_log)

    async def counts_since(self, since: datetime) -> dict[str, int]:
        rows = await self._pool.fetch(
            "SELECT event_type, COUNT(*) AS n FROM security_logs WHERE timestamp >= $1 GROUP BY event_type",
            since,
        )
        return {str(r["event_type"]): int(r["n"]) for r in rows}
