"""Entities persisted by the blog API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {Role.USER: 0, Role.MODERATOR: 1, Role.ADMIN: 2}


class PostCategory(str, Enum):
    FOOD = "food"
    TRAVELLING = "travelling"
    LIFESTYLE = "lifestyle"
    TECH = "tech"


class TargetType(str, Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"


class ReportReason(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    HATE_SPEECH = "hate_speech"
    VIOLENCE = "violence"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    MISINFORMATION = "misinformation"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ActionTaken(str, Enum):
    NONE = "none"
    WARNING = "warning"
    CONTENT_REMOVED = "content_removed"
    USER_BANNED = "user_banned"
    DISMISSED = "dismissed"


class SecurityEventType(str, Enum):
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILURE = "AUTH_FAILURE"
    AUTH_LOCKOUT = "AUTH_LOCKOUT"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_INPUT = "INVALID_INPUT"
    FILE_UPLOAD_BLOCKED = "FILE_UPLOAD_BLOCKED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"


REPORT_DESCRIPTION_MAX = 1000
REVIEW_NOTES_MAX = 500


@dataclass(slots=True)
class User:
    id: str
    email: str
    name: str = ""
    role: Role = Role.USER
    verified: bool = False
    is_banned: bool = False
    banned_at: datetime | None = None
    banned_by: str | None = None
    ban_reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Principal:
    """The authenticated identity executing an operation."""

    id: str
    role: Role
    is_banned: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, role=user.role, is_banned=user.is_banned)


@dataclass(slots=True)
class Post:
    id: str
    owner_id: str
    title: str
    category: PostCategory
    description: str = ""
    content: str = ""
    image: str | None = None
    views: int = 0
    likes: int = 0
    liked_by: set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Comment:
    id: str
    post_id: str
    author_id: str
    body: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Report:
    id: str
    reporter_id: str
    target_type: TargetType
    target_id: str
    reason: ReportReason
    description: str = ""
    status: ReportStatus = ReportStatus.PENDING
    action_taken: ActionTaken | None = None
    review_notes: str | None = None
    reviewer_id: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class SecurityLogEntry:
    event_type: SecurityEventType
    ip: str
    endpoint: str
    user_id: str | None = None
    user_agent: str | None = None
    details: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    id: str | None = None
