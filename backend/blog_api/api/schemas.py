"""Request and response models shared by the blog API routers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from blog_api.domain.models import Comment, Post, Report, SecurityLogEntry, User
from blog_api.domain.pagination import Page

ItemT = TypeVar("ItemT")


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PageOut(BaseModel, Generic[ItemT]):
    items: list[ItemT]
    pagination: PaginationOut

    @classmethod
    def from_page(cls, page: Page[Any], convert: Callable[[Any], ItemT]) -> "PageOut[ItemT]":
        return cls(
            items=[convert(item) for item in page.items],
            pagination=PaginationOut(**page.meta.as_dict()),
        )


class UserOut(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    name: str
    email: str
    role: str
    verified: bool
    is_banned: bool = Field(alias="isBanned")
    banned_at: Optional[datetime] = Field(default=None, alias="bannedAt")
    banned_by: Optional[str] = Field(default=None, alias="bannedBy")
    ban_reason: Optional[str] = Field(default=None, alias="banReason")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role.value,
            verified=user.verified,
            is_banned=user.is_banned,
            banned_at=user.banned_at,
            banned_by=user.banned_by,
            ban_reason=user.ban_reason,
            created_at=user.created_at,
        )


class PostOut(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    owner_id: str = Field(alias="ownerId")
    title: str
    category: str
    description: str
    content: str
    image: Optional[str] = None
    views: int
    likes: int
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_post(cls, post: Post) -> "PostOut":
        return cls(
            id=post.id,
            owner_id=post.owner_id,
            title=post.title,
            category=post.category.value,
            description=post.description,
            content=post.content,
            image=post.image,
            views=post.views,
            likes=post.likes,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class CommentOut(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    post_id: str = Field(alias="postId")
    author_id: str = Field(alias="authorId")
    body: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentOut":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            author_id=comment.author_id,
            body=comment.body,
            created_at=comment.created_at,
        )


class ReportOut(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    reporter_id: str = Field(alias="reporterId")
    target_type: str = Field(alias="targetType")
    target_id: str = Field(alias="targetId")
    reason: str
    description: str
    status: str
    action_taken: Optional[str] = Field(default=None, alias="actionTaken")
    review_notes: Optional[str] = Field(default=None, alias="reviewNotes")
    reviewer_id: Optional[str] = Field(default=None, alias="reviewerId")
    reviewed_at: Optional[datetime] = Field(default=None, alias="reviewedAt")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_report(cls, report: Report) -> "ReportOut":
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            target_type=report.target_type.value,
            target_id=report.target_id,
            reason=report.reason.value,
            description=report.description,
            status=report.status.value,
            action_taken=report.action_taken.value if report.action_taken else None,
            review_notes=report.review_notes,
            reviewer_id=report.reviewer_id,
            reviewed_at=report.reviewed_at,
            created_at=report.created_at,
            updated_at=report.updated_at,
        )


class SecurityLogOut(BaseModel):
    model_config = {"populate_by_name": True}

    id: Optional[str] = None
    timestamp: datetime
    event_type: str = Field(alias="eventType")
    ip: str
    endpoint: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    details: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: SecurityLogEntry) -> "SecurityLogOut":
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            event_type=entry.event_type.value,
            ip=entry.ip,
            endpoint=entry.endpoint,
            user_id=entry.user_id,
            user_agent=entry.user_agent,
            details=entry.details,
        )


class MessageOut(BaseModel):
    message: str


def posts_out(posts: Sequence[Post]) -> list[PostOut]:
    return [PostOut.from_post(post) for post in posts]
