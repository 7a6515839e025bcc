"""Admin console: platform stats, user management and security logs."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from blog_api.api.deps import current_principal
from blog_api.api.schemas import PageOut, PostOut, SecurityLogOut, UserOut, posts_out
from blog_api.domain.admin_service import AdminService
from blog_api.domain.container import get_admin_service
from blog_api.domain.models import Principal

router = APIRouter(prefix="/api/admin", tags=["admin"])


class UserTotalsOut(BaseModel):
    model_config = {"populate_by_name": True}

    total: int
    verified: int
    banned: int
    new_this_month: int = Field(alias="newThisMonth")
    by_role: dict[str, int] = Field(alias="byRole")


class PostTotalsOut(BaseModel):
    model_config = {"populate_by_name": True}

    total: int
    new_this_month: int = Field(alias="newThisMonth")
    total_views: int = Field(alias="totalViews")
    total_likes: int = Field(alias="totalLikes")
    by_category: dict[str, int] = Field(alias="byCategory")


class DashboardStatsOut(BaseModel):
    model_config = {"populate_by_name": True}

    users: UserTotalsOut
    posts: PostTotalsOut
    open_reports: int = Field(alias="openReports")
    security_events_24h: dict[str, int] = Field(alias="securityEvents24h")


class UserDetailOut(BaseModel):
    model_config = {"populate_by_name": True}

    user: UserOut
    post_count: int = Field(alias="postCount")
    total_views: int = Field(alias="totalViews")
    recent_posts: list[PostOut] = Field(alias="recentPosts")


class RoleIn(BaseModel):
    role: str


class UserDeletedOut(BaseModel):
    model_config = {"populate_by_name": True}

    message: str
    posts_removed: int = Field(alias="postsRemoved")


class ActivityOut(BaseModel):
    model_config = {"populate_by_name": True}

    type: str
    title: str
    subject_id: str = Field(alias="subjectId")
    actor_id: str = Field(alias="actorId")
    category: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")


class RecentActivityOut(BaseModel):
    activities: list[ActivityOut]


def get_admin_service_dep() -> AdminService:
    return get_admin_service()


@router.get("/stats", response_model=DashboardStatsOut)
async def dashboard_stats(
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> DashboardStatsOut:
    stats = await service.stats(principal)
    users, posts = stats.users, stats.posts
    return DashboardStatsOut(
        users=UserTotalsOut(
            total=users.total,
            verified=users.verified,
            banned=users.banned,
            new_this_month=users.new_since,
            by_role=users.by_role,
        ),
        posts=PostTotalsOut(
            total=posts.total,
            new_this_month=posts.new_since,
            total_views=posts.total_views,
            total_likes=posts.total_likes,
            by_category=posts.by_category,
        ),
        open_reports=stats.open_reports,
        security_events_24h=stats.security_events_24h,
    )


@router.get("/recent-activity", response_model=RecentActivityOut)
async def recent_activity(
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> RecentActivityOut:
    feed = await service.recent_activity(principal, limit=limit)
    return RecentActivityOut(
        activities=[
            ActivityOut(
                type=item.kind,
                title=item.title,
                subject_id=item.subject_id,
                actor_id=item.actor_id,
                category=item.category,
                created_at=item.created_at,
            )
            for item in feed
        ]
    )


@router.get("/users", response_model=PageOut[UserOut])
async def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    verified: Optional[str] = None,
    banned: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> PageOut[UserOut]:
    result = await service.list_users(
        principal,
        {
            "search": search,
            "role": role,
            "verified": verified,
            "banned": banned,
            "startDate": start_date,
            "endDate": end_date,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        },
    )
    return PageOut[UserOut].from_page(result, UserOut.from_user)


@router.get("/users/{user_id}", response_model=UserDetailOut)
async def get_user(
    user_id: str,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> UserDetailOut:
    detail = await service.get_user(principal, user_id)
    return UserDetailOut(
        user=UserOut.from_user(detail.user),
        post_count=detail.post_count,
        total_views=detail.total_views,
        recent_posts=posts_out(detail.recent_posts),
    )


@router.patch("/users/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: str,
    payload: RoleIn,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> UserOut:
    return UserOut.from_user(await service.update_role(principal, user_id, payload.role))


@router.delete("/users/{user_id}", response_model=UserDeletedOut)
async def delete_user(
    user_id: str,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> UserDeletedOut:
    removed = await service.delete_user(principal, user_id)
    return UserDeletedOut(message="User deleted", posts_removed=removed)


@router.get("/posts", response_model=PageOut[PostOut])
async def list_posts(
    search: Optional[str] = None,
    category: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> PageOut[PostOut]:
    result = await service.list_posts(
        principal,
        {
            "search": search,
            "category": category,
            "startDate": start_date,
            "endDate": end_date,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        },
    )
    return PageOut[PostOut].from_page(result, PostOut.from_post)


# Declared before /posts/{post_id} so "top" is not read as an id.
@router.get("/posts/top", response_model=list[PostOut])
async def top_posts(
    by: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> list[PostOut]:
    return posts_out(await service.top_posts(principal, by=by, limit=limit))


@router.get("/posts/{post_id}", response_model=PostOut)
async def get_post(
    post_id: str,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> PostOut:
    return PostOut.from_post(await service.get_post(principal, post_id))


@router.delete("/posts/{post_id}", response_model=PostOut)
async def delete_post(
    post_id: str,
    reason: Optional[str] = Query(default=None, max_length=500),
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> PostOut:
    return PostOut.from_post(await service.delete_post(principal, post_id, reason))


@router.get("/security-logs", response_model=PageOut[SecurityLogOut])
async def list_security_logs(
    ip: Optional[str] = None,
    event_type: Optional[str] = Query(default=None, alias="eventType"),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: AdminService = Depends(get_admin_service_dep),
) -> PageOut[SecurityLogOut]:
    result = await service.list_security_logs(
        principal,
        {
            "ip": ip,
            "eventType": event_type,
            "startDate": start_date,
            "endDate": end_date,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        },
    )
    return PageOut[SecurityLogOut].from_page(result, SecurityLogOut.from_entry)
