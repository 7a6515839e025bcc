"""Moderator console: report review, bans and content removal."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from blog_api.api.deps import current_principal
from blog_api.api.schemas import CommentOut, PageOut, PostOut, ReportOut, UserOut
from blog_api.domain.container import get_moderation_service, get_report_service
from blog_api.domain.models import Principal
from blog_api.domain.moderation_service import ModerationService
from blog_api.domain.reports_service import ReportService

router = APIRouter(prefix="/api/moderator", tags=["moderator"])


class ModerationStatsOut(BaseModel):
    model_config = {"populate_by_name": True}

    pending: int
    reviewing: int
    resolved_today: int = Field(alias="resolvedToday")
    banned_users: int = Field(alias="bannedUsers")
    reports_by_reason: dict[str, int] = Field(alias="reportsByReason")


class ReportDetailOut(BaseModel):
    report: ReportOut
    target: Optional[dict[str, Any]] = None


class ReportUpdateIn(BaseModel):
    model_config = {"populate_by_name": True}

    status: str
    action_taken: Optional[str] = Field(default=None, alias="actionTaken")
    review_notes: Optional[str] = Field(default=None, alias="reviewNotes")


class BanIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


def get_report_service_dep() -> ReportService:
    return get_report_service()


def get_moderation_service_dep() -> ModerationService:
    return get_moderation_service()


@router.get("/stats", response_model=ModerationStatsOut)
async def moderation_stats(
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> ModerationStatsOut:
    stats = await service.stats(principal)
    return ModerationStatsOut(
        pending=stats.pending,
        reviewing=stats.reviewing,
        resolved_today=stats.resolved_today,
        banned_users=stats.banned_users,
        reports_by_reason=stats.reports_by_reason,
    )


@router.get("/reports", response_model=PageOut[ReportOut])
async def list_reports(
    status: Optional[str] = None,
    target_type: Optional[str] = Query(default=None, alias="targetType"),
    reason: Optional[str] = None,
    action_taken: Optional[str] = Query(default=None, alias="actionTaken"),
    search: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: ReportService = Depends(get_report_service_dep),
) -> PageOut[ReportOut]:
    result = await service.list_reports(
        principal,
        {
            "status": status,
            "targetType": target_type,
            "reason": reason,
            "actionTaken": action_taken,
            "search": search,
            "startDate": start_date,
            "endDate": end_date,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        },
    )
    return PageOut[ReportOut].from_page(result, ReportOut.from_report)


@router.get("/reports/{report_id}", response_model=ReportDetailOut)
async def get_report(
    report_id: str,
    principal: Principal = Depends(current_principal),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportDetailOut:
    detail = await service.get_report(principal, report_id)
    return ReportDetailOut(report=ReportOut.from_report(detail.report), target=detail.target)


@router.patch("/reports/{report_id}", response_model=ReportOut)
async def update_report(
    report_id: str,
    payload: ReportUpdateIn,
    principal: Principal = Depends(current_principal),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    report = await service.update_report(
        principal,
        report_id,
        status=payload.status,
        action_taken=payload.action_taken,
        review_notes=payload.review_notes,
    )
    return ReportOut.from_report(report)


@router.get("/users/banned", response_model=PageOut[UserOut])
async def list_banned_users(
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> PageOut[UserOut]:
    result = await service.list_banned_users(
        principal,
        {"search": search, "sortBy": sort_by, "sortOrder": sort_order, "page": page, "limit": limit},
    )
    return PageOut[UserOut].from_page(result, UserOut.from_user)


@router.post("/users/{user_id}/ban", response_model=UserOut)
async def ban_user(
    user_id: str,
    payload: BanIn,
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> UserOut:
    return UserOut.from_user(await service.ban_user(principal, user_id, payload.reason))


@router.post("/users/{user_id}/unban", response_model=UserOut)
async def unban_user(
    user_id: str,
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> UserOut:
    return UserOut.from_user(await service.unban_user(principal, user_id))


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
    service: ModerationService = Depends(get_moderation_service_dep),
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


@router.delete("/posts/{post_id}", response_model=PostOut)
async def delete_post(
    post_id: str,
    reason: Optional[str] = Query(default=None, max_length=500),
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> PostOut:
    return PostOut.from_post(await service.delete_post(principal, post_id, reason))


@router.delete("/comments/{comment_id}", response_model=CommentOut)
async def delete_comment(
    comment_id: str,
    reason: Optional[str] = Query(default=None, max_length=500),
    principal: Principal = Depends(current_principal),
    service: ModerationService = Depends(get_moderation_service_dep),
) -> CommentOut:
    return CommentOut.from_comment(await service.delete_comment(principal, comment_id, reason))
