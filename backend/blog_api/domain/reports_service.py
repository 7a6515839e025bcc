"""Report filing and review workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, TypeVar
from uuid import uuid4

from blog_api.obs import metrics as obs_metrics

from .dispatcher import ModerationDispatcher
from .errors import ConflictError, DomainError, NotFound, ValidationError
from .filters import REPORT_FIELDS, build_query
from .lifecycle import TransitionPlan, plan_transition
from .models import (
    REPORT_DESCRIPTION_MAX,
    ActionTaken,
    Principal,
    Report,
    ReportReason,
    ReportStatus,
    TargetType,
    utcnow,
)
from .pagination import Page
from .rbac import Operation, authorize
from .repositories import PostRepository, ReportRepository, UserRepository

logger = logging.getLogger("blog.audit")

E = TypeVar("E", bound=Enum)


def parse_choice(enum_cls: type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid value for '{field}'", field=field) from exc


@dataclass
class ReportDetail:
    report: Report
    target: dict[str, Any] | None


@dataclass
class ReportService:
    reports: ReportRepository
    users: UserRepository
    posts: PostRepository
    dispatcher: ModerationDispatcher
    default_limit: int = 10
    max_limit: int = 100

    async def _target_snapshot(self, target_type: TargetType, target_id: str) -> dict[str, Any] | None:
        if target_type is TargetType.POST:
            post = await self.posts.get(target_id)
            if post is None:
                return None
            return {"id": post.id, "title": post.title, "ownerId": post.owner_id, "category": post.category.value}
        if target_type is TargetType.COMMENT:
            comment = await self.posts.get_comment(target_id)
            if comment is None:
                return None
            return {"id": comment.id, "postId": comment.post_id, "authorId": comment.author_id, "body": comment.body}
        user = await self.users.get(target_id)
        if user is None:
            return None
        return {"id": user.id, "name": user.name, "role": user.role.value, "isBanned": user.is_banned}

    async def create_report(
        self,
        principal: Principal | None,
        *,
        target_type: Any,
        target_id: str,
        reason: Any,
        description: str | None = None,
    ) -> Report:
        principal = authorize(principal, Operation.REPORT_CREATE)
        kind = parse_choice(TargetType, target_type, "targetType")
        why = parse_choice(ReportReason, reason, "reason")
        text = (description or "").strip()
        if len(text) > REPORT_DESCRIPTION_MAX:
            raise ValidationError(
                f"description exceeds {REPORT_DESCRIPTION_MAX} characters", field="description"
            )
        target_id = (target_id or "").strip()
        if not target_id:
            raise ValidationError("targetId is required", field="targetId")
        if kind is TargetType.USER and target_id == principal.id:
            raise ValidationError("You cannot report yourself", field="targetId")

        if await self._target_snapshot(kind, target_id) is None:
            raise NotFound(kind.value, target_id)
        if await self.reports.find_open(principal.id, kind, target_id) is not None:
            raise ConflictError("You have already reported this content")

        now = utcnow()
        report = await self.reports.create(
            Report(
                id=str(uuid4()),
                reporter_id=principal.id,
                target_type=kind,
                target_id=target_id,
                reason=why,
                description=text,
                created_at=now,
                updated_at=now,
            )
        )
        obs_metrics.REPORTS_CREATED.labels(target_type=kind.value, reason=why.value).inc()
        logger.info(
            "report_created",
            extra={"report_id": report.id, "target_type": kind.value, "target_id": target_id, "reason": why.value},
        )
        return report

    async def list_reports(self, principal: Principal | None, params: Mapping[str, Any]) -> Page[Report]:
        authorize(principal, Operation.REPORT_READ)
        query = build_query(
            REPORT_FIELDS,
            search=params.get("search"),
            filters={
                "status": params.get("status"),
                "targetType": params.get("targetType"),
                "reason": params.get("reason"),
                "actionTaken": params.get("actionTaken"),
            },
            start_date=params.get("startDate"),
            end_date=params.get("endDate"),
            sort_by=params.get("sortBy"),
            sort_order=params.get("sortOrder"),
            page=params.get("page"),
            limit=params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        items, total = await self.reports.list(query)
        return Page.build(items, total, query.page)

    async def get_report(self, principal: Principal | None, report_id: str) -> ReportDetail:
        authorize(principal, Operation.REPORT_READ)
        report = await self.reports.get(report_id)
        if report is None:
            raise NotFound("report", report_id)
        return ReportDetail(report=report, target=await self._target_snapshot(report.target_type, report.target_id))

    async def _apply_side_effect(self, report: Report, plan: TransitionPlan, actor: Principal) -> None:
        """Run the moderation action a transition requires, before its status is written."""

        reason = plan.review_notes or f"Report {report.id}: {report.reason.value}"
        try:
            if plan.needs_content_removal:
                await self.dispatcher.delete_content(report.target_type, report.target_id, reason, actor)
            elif plan.needs_ban:
                owner_id = await self.dispatcher.resolve_owner(report.target_type, report.target_id)
                if owner_id is None:
                    raise ConflictError("The reported user no longer exists; report left unchanged")
                await self.dispatcher.ban_user(owner_id, reason, actor)
        except ConflictError:
            obs_metrics.REPORT_CONFLICTS.labels(reason="side_effect").inc()
            raise
        except DomainError:
            raise
        except Exception as exc:
            obs_metrics.REPORT_CONFLICTS.labels(reason="side_effect").inc()
            logger.exception(
                "moderation_action_failed",
                extra={"report_id": report.id, "action": plan.action_taken.value if plan.action_taken else None},
            )
            raise ConflictError("The moderation action could not be applied; report left unchanged") from exc

    async def update_report(
        self,
        principal: Principal | None,
        report_id: str,
        *,
        status: Any,
        action_taken: Any = None,
        review_notes: str | None = None,
    ) -> Report:
        """Move a report through its lifecycle, applying any moderation action first.

        The side effect (content removal or ban) runs before the status write.
        If it fails the report keeps its previous state. The status write is a
        compare-and-set on the status the plan was made against, so two
        reviewers racing on the same report cannot both commit.
        """

        actor = authorize(principal, Operation.REPORT_UPDATE)
        target_status = parse_choice(ReportStatus, status, "status")
        action = parse_choice(ActionTaken, action_taken, "actionTaken") if action_taken not in (None, "") else None
        report = await self.reports.get(report_id)
        if report is None:
            raise NotFound("report", report_id)
        plan = plan_transition(report, target_status, action_taken=action, review_notes=review_notes)

        await self._apply_side_effect(report, plan, actor)

        now = utcnow()
        updated = await self.reports.apply_transition(
            report.id,
            expected_status=plan.previous,
            status=plan.status,
            action_taken=plan.action_taken,
            review_notes=plan.review_notes,
            reviewer_id=actor.id,
            reviewed_at=now,
        )
        if updated is None:
            obs_metrics.REPORT_CONFLICTS.labels(reason="stale_status").inc()
            raise ConflictError("Report was updated by another reviewer")

        if plan.needs_content_removal:
            await self.dispatcher.close_related_reports(
                report.target_type, report.target_id, actor, exclude_id=report.id
            )
        obs_metrics.report_transition(plan.previous.value, plan.status.value)
        logger.info(
            "report_updated",
            extra={
                "report_id": report.id,
                "actor_id": actor.id,
                "from_status": plan.previous.value,
                "to_status": plan.status.value,
                "action_taken": plan.action_taken.value if plan.action_taken else None,
            },
        )
        return updated
