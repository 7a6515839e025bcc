"""Moderation side effects: removing content and banning or unbanning users."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from blog_api.obs import metrics as obs_metrics

from .errors import NotFound, ValidationError
from .models import Principal, TargetType, User, utcnow
from .rbac import ensure_outranks
from .repositories import PostRepository, ReportRepository, UserRepository

logger = logging.getLogger("blog.audit")


@dataclass
class ModerationDispatcher:
    users: UserRepository
    posts: PostRepository
    reports: ReportRepository
    default_ban_reason: str = "Violation of community guidelines"

    async def resolve_owner(self, target_type: TargetType, target_id: str) -> str | None:
        """Return the user responsible for a report target, if it still exists."""

        if target_type is TargetType.USER:
            user = await self.users.get(target_id)
            return user.id if user else None
        if target_type is TargetType.POST:
            post = await self.posts.get(target_id)
            return post.owner_id if post else None
        comment = await self.posts.get_comment(target_id)
        return comment.author_id if comment else None

    async def delete_content(
        self,
        target_type: TargetType,
        target_id: str,
        reason: str | None,
        actor: Principal,
    ) -> bool:
        """Delete a post or comment. Returns False when it was already gone."""

        if target_type is TargetType.POST:
            removed = await self.posts.delete(target_id)
        elif target_type is TargetType.COMMENT:
            removed = await self.posts.delete_comment(target_id)
        else:
            raise ValidationError("Only posts and comments can be removed", field="targetType")

        if removed:
            obs_metrics.moderation_action("content_removed")
            logger.info(
                "content_removed",
                extra={
                    "actor_id": actor.id,
                    "target_type": target_type.value,
                    "target_id": target_id,
                    "reason": reason,
                },
            )
        return removed

    async def close_related_reports(
        self,
        target_type: TargetType,
        target_id: str,
        actor: Principal,
        *,
        exclude_id: str | None = None,
    ) -> int:
        now = utcnow()
        closed = await self.reports.resolve_open_for_target(
            target_type,
            target_id,
            reviewer_id=actor.id,
            review_notes=f"{target_type.value.capitalize()} removed by moderator",
            reviewed_at=now,
            exclude_id=exclude_id,
        )
        if closed:
            logger.info(
                "related_reports_resolved",
                extra={"actor_id": actor.id, "target_id": target_id, "count": closed},
            )
        return closed

    async def ban_user(self, user_id: str, reason: str | None, actor: Principal) -> User:
        """Ban ``user_id``. Repeating a ban keeps the original ``banned_at``."""

        target = await self.users.get(user_id)
        if target is None:
            raise NotFound("user", user_id)
        ensure_outranks(actor, target, action="ban")
        ban_reason = (reason or "").strip() or self.default_ban_reason
        updated = await self.users.set_ban(
            user_id,
            banned_at=utcnow(),
            banned_by=actor.id,
            reason=ban_reason,
        )
        if updated is None:
            raise NotFound("user", user_id)
        obs_metrics.moderation_action("user_banned")
        logger.info(
            "user_banned",
            extra={"actor_id": actor.id, "target_id": user_id, "reason": ban_reason, "repeat": target.is_banned},
        )
        return updated

    async def unban_user(self, user_id: str, actor: Principal) -> User:
        target = await self.users.get(user_id)
        if target is None:
            raise NotFound("user", user_id)
        ensure_outranks(actor, target, action="unban")
        if not target.is_banned:
            return target
        updated = await self.users.clear_ban(user_id)
        if updated is None:
            raise NotFound("user", user_id)
        obs_metrics.moderation_action("user_unbanned")
        logger.info("user_unbanned", extra={"actor_id": actor.id, "target_id": user_id})
        return updated
