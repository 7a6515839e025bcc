"""Service container shared by the API routers."""

from __future__ import annotations

from typing import Optional

import asyncpg

from blog_api.settings import settings

from .admin_service import AdminService
from .dispatcher import ModerationDispatcher
from .moderation_service import ModerationService
from .posts_service import PostService
from .reports_service import ReportService
from .repositories import (
    InMemoryPostRepository,
    InMemoryReportRepository,
    InMemorySecurityLogRepository,
    InMemoryUserRepository,
    PostRepository,
    ReportRepository,
    SecurityLogRepository,
    UserRepository,
)
from .security_log import SecurityEventRecorder

_user_repository: UserRepository = InMemoryUserRepository()
_post_repository: PostRepository = InMemoryPostRepository()
_report_repository: ReportRepository = InMemoryReportRepository()
_security_log_repository: SecurityLogRepository = InMemorySecurityLogRepository()

_dispatcher: ModerationDispatcher
_report_service: ReportService
_moderation_service: ModerationService
_admin_service: AdminService
_post_service: PostService
_recorder: SecurityEventRecorder


def _wire() -> None:
    global _dispatcher, _report_service, _moderation_service, _admin_service, _post_service
    limits = {
        "default_limit": settings.pagination_default_limit,
        "max_limit": settings.pagination_max_limit,
    }
    _dispatcher = ModerationDispatcher(
        users=_user_repository,
        posts=_post_repository,
        reports=_report_repository,
        default_ban_reason=settings.default_ban_reason,
    )
    _report_service = ReportService(
        reports=_report_repository,
        users=_user_repository,
        posts=_post_repository,
        dispatcher=_dispatcher,
        **limits,
    )
    _moderation_service = ModerationService(
        users=_user_repository,
        posts=_post_repository,
        reports=_report_repository,
        dispatcher=_dispatcher,
        **limits,
    )
    _admin_service = AdminService(
        users=_user_repository,
        posts=_post_repository,
        reports=_report_repository,
        security_logs=_security_log_repository,
        moderation=_moderation_service,
        security_log_default_limit=settings.security_log_default_limit,
        **limits,
    )
    _post_service = PostService(posts=_post_repository, **limits)


def _new_recorder() -> SecurityEventRecorder:
    return SecurityEventRecorder(
        repository=_security_log_repository,
        max_queue=settings.security_log_queue_size,
    )


_wire()
_recorder = _new_recorder()


def configure(
    *,
    user_repository: Optional[UserRepository] = None,
    post_repository: Optional[PostRepository] = None,
    report_repository: Optional[ReportRepository] = None,
    security_log_repository: Optional[SecurityLogRepository] = None,
) -> None:
    global _user_repository, _post_repository, _report_repository, _security_log_repository, _recorder
    if user_repository is not None:
        _user_repository = user_repository
    if post_repository is not None:
        _post_repository = post_repository
    if report_repository is not None:
        _report_repository = report_repository
    if security_log_repository is not None:
        _security_log_repository = security_log_repository
        _recorder = _new_recorder()
    _wire()


def configure_postgres(pool: asyncpg.Pool) -> None:
    """Swap every repository for its PostgreSQL implementation."""

    from blog_api.infra.postgres_repo import (
        PostgresPostRepository,
        PostgresReportRepository,
        PostgresSecurityLogRepository,
        PostgresUserRepository,
    )

    configure(
        user_repository=PostgresUserRepository(pool),
        post_repository=PostgresPostRepository(pool),
        report_repository=PostgresReportRepository(pool),
        security_log_repository=PostgresSecurityLogRepository(pool),
    )


def reset_memory() -> None:
    """Fresh in-memory stores; used by tests."""

    configure(
        user_repository=InMemoryUserRepository(),
        post_repository=InMemoryPostRepository(),
        report_repository=InMemoryReportRepository(),
        security_log_repository=InMemorySecurityLogRepository(),
    )


def get_user_repository() -> UserRepository:
    return _user_repository


def get_post_repository() -> PostRepository:
    return _post_repository


def get_report_repository() -> ReportRepository:
    return _report_repository


def get_security_log_repository() -> SecurityLogRepository:
    return _security_log_repository


def get_dispatcher() -> ModerationDispatcher:
    return _dispatcher


def get_report_service() -> ReportService:
    return _report_service


def get_moderation_service() -> ModerationService:
    return _moderation_service


def get_admin_service() -> AdminService:
    return _admin_service


def get_post_service() -> PostService:
    return _post_service


def get_security_recorder() -> SecurityEventRecorder:
    return _recorder
