"""Role-gated access policy for blog, moderator and admin operations."""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from blog_api.obs import metrics

from .errors import AuthorizationError, PolicyViolation, ValidationError
from .models import Principal, Role, User


class Operation(str, Enum):
    REPORT_CREATE = "report.create"
    POST_CREATE = "post.create"
    POST_LIKE = "post.like"
    POST_READ = "post.read"
    POST_EDIT = "post.edit"
    POST_DELETE = "post.delete"
    COMMENT_DELETE = "comment.delete"
    PROFILE_READ = "profile.read"
    REPORT_READ = "report.read"
    REPORT_UPDATE = "report.update"
    USER_BAN = "user.ban"
    USER_UNBAN = "user.unban"
    USER_LIST_BANNED = "user.list_banned"
    MODERATION_STATS = "moderation.stats"
    ROLE_MANAGE = "role.manage"
    USER_READ = "user.read"
    USER_DELETE = "user.delete"
    SECURITY_LOG_READ = "security_log.read"
    ADMIN_STATS = "admin.stats"


MUTATING_OPERATIONS = frozenset(
    {
        Operation.REPORT_CREATE,
        Operation.POST_CREATE,
        Operation.POST_LIKE,
        Operation.POST_EDIT,
        Operation.POST_DELETE,
        Operation.COMMENT_DELETE,
        Operation.REPORT_UPDATE,
        Operation.USER_BAN,
        Operation.USER_UNBAN,
        Operation.ROLE_MANAGE,
        Operation.USER_DELETE,
    }
)

# Operations an owner may perform on their own resource whatever their role.
OWNER_OPERATIONS = frozenset(
    {
        Operation.POST_READ,
        Operation.POST_EDIT,
        Operation.POST_DELETE,
        Operation.COMMENT_DELETE,
        Operation.PROFILE_READ,
    }
)

_USER_CAPABILITIES = frozenset({Operation.REPORT_CREATE, Operation.POST_CREATE, Operation.POST_LIKE})
_MODERATOR_CAPABILITIES = _USER_CAPABILITIES | {
    Operation.POST_READ,
    Operation.POST_DELETE,
    Operation.COMMENT_DELETE,
    Operation.REPORT_READ,
    Operation.REPORT_UPDATE,
    Operation.USER_BAN,
    Operation.USER_UNBAN,
    Operation.USER_LIST_BANNED,
    Operation.MODERATION_STATS,
}
_ADMIN_CAPABILITIES = _MODERATOR_CAPABILITIES | {
    Operation.ROLE_MANAGE,
    Operation.USER_READ,
    Operation.USER_DELETE,
    Operation.PROFILE_READ,
    Operation.SECURITY_LOG_READ,
    Operation.ADMIN_STATS,
}

CAPABILITIES: Mapping[Role, frozenset[Operation]] = {
    Role.USER: _USER_CAPABILITIES,
    Role.MODERATOR: frozenset(_MODERATOR_CAPABILITIES),
    Role.ADMIN: frozenset(_ADMIN_CAPABILITIES),
}

ASSIGNABLE_ROLES = frozenset({Role.USER, Role.MODERATOR})


def is_allowed(principal: Principal | None, operation: Operation, *, owner_id: str | None = None) -> bool:
    if principal is None:
        return False
    if principal.is_banned and operation in MUTATING_OPERATIONS:
        return False
    if operation in CAPABILITIES.get(principal.role, frozenset()):
        return True
    return operation in OWNER_OPERATIONS and owner_id is not None and owner_id == principal.id


def authorize(principal: Principal | None, operation: Operation, *, owner_id: str | None = None) -> Principal:
    """Return ``principal`` when it may invoke ``operation``; raise otherwise.

    Fails closed: an operation absent from the principal's capability set is
    denied unless the principal owns the resource and the operation is
    owner-scoped. Banned principals are refused every mutating operation.
    """

    if is_allowed(principal, operation, owner_id=owner_id):
        assert principal is not None
        return principal
    metrics.AUTHZ_DENIALS.labels(operation=operation.value).inc()
    if principal is None:
        raise AuthorizationError("Authentication required")
    if principal.is_banned and operation in MUTATING_OPERATIONS:
        raise AuthorizationError("Your account has been banned")
    raise AuthorizationError(f"Not allowed to perform '{operation.value}'")


def ensure_outranks(actor: Principal, target: User, *, action: str) -> None:
    """Reject acting on oneself or on a principal of equal or higher role."""

    if actor.id == target.id:
        raise PolicyViolation(f"Cannot {action} yourself")
    if actor.role.rank <= target.role.rank:
        raise PolicyViolation(f"A {actor.role.value} cannot {action} a {target.role.value}")


def ensure_role_assignable(actor: Principal, target: User, role: str) -> Role:
    try:
        new_role = Role(role)
    except ValueError as exc:
        raise ValidationError("Invalid role", field="role") from exc
    if new_role not in ASSIGNABLE_ROLES:
        raise ValidationError("Only 'user' and 'moderator' roles can be assigned", field="role")
    if actor.id == target.id:
        raise PolicyViolation("Cannot modify your own role")
    if target.role is Role.ADMIN:
        raise PolicyViolation("Cannot modify an admin's role")
    return new_role
