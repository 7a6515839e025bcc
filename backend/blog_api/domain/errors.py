"""Error taxonomy shared by the moderation and admin services.

Every failure that can reach a caller carries a stable machine-readable
``kind`` plus a human-readable ``message``. Internal details (storage
errors, tracebacks) never go into ``message``; they are logged instead.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for failures surfaced to API callers."""

    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def as_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.kind, "detail": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(DomainError):
    """Malformed filter, sort, date or body input."""

    kind = "validation_error"
    status_code = 400


class AuthorizationError(DomainError):
    """Role, ownership or ban based denial."""

    kind = "authorization_error"
    status_code = 403


class InvalidTransition(DomainError):
    """Illegal report lifecycle move."""

    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move report from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class PolicyViolation(DomainError):
    """Rank based restriction, e.g. a moderator banning another moderator."""

    kind = "policy_violation"
    status_code = 403


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str | None = None) -> None:
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DomainError):
    """A side effect failed during a combined transition, or state moved underneath us."""

    kind = "conflict"
    status_code = 409
