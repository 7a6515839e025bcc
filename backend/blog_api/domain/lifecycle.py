"""Report status state machine."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidTransition, ValidationError
from .models import REVIEW_NOTES_MAX, ActionTaken, Report, ReportStatus, TargetType

TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.REVIEWING, ReportStatus.RESOLVED, ReportStatus.DISMISSED}),
    ReportStatus.REVIEWING: frozenset({ReportStatus.RESOLVED, ReportStatus.DISMISSED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.DISMISSED: frozenset(),
}

TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Actions a terminal status may carry, and the one recorded when none is given.
_ALLOWED_ACTIONS: dict[ReportStatus, frozenset[ActionTaken]] = {
    ReportStatus.RESOLVED: frozenset(
        {ActionTaken.NONE, ActionTaken.WARNING, ActionTaken.CONTENT_REMOVED, ActionTaken.USER_BANNED}
    ),
    ReportStatus.DISMISSED: frozenset({ActionTaken.NONE, ActionTaken.DISMISSED}),
}
_DEFAULT_ACTION = {
    ReportStatus.RESOLVED: ActionTaken.NONE,
    ReportStatus.DISMISSED: ActionTaken.DISMISSED,
}

_REMOVABLE_TARGETS = frozenset({TargetType.POST, TargetType.COMMENT})


def is_terminal(status: ReportStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: ReportStatus, target: ReportStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass(frozen=True, slots=True)
class TransitionPlan:
    """Validated outcome of a requested status change."""

    previous: ReportStatus
    status: ReportStatus
    action_taken: ActionTaken | None
    review_notes: str | None

    @property
    def needs_content_removal(self) -> bool:
        return self.action_taken is ActionTaken.CONTENT_REMOVED

    @property
    def needs_ban(self) -> bool:
        return self.action_taken is ActionTaken.USER_BANNED


def plan_transition(
    report: Report,
    status: ReportStatus,
    *,
    action_taken: ActionTaken | None = None,
    review_notes: str | None = None,
) -> TransitionPlan:
    """Validate ``report`` moving to ``status`` and resolve the recorded action.

    Raises :class:`InvalidTransition` for moves outside :data:`TRANSITIONS`
    and :class:`ValidationError` for an action that does not fit the target
    status or the reported entity.
    """

    if not can_transition(report.status, status):
        raise InvalidTransition(report.status.value, status.value)
    if review_notes is not None and len(review_notes) > REVIEW_NOTES_MAX:
        raise ValidationError(f"reviewNotes exceeds {REVIEW_NOTES_MAX} characters", field="reviewNotes")

    if not is_terminal(status):
        if action_taken is not None:
            raise ValidationError("actionTaken is only allowed when resolving or dismissing", field="actionTaken")
        resolved_action = None
    else:
        resolved_action = action_taken or _DEFAULT_ACTION[status]
        if resolved_action not in _ALLOWED_ACTIONS[status]:
            raise ValidationError(
                f"actionTaken '{resolved_action.value}' does not fit status '{status.value}'",
                field="actionTaken",
            )
        if resolved_action is ActionTaken.CONTENT_REMOVED and report.target_type not in _REMOVABLE_TARGETS:
            raise ValidationError("content_removed requires a post or comment target", field="actionTaken")

    return TransitionPlan(
        previous=report.status,
        status=status,
        action_taken=resolved_action,
        review_notes=review_notes if review_notes is not None else report.review_notes,
    )
