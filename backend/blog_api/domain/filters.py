"""Query building for admin and moderator listings.

Raw request parameters (strings, possibly empty) are normalised into a
:class:`QueryDescriptor`. Empty values mean "no constraint". Anything
malformed fails closed with :class:`ValidationError` rather than being
silently dropped, including unknown sort keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Literal, Mapping

from .errors import ValidationError
from .models import ActionTaken, PostCategory, ReportReason, ReportStatus, Role, SecurityEventType, TargetType
from .pagination import PageRequest

SortOrder = Literal["asc", "desc"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _values(enum_cls: type[Enum]) -> frozenset[str]:
    return frozenset(str(member.value) for member in enum_cls)


@dataclass(frozen=True, slots=True)
class ResourceFields:
    """Column layout of a listable resource.

    Attribute names on the entity dataclasses match the column names, so the
    same descriptor drives both SQL rendering and in-memory filtering.
    """

    name: str
    search_columns: tuple[str, ...]
    enum_filters: Mapping[str, tuple[str, frozenset[str]]]
    date_column: str
    sort_columns: Mapping[str, str]
    default_sort: str
    flag_filters: Mapping[str, str] = field(default_factory=dict)
    id_column: str = "id"


POST_FIELDS = ResourceFields(
    name="posts",
    search_columns=("title", "description"),
    enum_filters={"category": ("category", _values(PostCategory))},
    date_column="created_at",
    sort_columns={
        "createdAt": "created_at",
        "updatedAt": "updated_at",
        "views": "views",
        "likes": "likes",
        "title": "title",
    },
    default_sort="createdAt",
)

REPORT_FIELDS = ResourceFields(
    name="reports",
    search_columns=("description",),
    enum_filters={
        "status": ("status", _values(ReportStatus)),
        "targetType": ("target_type", _values(TargetType)),
        "reason": ("reason", _values(ReportReason)),
        "actionTaken": ("action_taken", _values(ActionTaken)),
    },
    date_column="created_at",
    sort_columns={
        "createdAt": "created_at",
        "updatedAt": "updated_at",
        "status": "status",
        "reason": "reason",
    },
    default_sort="createdAt",
)

USER_FIELDS = ResourceFields(
    name="users",
    search_columns=("name", "email"),
    enum_filters={"role": ("role", _values(Role))},
    flag_filters={"verified": "verified", "banned": "is_banned"},
    date_column="created_at",
    sort_columns={
        "createdAt": "created_at",
        "name": "name",
        "email": "email",
        "role": "role",
        "bannedAt": "banned_at",
    },
    default_sort="createdAt",
)

SECURITY_LOG_FIELDS = ResourceFields(
    name="security_logs",
    search_columns=("ip",),
    enum_filters={"eventType": ("event_type", _values(SecurityEventType))},
    date_column="timestamp",
    sort_columns={"timestamp": "timestamp"},
    default_sort="timestamp",
)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_flag(name: str, value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = _clean(value)
    if text is None:
        return None
    lowered = text.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValidationError(f"Invalid boolean for '{name}'", field=name)


def parse_bound(name: str, value: Any, *, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO-8601 date or datetime bound; naive values are taken as UTC."""

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = _clean(value)
    if text is None:
        return None
    if len(text) == 10:
        try:
            day = date.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid date for '{name}'", field=name) from exc
        return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for '{name}'", field=name) from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True, slots=True)
class QueryDescriptor:
    """Normalised, bounded listing query. Built per request and discarded."""

    fields: ResourceFields
    page: PageRequest
    sort_key: str
    sort_order: SortOrder = "desc"
    search: str | None = None
    filters: tuple[tuple[str, str], ...] = ()
    flags: tuple[tuple[str, bool], ...] = ()
    date_from: datetime | None = None
    date_to: datetime | None = None

    @property
    def sort_column(self) -> str:
        return self.fields.sort_columns[self.sort_key]

    def constraint(self, column: str) -> str | None:
        for name, value in self.filters:
            if name == column:
                return value
        return None

    def where_clause(self, params: list[object]) -> str:
        clauses: list[str] = []
        for column, value in self.filters:
            params.append(value)
            clauses.append(f"{column} = ${len(params)}")
        for column, flag in self.flags:
            params.append(flag)
            clauses.append(f"{column} = ${len(params)}")
        if self.date_from is not None:
            params.append(self.date_from)
            clauses.append(f"{self.fields.date_column} >= ${len(params)}")
        if self.date_to is not None:
            params.append(self.date_to)
            clauses.append(f"{self.fields.date_column} <= ${len(params)}")
        if self.search:
            params.append(f"%{_escape_like(self.search)}%")
            idx = len(params)
            ors = " OR ".join(f"{column} ILIKE ${idx}" for column in self.fields.search_columns)
            clauses.append(f"({ors})")
        return " AND ".join(clauses)

    def order_by(self) -> str:
        direction = "ASC" if self.sort_order == "asc" else "DESC"
        return f"{self.sort_column} {direction} NULLS LAST, {self.fields.id_column} {direction}"

    def matches(self, entity: object) -> bool:
        for column, value in self.filters:
            if _plain(getattr(entity, column)) != value:
                return False
        for column, flag in self.flags:
            if bool(getattr(entity, column)) is not flag:
                return False
        stamp = getattr(entity, self.fields.date_column)
        if self.date_from is not None and (stamp is None or stamp < self.date_from):
            return False
        if self.date_to is not None and (stamp is None or stamp > self.date_to):
            return False
        if self.search:
            needle = self.search.casefold()
            haystacks = (str(getattr(entity, column) or "") for column in self.fields.search_columns)
            if not any(needle in hay.casefold() for hay in haystacks):
                return False
        return True

    def order(self, entities: list[Any]) -> list[Any]:
        """Sort in memory with the same semantics as :meth:`order_by`."""

        column = self.sort_column
        present = [item for item in entities if getattr(item, column) is not None]
        missing = [item for item in entities if getattr(item, column) is None]
        reverse = self.sort_order == "desc"
        present.sort(key=lambda item: (_plain(getattr(item, column)), str(getattr(item, self.fields.id_column))), reverse=reverse)
        missing.sort(key=lambda item: str(getattr(item, self.fields.id_column)), reverse=reverse)
        return present + missing


def build_query(
    fields: ResourceFields,
    *,
    search: Any = None,
    filters: Mapping[str, Any] | None = None,
    flags: Mapping[str, Any] | None = None,
    start_date: Any = None,
    end_date: Any = None,
    sort_by: Any = None,
    sort_order: Any = None,
    page: Any = None,
    limit: Any = None,
    default_limit: int = 10,
    max_limit: int = 100,
) -> QueryDescriptor:
    """Translate raw listing parameters into a :class:`QueryDescriptor`."""

    resolved_filters: list[tuple[str, str]] = []
    for name, raw in (filters or {}).items():
        rule = fields.enum_filters.get(name)
        if rule is None:
            raise ValidationError(f"Unknown filter '{name}'", field=name)
        value = _clean(_plain(raw))
        if value is None:
            continue
        column, allowed = rule
        if value not in allowed:
            raise ValidationError(f"Invalid value for '{name}'", field=name)
        resolved_filters.append((column, value))

    resolved_flags: list[tuple[str, bool]] = []
    for name, raw in (flags or {}).items():
        column = fields.flag_filters.get(name)
        if column is None:
            raise ValidationError(f"Unknown filter '{name}'", field=name)
        flag = _parse_flag(name, raw)
        if flag is not None:
            resolved_flags.append((column, flag))

    date_from = parse_bound("startDate", start_date)
    date_to = parse_bound("endDate", end_date, end_of_day=True)
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError("startDate must not be after endDate", field="startDate")

    sort_key = _clean(sort_by) or fields.default_sort
    if sort_key not in fields.sort_columns:
        raise ValidationError(f"Unsupported sort key '{sort_key}'", field="sortBy")
    order = (_clean(sort_order) or "desc").lower()
    if order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be 'asc' or 'desc'", field="sortOrder")

    return QueryDescriptor(
        fields=fields,
        page=PageRequest.from_raw(page, limit, default_limit=default_limit, max_limit=max_limit),
        sort_key=sort_key,
        sort_order=order,  # type: ignore[arg-type]
        search=_clean(search),
        filters=tuple(resolved_filters),
        flags=tuple(resolved_flags),
        date_from=date_from,
        date_to=date_to,
    )
