"""Offset pagination helpers for admin and moderator listings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_PAGE = 1


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def from_raw(
        cls,
        page: Any = None,
        limit: Any = None,
        *,
        default_limit: int = 10,
        max_limit: int = 100,
    ) -> "PageRequest":
        """Normalise raw page/limit input.

        Absent or non-numeric values fall back to the defaults; ``page`` is
        raised to 1 and ``limit`` is clamped into ``[1, max_limit]``.
        """

        max_limit = max(1, max_limit)
        parsed_page = _coerce_int(page)
        parsed_limit = _coerce_int(limit)
        if parsed_page is None or parsed_page < 1:
            parsed_page = DEFAULT_PAGE
        if parsed_limit is None:
            parsed_limit = default_limit
        parsed_limit = min(max(parsed_limit, 1), max_limit)
        return cls(page=parsed_page, limit=parsed_limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True, slots=True)
class PageMeta:
    page: int
    limit: int
    total: int
    pages: int

    def as_dict(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


def page_count(total: int, limit: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / limit)


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    meta: PageMeta

    @classmethod
    def build(cls, items: Sequence[T], total: int, request: PageRequest) -> "Page[T]":
        total = max(0, int(total))
        pages = page_count(total, request.limit)
        window = tuple(items[: request.limit]) if request.page <= pages else ()
        return cls(
            items=window,
            meta=PageMeta(page=request.page, limit=request.limit, total=total, pages=pages),
        )

    def map(self, func) -> "Page[Any]":
        return Page(items=tuple(func(item) for item in self.items), meta=self.meta)


def slice_window(items: Sequence[T], request: PageRequest) -> list[T]:
    """Return the slice of an already ordered sequence for ``request``."""

    return list(items[request.offset : request.offset + request.limit])
