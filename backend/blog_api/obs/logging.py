"""JSON log lines with per-request context.

Every request binds a ``LogContext`` (request id, route, client ip and, once
authentication succeeds, the acting user and role). The formatter folds it
into each record together with any ``extra`` fields, redacting credentials
and clipping free text such as report descriptions and ban reasons.
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from blog_api.settings import settings

ROOT_LOGGER = "blog"
AUDIT_LOGGER = "blog.audit"

_REDACT_MARKERS = ("token", "secret", "authorization", "password", "cookie", "email")
# User-supplied prose is kept but clipped.
_FREE_TEXT_KEYS = frozenset({"description", "review_notes", "reason", "ban_reason", "body", "details"})
_FREE_TEXT_LIMIT = 120
_STRING_LIMIT = 256
_COLLECTION_LIMIT = 10

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}


@dataclass(frozen=True)
class LogContext:
	request_id: Optional[str] = None
	route: Optional[str] = None
	client_ip: Optional[str] = None
	user_id: Optional[str] = None
	role: Optional[str] = None

	def fields(self) -> Dict[str, str]:
		values = {
			"request_id": self.request_id,
			"route": self.route,
			"ip": self.client_ip,
			"user_id": self.user_id,
			"role": self.role,
		}
		return {key: value for key, value in values.items() if value}


_CONTEXT: ContextVar[LogContext] = ContextVar("blog_log_context", default=LogContext())


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	client_ip: Optional[str] = None,
) -> Token:
	"""Start a fresh context for one request; pass the token to ``reset_context``."""
	return _CONTEXT.set(LogContext(request_id=request_id, route=route, client_ip=client_ip))


def bind_user(user_id: str, role: Optional[str] = None) -> None:
	_CONTEXT.set(replace(_CONTEXT.get(), user_id=user_id, role=role))


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_context() -> LogContext:
	return _CONTEXT.get()


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().request_id


def _clip(text: str, limit: int) -> str:
	return text if len(text) <= limit else text[:limit] + "..."


def scrub(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(marker in lowered for marker in _REDACT_MARKERS):
		return "[redacted]"
	if lowered in _FREE_TEXT_KEYS and isinstance(value, str):
		return _clip(value, _FREE_TEXT_LIMIT)
	return _scrub_value(value)


def _scrub_value(value: Any) -> Any:
	if isinstance(value, Enum):
		return value.value
	if isinstance(value, datetime):
		return value.isoformat()
	if isinstance(value, str):
		return _clip(value, _STRING_LIMIT)
	if isinstance(value, dict):
		items = list(value.items())
		scrubbed = {str(k): scrub(str(k), v) for k, v in items[:_COLLECTION_LIMIT]}
		if len(items) > _COLLECTION_LIMIT:
			scrubbed["_truncated"] = len(items) - _COLLECTION_LIMIT
		return scrubbed
	if isinstance(value, (list, tuple, set, frozenset)):
		items = [_scrub_value(item) for item in value]
		if len(items) > _COLLECTION_LIMIT:
			return items[:_COLLECTION_LIMIT] + [f"+{len(items) - _COLLECTION_LIMIT} more"]
		return items
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get().fields())
		for key, value in record.__dict__.items():
			if key in _STANDARD_ATTRS or key in payload:
				continue
			payload[key] = scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Sample info lines at the configured rate. Audit lines are never sampled."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or record.name == AUDIT_LOGGER:
			return True
		rate = min(1.0, max(0.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	for handler in list(root.handlers):
		root.removeHandler(handler)
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(ROOT_LOGGER)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or ROOT_LOGGER)
