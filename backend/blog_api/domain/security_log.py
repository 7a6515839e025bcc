"""Security event side channel.

Events are queued in memory and persisted by a background writer. Recording
never blocks and never raises: when the queue is full the newest event is
dropped and counted, and persistence failures are only logged.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from blog_api.obs import metrics as obs_metrics

from .models import SecurityEventType, SecurityLogEntry, utcnow
from .repositories import SecurityLogRepository

logger = logging.getLogger("blog.security")

MAX_FIELD_LENGTH = 500
_CONTROL_CHARS = re.compile(r"[\n\r\t]")

_LEVELS = {
    SecurityEventType.AUTH_SUCCESS: logging.INFO,
    SecurityEventType.AUTH_FAILURE: logging.WARNING,
    SecurityEventType.RATE_LIMIT_EXCEEDED: logging.WARNING,
}


def sanitize(value: object | None) -> str | None:
    """Flatten control characters and cap the length of a log field."""

    if value is None:
        return None
    return _CONTROL_CHARS.sub(" ", str(value))[:MAX_FIELD_LENGTH]


def level_for(event_type: SecurityEventType) -> int:
    return _LEVELS.get(event_type, logging.ERROR)


def status_event(status_code: int) -> SecurityEventType | None:
    """Map an error response status to the security event it represents."""

    if status_code < 400:
        return None
    if status_code == 401:
        return SecurityEventType.AUTH_FAILURE
    if status_code == 403:
        return SecurityEventType.UNAUTHORIZED_ACCESS
    if status_code == 429:
        return SecurityEventType.RATE_LIMIT_EXCEEDED
    return SecurityEventType.INVALID_INPUT


@dataclass
class SecurityEventRecorder:
    repository: SecurityLogRepository
    max_queue: int = 1000
    _queue: asyncio.Queue = field(init=False, repr=False)
    _task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    dropped: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self._queue = asyncio.Queue(maxsize=max(1, self.max_queue))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def record(
        self,
        event_type: SecurityEventType,
        *,
        ip: str | None,
        endpoint: str | None,
        user_id: str | None = None,
        user_agent: str | None = None,
        details: object | None = None,
    ) -> bool:
        """Queue an event. Returns False when it had to be dropped."""

        entry = SecurityLogEntry(
            event_type=event_type,
            ip=sanitize(ip) or "unknown",
            endpoint=sanitize(endpoint) or "",
            user_id=sanitize(user_id),
            user_agent=sanitize(user_agent),
            details=sanitize(details),
            timestamp=utcnow(),
        )
        logger.log(
            level_for(event_type),
            "security_event",
            extra={
                "event_type": event_type.value,
                "endpoint": entry.endpoint,
                "actor_id": entry.user_id,
                "details": entry.details,
            },
        )
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self.dropped += 1
            obs_metrics.SECURITY_EVENTS_DROPPED.inc()
            return False
        obs_metrics.SECURITY_EVENTS_RECORDED.labels(event_type=event_type.value).inc()
        obs_metrics.SECURITY_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    async def _write(self, entry: SecurityLogEntry) -> None:
        try:
            await self.repository.append(entry)
        except Exception:  # noqa: BLE001 - persistence failures never reach callers
            obs_metrics.SECURITY_LOG_WRITE_FAILURES.inc()
            logger.exception("security_log_write_failed", extra={"event_type": entry.event_type.value})

    async def flush(self) -> int:
        """Persist everything currently queued; used on shutdown and in tests."""

        written = 0
        while True:
            try:
                entry = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            await self._write(entry)
            self._queue.task_done()
            written += 1
        obs_metrics.SECURITY_QUEUE_DEPTH.set(self._queue.qsize())
        return written

    async def run_forever(self) -> None:
        while True:
            entry = await self._queue.get()
            await self._write(entry)
            self._queue.task_done()
            obs_metrics.SECURITY_QUEUE_DEPTH.set(self._queue.qsize())

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="security-log-writer")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.flush()
