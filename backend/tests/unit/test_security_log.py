import logging
from datetime import datetime, timezone

import pytest

from blog_api.domain.filters import SECURITY_LOG_FIELDS, build_query
from blog_api.domain.models import SecurityEventType, SecurityLogEntry
from blog_api.domain.repositories import InMemorySecurityLogRepository
from blog_api.domain.security_log import SecurityEventRecorder, level_for, sanitize, status_event


class BrokenRepository(InMemorySecurityLogRepository):
    async def append(self, entry: SecurityLogEntry) -> SecurityLogEntry:
        raise ConnectionError("database unavailable")


def test_sanitize_flattens_control_characters_and_truncates():
    assert sanitize("line1\nline2\r\tend") == "line1 line2  end"
    assert len(sanitize("x" * 900)) == 500
    assert sanitize(None) is None


def test_levels():
    assert level_for(SecurityEventType.AUTH_SUCCESS) == logging.INFO
    assert level_for(SecurityEventType.RATE_LIMIT_EXCEEDED) == logging.WARNING
    assert level_for(SecurityEventType.SUSPICIOUS_ACTIVITY) == logging.ERROR


@pytest.mark.parametrize(
    "code,expected",
    [
        (200, None),
        (302, None),
        (400, SecurityEventType.INVALID_INPUT),
        (401, SecurityEventType.AUTH_FAILURE),
        (403, SecurityEventType.UNAUTHORIZED_ACCESS),
        (404, SecurityEventType.INVALID_INPUT),
        (429, SecurityEventType.RATE_LIMIT_EXCEEDED),
        (500, SecurityEventType.INVALID_INPUT),
    ],
)
def test_status_event_mapping(code, expected):
    assert status_event(code) is expected


@pytest.mark.asyncio
async def test_recorded_events_are_persisted_on_flush():
    repository = InMemorySecurityLogRepository()
    recorder = SecurityEventRecorder(repository)
    assert recorder.record(
        SecurityEventType.AUTH_FAILURE,
        ip="10.0.0.1",
        endpoint="GET /api/admin/stats",
        user_agent="curl\n/8.0",
        details="HTTP 401",
    )
    assert recorder.pending == 1
    assert await recorder.flush() == 1
    assert recorder.pending == 0
    assert await repository.counts_since(datetime(2000, 1, 1, tzinfo=timezone.utc)) == {"AUTH_FAILURE": 1}


@pytest.mark.asyncio
async def test_full_queue_drops_newest_without_raising():
    recorder = SecurityEventRecorder(InMemorySecurityLogRepository(), max_queue=2)
    assert recorder.record(SecurityEventType.INVALID_INPUT, ip="1.1.1.1", endpoint="/a")
    assert recorder.record(SecurityEventType.INVALID_INPUT, ip="1.1.1.1", endpoint="/b")
    assert not recorder.record(SecurityEventType.INVALID_INPUT, ip="1.1.1.1", endpoint="/c")
    assert recorder.dropped == 1
    assert recorder.pending == 2


@pytest.mark.asyncio
async def test_write_failures_are_swallowed():
    recorder = SecurityEventRecorder(BrokenRepository())
    recorder.record(SecurityEventType.AUTH_FAILURE, ip=None, endpoint=None)
    assert await recorder.flush() == 1
    assert recorder.pending == 0


@pytest.mark.asyncio
async def test_background_writer_drains_queue_on_stop():
    repository = InMemorySecurityLogRepository()
    recorder = SecurityEventRecorder(repository)
    recorder.start()
    for idx in range(3):
        recorder.record(SecurityEventType.UNAUTHORIZED_ACCESS, ip="2.2.2.2", endpoint=f"/x/{idx}")
    await recorder.stop()
    assert recorder.pending == 0
    entries, total = await repository.list(build_query(SECURITY_LOG_FIELDS, limit=50))
    assert total == 3
    assert {entry.ip for entry in entries} == {"2.2.2.2"}
