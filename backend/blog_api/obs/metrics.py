"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"blog_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"blog_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

AUTHZ_DENIALS = Counter(
	"blog_authz_denials_total",
	"Operations refused by the access policy",
	["operation"],
)

REPORTS_CREATED = Counter(
	"blog_reports_created_total",
	"Reports filed",
	["target_type", "reason"],
)

REPORT_TRANSITIONS = Counter(
	"blog_report_transitions_total",
	"Report status transitions committed",
	["from_status", "to_status"],
)

REPORT_CONFLICTS = Counter(
	"blog_report_conflicts_total",
	"Report updates aborted because of a failed side effect or a lost race",
	["reason"],
)

MODERATION_ACTIONS = Counter(
	"blog_moderation_actions_total",
	"Moderation side effects applied",
	["action"],
)

SECURITY_EVENTS_RECORDED = Counter(
	"blog_security_events_total",
	"Security events accepted by the recorder",
	["event_type"],
)

SECURITY_EVENTS_DROPPED = Counter(
	"blog_security_events_dropped_total",
	"Security events dropped because the queue was full",
)

SECURITY_LOG_WRITE_FAILURES = Counter(
	"blog_security_log_write_failures_total",
	"Security log entries that could not be persisted",
)

SECURITY_QUEUE_DEPTH = Gauge(
	"blog_security_event_queue_depth",
	"Security events waiting to be persisted",
)

RATE_LIMITED = Counter(
	"blog_rate_limited_total",
	"Requests rejected by the rate limiter",
	["kind"],
)

REDIS_UP = Gauge("blog_redis_up", "Redis reachability (1 up, 0 down)")
POSTGRES_UP = Gauge("blog_postgres_up", "Postgres reachability (1 up, 0 down)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def report_transition(previous: str, status: str) -> None:
	REPORT_TRANSITIONS.labels(from_status=previous, to_status=status).inc()


def moderation_action(action: str) -> None:
	MODERATION_ACTIONS.labels(action=action).inc()


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)
