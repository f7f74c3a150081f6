"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"coffeechat_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"coffeechat_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

STORE_UP = Gauge(
	"coffeechat_store_up",
	"Record store reachability (1 up, 0 down)",
)

SUGGESTIONS_SERVED = Counter(
	"coffeechat_suggestions_served_total",
	"Suggestion rankings computed",
)

SUGGESTION_CANDIDATES = Histogram(
	"coffeechat_suggestion_candidates",
	"Eligible candidates scored per suggestion request",
	buckets=(0, 1, 5, 10, 25, 50, 100),
)

PROPOSALS_CREATED = Counter(
	"coffeechat_proposals_created_total",
	"Match proposals created",
)

PROPOSAL_TRANSITIONS = Counter(
	"coffeechat_proposal_transitions_total",
	"Match proposal state transitions",
	["status"],
)

APPOINTMENTS_COMPLETED = Counter(
	"coffeechat_appointments_completed_total",
	"Appointments completed via dual check-in",
)

NO_SHOW_STRIKES = Counter(
	"coffeechat_no_show_strikes_total",
	"No-show strikes recorded by resulting sanction level",
	["level"],
)

SANCTIONS_APPLIED = Counter(
	"coffeechat_sanctions_applied_total",
	"Sanctions created",
	["level", "source"],
)

REPORTS_FILED = Counter(
	"coffeechat_reports_filed_total",
	"Incident reports filed",
)

REPORTS_RESOLVED = Counter(
	"coffeechat_reports_resolved_total",
	"Incident reports resolved by moderators",
)

RESTRICTION_DENIALS = Counter(
	"coffeechat_restriction_denials_total",
	"Actions refused because the actor or counterpart is restricted",
	["action"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def mark_store(up: bool) -> None:
	STORE_UP.set(1 if up else 0)


def inc_suggestions(candidates: int) -> None:
	SUGGESTIONS_SERVED.inc()
	SUGGESTION_CANDIDATES.observe(candidates)


def inc_proposal_created() -> None:
	PROPOSALS_CREATED.inc()


def inc_proposal_transition(status: str) -> None:
	PROPOSAL_TRANSITIONS.labels(status=status).inc()


def inc_appointment_completed() -> None:
	APPOINTMENTS_COMPLETED.inc()


def inc_no_show_strike(level: str) -> None:
	NO_SHOW_STRIKES.labels(level=level).inc()


def inc_sanction(level: str, source: str) -> None:
	SANCTIONS_APPLIED.labels(level=level, source=source).inc()


def inc_report_filed() -> None:
	REPORTS_FILED.inc()


def inc_report_resolved() -> None:
	REPORTS_RESOLVED.inc()


def inc_restriction_denial(action: str) -> None:
	RESTRICTION_DENIALS.labels(action=action).inc()
