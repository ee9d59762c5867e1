"""Prometheus metric inventory.

All metrics are defined here and incremented at the point of action
(middleware for HTTP, services for domain outcomes).  Scraped from
GET /metrics.

Domain counters answer operational questions the request metrics cannot:
  - how often do concurrent duplicate enrolls actually race?
  - what share of lesson views are denied, and for which role?
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Course access metrics
# ---------------------------------------------------------------------------

ENROLLMENTS = Counter(
    "enrollments_total",
    "Enrollment attempts by outcome",
    ["outcome"],  # created|already_enrolled|rejected
)

ENROLLMENT_RACES = Counter(
    "enrollment_races_total",
    "Enrollment inserts rejected by the storage uniqueness constraint",
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Lesson completion calls by outcome",
    ["outcome"],  # created|existing|race
)

PROGRESS_RECOMPUTES = Counter(
    "progress_recomputes_total",
    "Enrollment progress recomputations",
)

ACCESS_DECISIONS = Counter(
    "access_decisions_total",
    "Access authorizer decisions",
    ["role", "outcome"],  # outcome: allowed or the denial error code
)

EVENTS_PUBLISHED = Counter(
    "domain_events_published_total",
    "Domain events handed to the event queue",
    ["event_type", "result"],  # result: ok|failed
)
