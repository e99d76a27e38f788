"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import the metric and increment it at the point of action.

HTTP metrics are filled in by MetricsMiddleware.  The attempt metrics
answer the operational questions for an exam window:

  - how many attempts are being started vs resumed after a reconnect
    (attempts_started_total{resumed})
  - how many attempts end on the clock instead of the submit button
    (attempt_submissions_total{trigger="timeout"})
  - whether any assessment has question data the scorer refuses
    (scoring_failures_total > 0 should page someone)
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP
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
# Attempt lifecycle
# ---------------------------------------------------------------------------

ATTEMPTS_STARTED = Counter(
    "attempts_started_total",
    "start_or_resume calls that returned an attempt",
    ["resumed"],  # "true" | "false"
)

ANSWERS_SAVED = Counter(
    "answers_saved_total",
    "Autosaved answers accepted by the answer store",
    ["question_type"],
)

ATTEMPT_SUBMISSIONS = Counter(
    "attempt_submissions_total",
    "Attempts transitioned to submitted (one per attempt)",
    ["trigger"],  # "manual" | "timeout"
)

SCORING_FAILURES = Counter(
    "scoring_failures_total",
    "Submissions refused because question data could not be scored",
)

SCORING_DURATION = Histogram(
    "attempt_scoring_duration_seconds",
    "Time spent computing an attempt result",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" | "miss"
)
