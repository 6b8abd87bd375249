"""Prometheus metrics for monitoring call volume, billing health and search quality"""

from prometheus_client import Counter, Histogram

# Call metrics
call_initiation_counter = Counter(
    "matchmaking_call_initiation_total",
    "Call initiation attempts",
    ["outcome"],  # connected | no_credits | not_found | not_matched | provider_error
)

webhook_event_counter = Counter(
    "matchmaking_call_webhook_total",
    "Provider status callbacks received",
    ["status", "outcome"],  # outcome: applied | ended | duplicate | unknown_session
)

credit_deduction_failures_counter = Counter(
    "matchmaking_credit_deduction_failures_total",
    "Completed calls where a participant could not be charged",
)

provider_latency_histogram = Histogram(
    "telephony_provider_latency_seconds",
    "Telephony provider call setup response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Search metrics
ranking_results_histogram = Histogram(
    "matchmaking_ranking_results",
    "Number of ranked profiles returned",
    ["kind"],  # search | matches
    buckets=[0, 1, 5, 10, 20, 50, 100],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_webhook(status: str, outcome: str) -> None:
    """Record a status callback; unrecognized statuses share one label to bound cardinality"""
    known = {"ringing", "in-progress", "completed", "busy", "no-answer", "failed"}
    webhook_event_counter.labels(status=status if status in known else "other", outcome=outcome).inc()
