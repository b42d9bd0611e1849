"""Prometheus metrics for triage output, reconciliation, planning and pipeline health"""

from prometheus_client import Counter, Histogram

# Triage metrics
recommendations_created_counter = Counter(
    "obligation_recommendations_created_total",
    "Recommendations created by triage",
    ["rec_type"],  # payment | negotiate | defer | dispute | legal | strategy | warning
)

overdue_flip_counter = Counter(
    "obligation_overdue_flips_total",
    "Obligations flipped from pending to overdue",
)

# Reconciliation metrics
auto_match_counter = Counter(
    "obligation_auto_matches_total",
    "Transactions auto-matched to obligations",
)

# Planner metrics
payment_plan_counter = Counter(
    "obligation_payment_plans_total",
    "Payment plans simulated",
    ["strategy"],
)

# Queue metrics
queue_decision_counter = Counter(
    "obligation_queue_decisions_total",
    "User decisions on recommendations",
    ["decision"],  # approved | rejected | deferred | modified
)

# Scheduled pipeline metrics
phase_failure_counter = Counter(
    "obligation_pipeline_phase_failures_total",
    "Scheduled pipeline phases that raised",
    ["phase"],
)

phase_duration_histogram = Histogram(
    "obligation_pipeline_phase_duration_seconds",
    "Scheduled pipeline phase duration",
    ["phase"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Charge API metrics
charge_latency_histogram = Histogram(
    "charge_api_latency_seconds",
    "Charge API response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

charge_failure_counter = Counter(
    "charge_api_failures_total",
    "Failed charge API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_recommendations(rec_types: list) -> None:
    """Count newly created recommendations by type"""
    for rec_type in rec_types:
        recommendations_created_counter.labels(rec_type=rec_type).inc()
