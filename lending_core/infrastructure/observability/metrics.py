"""Prometheus metrics for wizard progress, terms, submissions and loan API health"""

from prometheus_client import Counter, Histogram

# Wizard metrics
step_transition_counter = Counter(
    "lending_wizard_step_transitions_total",
    "Wizard step changes",
    ["loan_type", "direction"],  # next | previous | jump | clamped
)

terms_calculation_counter = Counter(
    "lending_terms_calculations_total",
    "Terms calculations requested by the wizard",
    ["loan_type", "source", "outcome"],  # source: local | remote
)

submission_counter = Counter(
    "lending_submissions_total",
    "Application submissions",
    ["loan_type", "outcome"],  # submitted | failed
)

draft_save_failure_counter = Counter(
    "lending_draft_save_failures_total",
    "Draft persistence failures",
    ["mode"],  # autosave | explicit
)

# Loan API metrics
remote_latency_histogram = Histogram(
    "loan_api_latency_seconds",
    "Loan API response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

remote_failure_counter = Counter(
    "loan_api_failures_total",
    "Failed loan API calls",
    ["operation", "category"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_submission(loan_type: str, succeeded: bool) -> None:
    submission_counter.labels(loan_type=loan_type, outcome="submitted" if succeeded else "failed").inc()


def record_terms_calculation(loan_type: str, remote: bool, succeeded: bool) -> None:
    terms_calculation_counter.labels(
        loan_type=loan_type,
        source="remote" if remote else "local",
        outcome="ok" if succeeded else "error",
    ).inc()
