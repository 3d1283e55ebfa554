"""
Monitoring / Prometheus Metrics – Track-Hub
Centralized Prometheus metrics definitions.
Exported for use in middleware, services, Celery tasks and the /metrics endpoint.
"""

from prometheus_client import REGISTRY, Counter, Histogram

registry = REGISTRY

# ────────────────────────────────────────────────
# HTTP Request Metrics
# ────────────────────────────────────────────────
http_requests_total = Counter(
    name="http_requests_total",
    documentation="Total number of HTTP requests processed",
    labelnames=["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    name="http_request_duration_seconds",
    documentation="HTTP request duration in seconds",
    labelnames=["method", "path", "status"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# ────────────────────────────────────────────────
# Admission / credits
# ────────────────────────────────────────────────
project_admissions_total = Counter(
    name="trackhub_project_admissions_total",
    documentation="Project creation attempts by outcome",
    labelnames=["outcome"],
)

credits_debited_total = Counter(
    name="trackhub_credits_debited_total",
    documentation="Credits debited by successful project admissions",
)

credits_purchased_total = Counter(
    name="trackhub_credits_purchased_total",
    documentation="Credits added by fulfilled Stripe checkouts",
)

# ────────────────────────────────────────────────
# Repository writes
# ────────────────────────────────────────────────
repository_commits_total = Counter(
    name="trackhub_repository_commits_total",
    documentation="Commit composer runs by outcome",
    labelnames=["outcome"],
)

repository_commit_attempts = Histogram(
    name="trackhub_repository_commit_attempts",
    documentation="Attempts needed per successful commit (ref conflicts retry)",
    buckets=(1, 2, 3, 5, 10, float("inf")),
)

# ────────────────────────────────────────────────
# Background jobs / GitHub
# ────────────────────────────────────────────────
background_jobs_total = Counter(
    name="trackhub_background_jobs_total",
    documentation="Background job enqueues and runs by job and outcome",
    labelnames=["job", "outcome"],
)

github_requests_total = Counter(
    name="trackhub_github_requests_total",
    documentation="GitHub REST API requests by status class",
    labelnames=["method", "status_class"],
)
