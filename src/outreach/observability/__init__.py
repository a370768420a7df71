"""Metrics, error reporting, and request tracing."""

from outreach.observability.metrics import (
    EMAILS_SENT,
    POLL_RUNS,
    POLL_USER_FAILURES,
    REPLIES_RECORDED,
    setup_metrics,
)
from outreach.observability.middleware import RequestIdMiddleware
from outreach.observability.sentry import get_sentry_processor, init_sentry

__all__ = [
    "EMAILS_SENT",
    "POLL_RUNS",
    "POLL_USER_FAILURES",
    "REPLIES_RECORDED",
    "RequestIdMiddleware",
    "get_sentry_processor",
    "init_sentry",
    "setup_metrics",
]
