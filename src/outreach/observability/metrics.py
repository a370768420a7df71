"""Prometheus metrics instrumentation for the outreach agent.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count.
- ``EMAILS_SENT``: Counter of messages accepted by Gmail and recorded.
- ``REPLIES_RECORDED``: Counter of new inbound replies written by the poller.
- ``POLL_USER_FAILURES``: Counter of users skipped by the poller, by reason.
- ``POLL_RUNS``: Counter of poller invocations, by outcome.

Counters are updated where the event happens (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

EMAILS_SENT: Counter = Counter(
    "outreach_emails_sent_total",
    "Total number of outbound emails sent and recorded",
)

REPLIES_RECORDED: Counter = Counter(
    "outreach_replies_recorded_total",
    "Total number of new inbound replies recorded by the reply poller",
)

POLL_USER_FAILURES: Counter = Counter(
    "outreach_poll_user_failures_total",
    "Users skipped by the reply poller because of an error",
    ["reason"],
)

POLL_RUNS: Counter = Counter(
    "outreach_poll_runs_total",
    "Reply poller invocations",
    ["outcome"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
