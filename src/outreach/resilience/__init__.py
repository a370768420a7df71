"""Resilience infrastructure for idempotent provider calls."""

from outreach.resilience.retry import is_transient, resilient_api_call

__all__ = [
    "is_transient",
    "resilient_api_call",
]
