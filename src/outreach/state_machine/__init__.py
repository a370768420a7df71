"""Outbound message status transitions."""

from outreach.state_machine.transitions import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    EmailEvent,
    next_status,
    statuses_before,
)

__all__ = [
    "EmailEvent",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "next_status",
    "statuses_before",
]
