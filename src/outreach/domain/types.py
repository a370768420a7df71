"""Domain enumerations for the outreach agent."""

from enum import StrEnum


class EmailStatus(StrEnum):
    """Lifecycle states of an outbound message."""

    SENT = "sent"
    REPLIED = "replied"


class ReplyOutcome(StrEnum):
    """User-assigned classification of an inbound reply."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
