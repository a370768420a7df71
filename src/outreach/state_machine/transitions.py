"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from outreach.domain.errors import InvalidTransitionError
from outreach.domain.types import EmailStatus


class EmailEvent(StrEnum):
    """Events that can trigger status transitions of an outbound message."""

    REPLY_RECEIVED = "reply_received"


# All valid (current_status, event_string) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[EmailStatus, str], EmailStatus] = {
    (EmailStatus.SENT, EmailEvent.REPLY_RECEIVED): EmailStatus.REPLIED,
}

# The reply poller never moves a message out of these statuses.
TERMINAL_STATUSES: frozenset[EmailStatus] = frozenset({EmailStatus.REPLIED})


def next_status(current: EmailStatus, event: str) -> EmailStatus:
    """Return the status reached by applying *event* to *current*.

    Args:
        current: The message's current status.
        event: The event string (e.g. ``"reply_received"``).

    Returns:
        The new status after the transition.

    Raises:
        InvalidTransitionError: If the transition is not allowed, including
            any event applied to a terminal status.
    """
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(current, event)

    key = (current, event)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(current, event)
    return TRANSITIONS[key]


def statuses_before(target: EmailStatus) -> list[EmailStatus]:
    """Return every status that may legally transition into *target*, sorted."""
    return sorted({state for (state, _event), to in TRANSITIONS.items() if to == target})
