"""Reply detection for outbound emails."""

from outreach.replies.poller import REPLY_POLLER_JOB, PollResult, ReplyPoller
from outreach.replies.sender import is_from_account, sender_address

__all__ = [
    "PollResult",
    "REPLY_POLLER_JOB",
    "ReplyPoller",
    "is_from_account",
    "sender_address",
]
