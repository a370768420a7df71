"""Email domain: Gmail API client, envelope composition, dispatch, and models."""

from outreach.email.client import GmailClient
from outreach.email.composer import compose_new, compose_reply, decode_raw, encode_raw
from outreach.email.dispatch import send_outbound
from outreach.email.models import MailThread, OutboundEmail, SendResult, ThreadMessage

__all__ = [
    "GmailClient",
    "MailThread",
    "OutboundEmail",
    "SendResult",
    "ThreadMessage",
    "compose_new",
    "compose_reply",
    "decode_raw",
    "encode_raw",
    "send_outbound",
]
