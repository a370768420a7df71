"""Pydantic v2 models for the email domain.

Provides frozen (immutable) models for outbound send requests, send
results, and the thread snapshots returned by the Gmail API.
"""

from pydantic import BaseModel, ConfigDict, field_validator


class OutboundEmail(BaseModel):
    """An email to be sent through the user's Gmail account.

    A threaded reply envelope is built only when ``thread_id``,
    ``in_reply_to``, ``references``, and ``from_address`` are all set.
    ``thread_id`` alone still attaches the send to that Gmail thread.
    """

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    body: str
    campaign_id: str | None = None
    thread_id: str | None = None
    in_reply_to: str | None = None  # RFC 2822 Message-ID to reply to
    references: str | None = None  # RFC 2822 Message-ID chain
    from_address: str | None = None

    @field_validator("to", "subject", "in_reply_to", "references", "from_address")
    @classmethod
    def header_values_must_be_single_line(cls, v: str | None) -> str | None:
        """Header values are written verbatim, so line breaks are rejected."""
        if v is not None and ("\r" in v or "\n" in v):
            raise ValueError("header values must not contain line breaks")
        return v

    @property
    def is_reply(self) -> bool:
        """Return True if every threading field needed for a reply is present."""
        return bool(self.thread_id and self.in_reply_to and self.references and self.from_address)


class SendResult(BaseModel):
    """Identifiers Gmail assigned to a sent message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    thread_id: str


class ThreadMessage(BaseModel):
    """One message in a Gmail thread, reduced to the fields the poller uses."""

    model_config = ConfigDict(frozen=True)

    id: str
    thread_id: str
    from_header: str | None  # None when the message has no From header
    snippet: str
    received_at: str  # ISO 8601, from Gmail internalDate


class MailThread(BaseModel):
    """A Gmail thread with its messages in chronological order."""

    model_config = ConfigDict(frozen=True)

    id: str
    messages: list[ThreadMessage]
