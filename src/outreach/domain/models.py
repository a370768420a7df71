"""Pydantic v2 models for the persisted records of the outreach agent."""

from pydantic import BaseModel, ConfigDict, field_validator

from outreach.domain.types import EmailStatus, ReplyOutcome


class UserCredential(BaseModel):
    """A user's sealed Gmail refresh token.

    At most one live record exists per user; re-consent overwrites it.
    ``revoked_at`` is set when the provider rejects the token during refresh.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    encrypted_refresh_token: str  # base64(nonce || ciphertext || tag)
    revoked_at: str | None = None  # ISO 8601

    @property
    def is_revoked(self) -> bool:
        """Return True if the provider has rejected this credential."""
        return self.revoked_at is not None


class OutboundMessage(BaseModel):
    """An email this system sent through a user's Gmail account.

    Status only ever moves ``sent -> replied``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str | None
    user_id: str
    recipient_email: str
    subject: str
    original_draft: str
    message_id: str  # Gmail message ID
    thread_id: str  # Gmail thread ID
    status: EmailStatus = EmailStatus.SENT
    sent_at: str  # ISO 8601


class InboundReply(BaseModel):
    """A third-party message detected in the thread of an outbound message.

    ``message_id`` is globally unique among replies.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email_id: str
    user_id: str
    campaign_id: str | None
    message_id: str  # Gmail message ID
    thread_id: str
    snippet: str
    from_address: str
    received_at: str  # ISO 8601
    outcome_tag: ReplyOutcome | None = None

    @field_validator("message_id")
    @classmethod
    def message_id_must_not_be_blank(cls, v: str) -> str:
        """A reply without a provider message ID cannot be deduplicated."""
        if not v.strip():
            raise ValueError("message_id must not be blank")
        return v


class DraftEmail(BaseModel):
    """Subject and body returned by the drafting model."""

    model_config = ConfigDict(frozen=True)

    subject: str
    body: str
