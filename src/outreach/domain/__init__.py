"""Domain types, models, and errors for the outreach agent."""

from outreach.domain.errors import (
    ConfigurationError,
    CredentialNotFound,
    DecryptionFailure,
    DeliveryNotRecorded,
    DispatchFailure,
    DraftingError,
    InvalidTransitionError,
    JobAlreadyRunning,
    MailProviderError,
    MailTransportError,
    MissingRefreshToken,
    NotFound,
    OutreachError,
    RefreshRevoked,
    TokenExchangeError,
    TransportError,
)
from outreach.domain.models import DraftEmail, InboundReply, OutboundMessage, UserCredential
from outreach.domain.types import EmailStatus, ReplyOutcome

__all__ = [
    "ConfigurationError",
    "CredentialNotFound",
    "DecryptionFailure",
    "DeliveryNotRecorded",
    "DispatchFailure",
    "DraftEmail",
    "DraftingError",
    "EmailStatus",
    "InboundReply",
    "InvalidTransitionError",
    "JobAlreadyRunning",
    "MailProviderError",
    "MailTransportError",
    "MissingRefreshToken",
    "NotFound",
    "OutboundMessage",
    "OutreachError",
    "RefreshRevoked",
    "ReplyOutcome",
    "TokenExchangeError",
    "TransportError",
    "UserCredential",
]
