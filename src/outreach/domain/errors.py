"""Domain-specific exception classes for the outreach agent.

Every component raises from this closed set so callers can match failures
by type instead of inspecting error payloads.
"""

from __future__ import annotations

from outreach.domain.types import EmailStatus


class OutreachError(Exception):
    """Base class for all domain errors in the outreach agent."""


class ConfigurationError(OutreachError):
    """Raised when a required secret or setting is missing at first use."""


class NotFound(OutreachError):
    """Raised when a record does not exist or is not owned by the caller."""


class CredentialNotFound(NotFound):
    """Raised when a user has no usable stored Gmail credential.

    Attributes:
        user_id: The user whose credential was looked up.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"Gmail account not connected for user '{user_id}'. "
            "Please connect your Gmail account first."
        )


class DecryptionFailure(OutreachError):
    """Raised when a sealed blob fails authentication or cannot be decoded."""


class TransportError(OutreachError):
    """Raised on network failures, timeouts, or unexpected provider responses."""


class TokenExchangeError(TransportError):
    """Raised when the OAuth token endpoint call fails.

    Attributes:
        status: HTTP status code, or ``None`` for network-level failures.
        body: Response body text (empty for network-level failures).
    """

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"OAuth token endpoint failed (status={status}): {body}")


class MissingRefreshToken(OutreachError):
    """Raised when a code exchange succeeds but no refresh token is issued.

    The remedy is to force re-consent, not to retry the request.
    """

    def __init__(self) -> None:
        super().__init__(
            "No refresh token returned by Google. This happens when the user has "
            "already granted consent; restart the flow with prompt=consent."
        )


class RefreshRevoked(OutreachError):
    """Raised when the provider rejects a stored refresh token (``invalid_grant``)."""


class MailProviderError(TransportError):
    """Raised when a Gmail API read returns a non-success status.

    Attributes:
        status: HTTP status code returned by the Gmail API.
        body: Response body text.
    """

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Gmail API error (status={status}): {body}")


class MailTransportError(TransportError):
    """Raised on network failures or timeouts talking to the Gmail API."""


class DispatchFailure(OutreachError):
    """Raised when the Gmail send endpoint does not accept a message.

    Never retried automatically: a retry risks a duplicate send.

    Attributes:
        status: HTTP status code, or ``None`` for network-level failures.
        body: Response body text or transport error description.
    """

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Failed to send email (status={status}): {body}")


class DeliveryNotRecorded(OutreachError):
    """Raised when a message was delivered but its metadata could not be saved.

    Attributes:
        provider_message_id: Gmail message ID of the delivered message.
        provider_thread_id: Gmail thread ID of the delivered message.
    """

    def __init__(self, provider_message_id: str, provider_thread_id: str) -> None:
        self.provider_message_id = provider_message_id
        self.provider_thread_id = provider_thread_id
        super().__init__(
            "Email was sent but could not be recorded "
            f"(message_id={provider_message_id}, thread_id={provider_thread_id})"
        )


class InvalidTransitionError(OutreachError):
    """Raised when an invalid status transition is attempted.

    Attributes:
        current_status: The status the message was in.
        event: The event that was rejected.
    """

    def __init__(self, current_status: EmailStatus, event: str) -> None:
        self.current_status = current_status
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in status '{current_status}'")


class JobAlreadyRunning(OutreachError):
    """Raised when the reply poller run-lock is held by another run."""


class DraftingError(OutreachError):
    """Raised when the drafting model returns no usable content."""
