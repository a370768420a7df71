"""Gmail API client wrapper for sending messages and reading threads.

Provides the ``GmailClient`` class that encapsulates the Gmail API
operations the outreach agent needs: sending a pre-encoded raw message,
fetching a thread's message headers, and discovering the connected
account's own address.  Provider failures are translated into the domain
error types so callers never inspect ``HttpError`` payloads.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from outreach.domain.errors import DispatchFailure, MailProviderError, MailTransportError
from outreach.email.models import MailThread, SendResult, ThreadMessage
from outreach.resilience.retry import resilient_api_call

# Network-level failures raised by the httplib2 transport (timeouts are
# ``TimeoutError``, an ``OSError`` subclass).
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (httplib2.HttpLib2Error, OSError)

# The service carries a bare access token.  When Gmail answers 401 the
# authorized transport tries to refresh it and raises ``RefreshError``.
UNAUTHORIZED = 401


def _http_error_body(exc: HttpError) -> str:
    content = exc.content
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


def _http_error_status(exc: HttpError) -> int:
    return int(getattr(exc.resp, "status", 0) or 0)


def _header(headers: list[dict[str, str]], name: str) -> str | None:
    """Case-insensitive header lookup on a Gmail ``payload.headers`` list."""
    wanted = name.lower()
    for header in headers:
        if header.get("name", "").lower() == wanted:
            return header.get("value", "")
    return None


def _received_at(internal_date: str | int | None) -> str:
    """Convert Gmail ``internalDate`` (ms since epoch) to ISO 8601."""
    internal_date_ms = int(internal_date or 0)
    return datetime.fromtimestamp(internal_date_ms / 1000, tz=UTC).isoformat()


class GmailClient:
    """Wrapper around the Gmail API service for one connected account.

    All methods operate through the provided Gmail API service resource
    (obtained via ``build_gmail_service``).  No real network calls are made
    by this class directly -- the service object handles transport.

    Args:
        service: An authenticated Gmail API v1 service resource.
    """

    def __init__(self, service: Any) -> None:
        self._service = service

    def send(self, raw: str, thread_id: str | None = None) -> SendResult:
        """Send a pre-encoded message via ``users.messages.send``.

        Not retried: a retry after an ambiguous failure may deliver the
        message twice.

        Args:
            raw: The base64url-encoded RFC 2822 message.
            thread_id: Existing Gmail thread to append the message to.

        Returns:
            The Gmail message and thread IDs of the sent message.

        Raises:
            DispatchFailure: On a non-success response (status and body
                retained), a rejected access token (status 401), or a
                transport failure (``status=None``).
        """
        payload: dict[str, Any] = {"raw": raw}
        if thread_id:
            payload["threadId"] = thread_id

        try:
            result: dict[str, Any] = (
                self._service.users().messages().send(userId="me", body=payload).execute()
            )
        except HttpError as exc:
            raise DispatchFailure(_http_error_status(exc), _http_error_body(exc)) from exc
        except GoogleAuthError as exc:
            raise DispatchFailure(UNAUTHORIZED, str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            raise DispatchFailure(None, str(exc)) from exc

        return SendResult(message_id=result["id"], thread_id=result["threadId"])

    @resilient_api_call("gmail_threads_get")
    def get_thread(self, thread_id: str) -> MailThread:
        """Fetch a thread's messages with only the headers the poller needs.

        Uses ``format="metadata"`` so no message bodies are downloaded.

        Args:
            thread_id: The Gmail thread ID.

        Returns:
            A ``MailThread`` whose messages are in Gmail's (chronological)
            order.

        Raises:
            MailProviderError: On a non-success response, or status 401 when
                the access token is rejected.
            MailTransportError: On network failure or timeout.
        """
        try:
            thread: dict[str, Any] = (
                self._service.users()
                .threads()
                .get(
                    userId="me",
                    id=thread_id,
                    format="metadata",
                    metadataHeaders=["From", "Subject", "Message-ID"],
                )
                .execute()
            )
        except HttpError as exc:
            raise MailProviderError(_http_error_status(exc), _http_error_body(exc)) from exc
        except GoogleAuthError as exc:
            raise MailProviderError(UNAUTHORIZED, str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            raise MailTransportError(f"Fetching thread {thread_id} failed: {exc}") from exc

        messages = [
            ThreadMessage(
                id=msg["id"],
                thread_id=msg.get("threadId", thread_id),
                from_header=_header(msg.get("payload", {}).get("headers", []), "From"),
                snippet=msg.get("snippet", ""),
                received_at=_received_at(msg.get("internalDate")),
            )
            for msg in thread.get("messages", [])
        ]
        return MailThread(id=thread.get("id", thread_id), messages=messages)

    @resilient_api_call("gmail_get_profile")
    def get_own_address(self) -> str:
        """Return the connected account's verified email address.

        Raises:
            MailProviderError: On a non-success response, or status 401 when
                the access token is rejected.
            MailTransportError: On network failure or timeout.
        """
        try:
            profile: dict[str, Any] = self._service.users().getProfile(userId="me").execute()
        except HttpError as exc:
            raise MailProviderError(_http_error_status(exc), _http_error_body(exc)) from exc
        except GoogleAuthError as exc:
            raise MailProviderError(UNAUTHORIZED, str(exc)) from exc
        except TRANSPORT_ERRORS as exc:
            raise MailTransportError(f"Fetching Gmail profile failed: {exc}") from exc

        return str(profile["emailAddress"])
