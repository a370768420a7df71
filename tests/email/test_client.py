"""Tests for the GmailClient Gmail API wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from outreach.domain.errors import DispatchFailure, MailProviderError, MailTransportError
from outreach.email.client import GmailClient

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

THREAD_ID = "thread_xyz789"

GOOGLE_ERROR = b'{"error": {"code": 500, "message": "boom"}}'


def _http_error(status: int, body: bytes = GOOGLE_ERROR) -> HttpError:
    resp = httplib2.Response({"status": str(status)})
    return HttpError(resp, body)


def _thread_payload() -> dict:
    return {
        "id": THREAD_ID,
        "messages": [
            {
                "id": "m1",
                "threadId": THREAD_ID,
                "snippet": "Hi Jane",
                "internalDate": "1767261600000",
                "payload": {"headers": [{"name": "From", "value": "founder@startup.io"}]},
            },
            {
                "id": "m2",
                "threadId": THREAD_ID,
                "snippet": "Sounds interesting",
                "internalDate": "1767348000000",
                "payload": {"headers": [{"name": "from", "value": "Jane <jane@prospect.com>"}]},
            },
            {
                "id": "m3",
                "threadId": THREAD_ID,
                "snippet": "",
                "internalDate": "1767348600000",
                "payload": {"headers": []},
            },
        ],
    }


# ---------------------------------------------------------------------------
# GmailClient.send
# ---------------------------------------------------------------------------


class TestGmailClientSend:
    """Tests for GmailClient.send."""

    def test_sends_raw_payload(self) -> None:
        service = MagicMock()
        service.users().messages().send().execute.return_value = {
            "id": "msg1",
            "threadId": "t1",
        }
        client = GmailClient(service)

        result = client.send("cmF3")

        _, kwargs = service.users().messages().send.call_args
        assert kwargs["userId"] == "me"
        assert kwargs["body"] == {"raw": "cmF3"}
        assert result.message_id == "msg1"
        assert result.thread_id == "t1"

    def test_attaches_thread_id(self) -> None:
        service = MagicMock()
        service.users().messages().send().execute.return_value = {"id": "m", "threadId": THREAD_ID}

        GmailClient(service).send("cmF3", thread_id=THREAD_ID)

        _, kwargs = service.users().messages().send.call_args
        assert kwargs["body"] == {"raw": "cmF3", "threadId": THREAD_ID}

    def test_http_error_is_dispatch_failure_with_status_and_body(self) -> None:
        service = MagicMock()
        service.users().messages().send().execute.side_effect = _http_error(
            400, b'{"error": {"code": 400, "message": "invalidArgument"}}'
        )

        with pytest.raises(DispatchFailure) as exc_info:
            GmailClient(service).send("cmF3")

        assert exc_info.value.status == 400
        assert "invalidArgument" in exc_info.value.body

    def test_send_is_not_retried(self) -> None:
        service = MagicMock()
        execute = service.users().messages().send().execute
        execute.side_effect = _http_error(503)

        with pytest.raises(DispatchFailure):
            GmailClient(service).send("cmF3")
        assert execute.call_count == 1

    def test_timeout_is_dispatch_failure_without_status(self) -> None:
        service = MagicMock()
        service.users().messages().send().execute.side_effect = TimeoutError("timed out")

        with pytest.raises(DispatchFailure) as exc_info:
            GmailClient(service).send("cmF3")
        assert exc_info.value.status is None

    def test_rejected_access_token_is_dispatch_failure(self) -> None:
        service = MagicMock()
        service.users().messages().send().execute.side_effect = RefreshError(
            "The credentials do not contain the necessary fields"
        )

        with pytest.raises(DispatchFailure) as exc_info:
            GmailClient(service).send("cmF3")
        assert exc_info.value.status == 401


# ---------------------------------------------------------------------------
# GmailClient.get_thread
# ---------------------------------------------------------------------------


class TestGmailClientGetThread:
    """Tests for GmailClient.get_thread."""

    def test_requests_metadata_only(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.return_value = _thread_payload()

        GmailClient(service).get_thread(THREAD_ID)

        _, kwargs = service.users().threads().get.call_args
        assert kwargs["id"] == THREAD_ID
        assert kwargs["format"] == "metadata"
        assert "From" in kwargs["metadataHeaders"]

    def test_parses_messages_in_order(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.return_value = _thread_payload()

        thread = GmailClient(service).get_thread(THREAD_ID)

        assert thread.id == THREAD_ID
        assert [m.id for m in thread.messages] == ["m1", "m2", "m3"]
        assert thread.messages[1].from_header == "Jane <jane@prospect.com>"
        assert thread.messages[1].snippet == "Sounds interesting"
        assert thread.messages[0].received_at.startswith("2026-01-01T10:00:00")

    def test_missing_from_header_is_none(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.return_value = _thread_payload()

        thread = GmailClient(service).get_thread(THREAD_ID)

        assert thread.messages[2].from_header is None

    def test_not_found_is_mail_provider_error(self) -> None:
        service = MagicMock()
        service.users().threads().get().execute.side_effect = _http_error(404)

        with pytest.raises(MailProviderError) as exc_info:
            GmailClient(service).get_thread(THREAD_ID)
        assert exc_info.value.status == 404

    def test_rejected_access_token_is_not_retried(self, no_retry_wait: None) -> None:
        service = MagicMock()
        execute = service.users().threads().get().execute
        execute.side_effect = RefreshError("The credentials do not contain the necessary fields")

        with pytest.raises(MailProviderError) as exc_info:
            GmailClient(service).get_thread(THREAD_ID)
        assert exc_info.value.status == 401
        assert execute.call_count == 1

    def test_transport_failure_is_retried(self, no_retry_wait: None) -> None:
        service = MagicMock()
        execute = service.users().threads().get().execute
        execute.side_effect = [OSError("connection reset"), _thread_payload()]

        thread = GmailClient(service).get_thread(THREAD_ID)

        assert len(thread.messages) == 3
        assert execute.call_count == 2

    def test_persistent_timeout_is_mail_transport_error(self, no_retry_wait: None) -> None:
        service = MagicMock()
        execute = service.users().threads().get().execute
        execute.side_effect = TimeoutError("timed out")

        with pytest.raises(MailTransportError):
            GmailClient(service).get_thread(THREAD_ID)
        assert execute.call_count == 3


# ---------------------------------------------------------------------------
# GmailClient.get_own_address
# ---------------------------------------------------------------------------


class TestGmailClientGetOwnAddress:
    """Tests for GmailClient.get_own_address."""

    def test_returns_profile_address(self) -> None:
        service = MagicMock()
        service.users().getProfile().execute.return_value = {
            "emailAddress": "founder@startup.io",
            "messagesTotal": 10,
        }

        assert GmailClient(service).get_own_address() == "founder@startup.io"

    def test_http_error_is_mail_provider_error(self) -> None:
        service = MagicMock()
        service.users().getProfile().execute.side_effect = _http_error(403)

        with pytest.raises(MailProviderError):
            GmailClient(service).get_own_address()

    def test_rejected_access_token_is_mail_provider_error(self) -> None:
        service = MagicMock()
        service.users().getProfile().execute.side_effect = RefreshError("token expired")

        with pytest.raises(MailProviderError) as exc_info:
            GmailClient(service).get_own_address()
        assert exc_info.value.status == 401
