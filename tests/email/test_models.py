"""Tests for the email domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from outreach.email.models import MailThread, OutboundEmail, SendResult, ThreadMessage

HEADER_FIELDS = ["to", "subject", "in_reply_to", "references", "from_address"]

# ---------------------------------------------------------------------------
# OutboundEmail
# ---------------------------------------------------------------------------


class TestOutboundEmail:
    """Tests for OutboundEmail model."""

    def test_minimal_new_email(self):
        """Only to/subject/body are required."""
        email = OutboundEmail(to="jane@prospect.com", subject="Hello", body="Hi Jane")
        assert email.campaign_id is None
        assert email.is_reply is False

    def test_is_reply_requires_all_threading_fields(self):
        email = OutboundEmail(
            to="jane@prospect.com",
            subject="Re: Hello",
            body="Following up",
            thread_id="t1",
            in_reply_to="<m1@mail.gmail.com>",
            references="<m1@mail.gmail.com>",
            from_address="founder@startup.io",
        )
        assert email.is_reply is True
        assert email.model_copy(update={"references": None}).is_reply is False

    @pytest.mark.parametrize("field", HEADER_FIELDS)
    @pytest.mark.parametrize("breaker", ["\r", "\n", "\r\n"])
    def test_line_breaks_in_headers_rejected(self, field: str, breaker: str):
        """Header injection via CR/LF is refused."""
        params = {"to": "jane@prospect.com", "subject": "Hello", "body": "Hi"}
        params[field] = f"value{breaker}Bcc: victim@example.com"
        with pytest.raises(ValidationError, match="line breaks"):
            OutboundEmail(**params)

    def test_line_breaks_in_body_allowed(self):
        email = OutboundEmail(to="a@b.com", subject="S", body="line one\r\nline two")
        assert "\r\n" in email.body

    def test_frozen_immutability(self):
        email = OutboundEmail(to="a@b.com", subject="S", body="B")
        with pytest.raises(ValidationError):
            email.subject = "changed"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# SendResult / MailThread
# ---------------------------------------------------------------------------


class TestSendResult:
    """Tests for SendResult model."""

    def test_fields(self):
        result = SendResult(message_id="m1", thread_id="t1")
        assert (result.message_id, result.thread_id) == ("m1", "t1")


class TestMailThread:
    """Tests for MailThread and ThreadMessage."""

    def test_from_header_may_be_none(self):
        message = ThreadMessage(
            id="m1",
            thread_id="t1",
            from_header=None,
            snippet="",
            received_at="2026-01-01T00:00:00Z",
        )
        thread = MailThread(id="t1", messages=[message])
        assert thread.messages[0].from_header is None

    def test_empty_thread(self):
        assert MailThread(id="t1", messages=[]).messages == []
