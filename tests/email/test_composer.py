"""Tests for raw envelope construction and base64url encoding."""

from __future__ import annotations

import pytest

from outreach.email.composer import compose_new, compose_reply, decode_raw, encode_raw

TO = "lead@prospect.com"
FROM = "founder@startup.io"
MESSAGE_ID = "CAF=abc+123/xyz@mail.gmail.com"


def _reply(**overrides: str) -> str:
    params = {
        "to": TO,
        "from_address": FROM,
        "subject": "Re: Quick question",
        "body": "Thanks for getting back to me.",
        "thread_id": "18c2f0a9d1e",
        "in_reply_to": MESSAGE_ID,
        "references": MESSAGE_ID,
    }
    params.update(overrides)
    return compose_reply(**params)


class TestEncodeRaw:
    """URL-safe alphabet without padding."""

    @pytest.mark.parametrize("text", ["a", "ab", "abc", "???>>>", "ÿþý ünïcödé ✓"])
    def test_no_plus_slash_or_padding(self, text: str) -> None:
        encoded = encode_raw(text)
        assert "+" not in encoded
        assert "/" not in encoded
        assert not encoded.endswith("=")

    def test_decode_reverses_encode(self) -> None:
        text = "Subject: héllo\r\n\r\nbody ✓"
        assert decode_raw(encode_raw(text)) == text


class TestComposeNew:
    """New-thread envelopes."""

    def test_headers_blank_line_then_body(self) -> None:
        decoded = decode_raw(compose_new(TO, "Quick question", "Hi Jane,\nAre you free?"))
        headers, _, body = decoded.partition("\r\n\r\n")

        assert headers.splitlines()[0] == f"To: {TO}"
        assert "Subject: Quick question" in headers.splitlines()
        assert 'Content-Type: text/plain; charset="UTF-8"' in headers.splitlines()
        assert body == "Hi Jane,\nAre you free?"

    def test_no_threading_headers(self) -> None:
        decoded = decode_raw(compose_new(TO, "Hello", "Body"))
        assert "In-Reply-To" not in decoded
        assert "References" not in decoded

    def test_unicode_body_survives(self) -> None:
        decoded = decode_raw(compose_new(TO, "Grüße", "Schöne Grüße ✓"))
        assert decoded.endswith("Schöne Grüße ✓")

    def test_headers_and_body_are_not_transfer_encoded(self) -> None:
        decoded = decode_raw(compose_new(TO, "Grüße aus Köln", "Schöne Grüße ✓"))
        headers, _, body = decoded.partition("\r\n\r\n")

        assert "Subject: Grüße aus Köln" in headers.splitlines()
        assert "=?utf-8?" not in headers.lower()
        assert "Content-Transfer-Encoding" not in headers
        assert body == "Schöne Grüße ✓"


class TestComposeReply:
    """In-thread reply envelopes."""

    def test_threading_header_lines(self) -> None:
        lines = decode_raw(_reply()).split("\r\n")

        assert f"In-Reply-To: <{MESSAGE_ID}>" in lines
        assert f"References: <{MESSAGE_ID}>" in lines
        assert f"From: {FROM}" in lines
        assert "Thread-Topic: Re: Quick question" in lines

    def test_encoded_form_is_url_safe(self) -> None:
        raw = _reply()
        assert "+" not in raw
        assert "/" not in raw
        assert not raw.endswith("=")

    def test_bracketed_ids_are_not_double_wrapped(self) -> None:
        bracketed = f"<{MESSAGE_ID}>"
        lines = decode_raw(_reply(in_reply_to=bracketed, references=bracketed)).split("\r\n")
        assert f"In-Reply-To: <{MESSAGE_ID}>" in lines
        assert f"References: <{MESSAGE_ID}>" in lines

    def test_body_follows_blank_line(self) -> None:
        _, _, body = decode_raw(_reply(body="See you Tuesday.")).partition("\r\n\r\n")
        assert body == "See you Tuesday."
