"""Raw RFC 2822 envelope construction for the Gmail ``messages.send`` API.

Provides helpers for:
- Building a new-thread message (To/Subject + body)
- Building an in-thread reply with threading headers
- Encoding either to the unpadded base64url form Gmail expects in ``raw``

Header values are written verbatim; callers must reject CR/LF in subjects
and addresses before calling.

Envelopes are laid out line by line instead of through
``email.message.EmailMessage``: headers are never folded or RFC 2047
encoded, and the body is sent as raw UTF-8 with no
``Content-Transfer-Encoding``.  Threads already in users' mailboxes were
sent with exactly this layout.
"""

from __future__ import annotations

import base64

CRLF = "\r\n"

_MIME_HEADERS = [
    "MIME-Version: 1.0",
    'Content-Type: text/plain; charset="UTF-8"',
]


def encode_raw(message: str) -> str:
    """Encode a message as UTF-8 bytes in base64url without padding.

    Args:
        message: The full message text (headers, blank line, body).

    Returns:
        The encoded string: ``+`` becomes ``-``, ``/`` becomes ``_``, and
        trailing ``=`` padding is stripped.
    """
    encoded = base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_raw(raw: str) -> str:
    """Decode an unpadded base64url ``raw`` value back to message text."""
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding).decode("utf-8")


def _angle(message_id: str) -> str:
    """Wrap an RFC 2822 Message-ID in angle brackets exactly once."""
    return f"<{message_id.strip().lstrip('<').rstrip('>')}>"


def compose_new(to: str, subject: str, body: str) -> str:
    """Build and encode a message that starts a new thread.

    Args:
        to: Recipient address.
        subject: Subject line.
        body: Plain-text body.

    Returns:
        The base64url-encoded raw message.
    """
    lines = [
        f"To: {to}",
        f"Subject: {subject}",
        *_MIME_HEADERS,
        "",
        body,
    ]
    return encode_raw(CRLF.join(lines))


def compose_reply(
    to: str,
    from_address: str,
    subject: str,
    body: str,
    thread_id: str,
    in_reply_to: str,
    references: str,
) -> str:
    """Build and encode a reply that Gmail threads with an existing message.

    Args:
        to: Recipient address.
        from_address: Sender address (the connected account).
        subject: Subject line, usually prefixed with ``Re:``.
        body: Plain-text body.
        thread_id: Gmail thread ID the reply belongs to.
        in_reply_to: Message-ID being replied to (brackets optional).
        references: Message-ID chain for the ``References`` header.

    Returns:
        The base64url-encoded raw message.
    """
    lines = [
        f"To: {to}",
        f"From: {from_address}",
        f"Subject: {subject}",
        f"Thread-Topic: {subject}",
        f"Thread-Index: {thread_id}",
        f"In-Reply-To: {_angle(in_reply_to)}",
        f"References: {_angle(references)}",
        *_MIME_HEADERS,
        "",
        body,
    ]
    return encode_raw(CRLF.join(lines))
