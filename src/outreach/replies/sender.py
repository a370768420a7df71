"""Sender identification for messages found in a polled thread."""

from __future__ import annotations

from email.utils import parseaddr


def sender_address(from_header: str | None) -> str:
    """Return the bare, lower-cased address from a ``From`` header value.

    ``'"Jane" <Jane@Example.com>'`` becomes ``'jane@example.com'``.  An
    absent or unparseable header yields an empty string.
    """
    if not from_header:
        return ""
    _, address = parseaddr(from_header)
    return address.strip().lower()


def is_from_account(from_header: str | None, own_address: str) -> bool:
    """Return True if the message was sent by the connected account itself.

    The parsed sender address is compared exactly (case-insensitively) to
    the account's own address.  A missing ``From`` header is never treated
    as the account.
    """
    sender = sender_address(from_header)
    return bool(sender) and sender == own_address.strip().lower()
