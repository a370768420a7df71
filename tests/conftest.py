"""Shared pytest fixtures for the outreach agent test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator

import pytest

from outreach.state.schema import connect
from outreach.state.store import CredentialStore, EmailStore, ReplyStore


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory SQLite connection with the outreach schema created."""
    connection = connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def credential_store(conn: sqlite3.Connection) -> CredentialStore:
    """CredentialStore backed by the in-memory connection."""
    return CredentialStore(conn)


@pytest.fixture
def email_store(conn: sqlite3.Connection) -> EmailStore:
    """EmailStore backed by the in-memory connection."""
    return EmailStore(conn)


@pytest.fixture
def reply_store(conn: sqlite3.Connection) -> ReplyStore:
    """ReplyStore backed by the in-memory connection."""
    return ReplyStore(conn)


@pytest.fixture
def no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make tenacity back-off sleeps instantaneous."""
    monkeypatch.setattr("tenacity.nap.time.sleep", lambda _seconds: None)
