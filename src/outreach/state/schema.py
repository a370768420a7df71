"""SQLite schema and connection factory for outreach persistence.

Creates the ``user_credentials``, ``emails``, ``replies``, and ``job_locks``
tables.  ``replies.message_id`` carries a UNIQUE constraint: it is the
authoritative guard against recording the same Gmail message twice.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any

# Serializes connections that were not opened through ``connect``.
_PROCESS_LOCK = threading.RLock()


class SharedConnection(sqlite3.Connection):
    """A connection shared by request threads and the background poller.

    Statements from one thread must not land inside another thread's open
    transaction, so the stores hold ``lock`` for the whole of each
    operation.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lock = threading.RLock()


def connection_lock(conn: sqlite3.Connection) -> Any:
    """Return the re-entrant lock that serializes work on *conn*."""
    return getattr(conn, "lock", _PROCESS_LOCK)


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Open a database connection with WAL mode and foreign keys enabled.

    The connection may be shared between the FastAPI worker threads and the
    background poller, so ``check_same_thread`` is disabled and the
    connection carries its own lock (see ``SharedConnection``).

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open ``SharedConnection`` with the schema created.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False, factory=SharedConnection)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_db(conn)
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all outreach tables and indexes if they do not already exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS user_credentials (
            user_id TEXT PRIMARY KEY,
            encrypted_refresh_token TEXT NOT NULL,
            revoked_at TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS emails (
            id TEXT PRIMARY KEY,
            campaign_id TEXT,
            user_id TEXT NOT NULL,
            recipient_email TEXT NOT NULL,
            subject TEXT NOT NULL,
            original_draft TEXT NOT NULL,
            message_id TEXT NOT NULL,
            thread_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'sent' CHECK (status IN ('sent', 'replied')),
            sent_at TEXT NOT NULL
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_emails_status_user ON emails (status, user_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_emails_campaign ON emails (campaign_id)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS replies (
            id TEXT PRIMARY KEY,
            email_id TEXT NOT NULL REFERENCES emails (id),
            user_id TEXT NOT NULL,
            campaign_id TEXT,
            message_id TEXT NOT NULL UNIQUE,
            thread_id TEXT NOT NULL,
            snippet TEXT NOT NULL DEFAULT '',
            from_address TEXT NOT NULL,
            received_at TEXT NOT NULL,
            outcome_tag TEXT CHECK (outcome_tag IN ('positive', 'neutral', 'negative'))
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_replies_email ON replies (email_id)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS job_locks (
            name TEXT PRIMARY KEY,
            holder TEXT NOT NULL,
            acquired_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
    """)

    conn.commit()
