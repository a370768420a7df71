"""SQLite-backed stores for credentials, outbound messages, and replies.

Each store accepts a sqlite3.Connection, uses parameterized queries
exclusively, and commits synchronously after writes.  Every operation holds
the connection's lock (see ``state.schema.connection_lock``), so stores
sharing one connection across threads never interleave statements.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from typing import Any

from outreach.domain.errors import NotFound
from outreach.domain.models import InboundReply, OutboundMessage, UserCredential
from outreach.domain.types import EmailStatus, ReplyOutcome
from outreach.state.schema import connection_lock
from outreach.state_machine.transitions import EmailEvent, next_status, statuses_before


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string with a ``Z`` suffix."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _fetch_all(conn: sqlite3.Connection, query: str, params: Any = ()) -> list[dict[str, Any]]:
    """Run *query* and return rows as dicts.

    The row factory is set on the cursor, leaving the shared connection's
    own ``row_factory`` untouched.
    """
    cursor = conn.execute(query, params)
    cursor.row_factory = sqlite3.Row
    rows = cursor.fetchall()
    return [dict(row) for row in rows]


class CredentialStore:
    """Persist and retrieve sealed Gmail refresh tokens, one row per user."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = connection_lock(conn)

    def get(self, user_id: str) -> UserCredential | None:
        """Load the stored credential for *user_id*, or ``None`` if absent."""
        with self._lock:
            rows = _fetch_all(
                self._conn,
                "SELECT user_id, encrypted_refresh_token, revoked_at "
                "FROM user_credentials WHERE user_id = ?",
                (user_id,),
            )
        if not rows:
            return None
        return UserCredential(**rows[0])

    def upsert(self, user_id: str, encrypted_refresh_token: str) -> None:
        """Insert or overwrite the user's credential.

        Overwriting clears ``revoked_at`` since a fresh consent produced it.
        ``created_at`` is preserved across updates.
        """
        now = utc_now()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO user_credentials (
                    user_id, encrypted_refresh_token, revoked_at, created_at, updated_at
                ) VALUES (?, ?, NULL, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    encrypted_refresh_token = excluded.encrypted_refresh_token,
                    revoked_at = NULL,
                    updated_at = excluded.updated_at
                """,
                (user_id, encrypted_refresh_token, now, now),
            )
            self._conn.commit()

    def mark_revoked(self, user_id: str) -> None:
        """Flag the user's credential as unusable until the user re-consents."""
        now = utc_now()
        with self._lock:
            self._conn.execute(
                "UPDATE user_credentials SET revoked_at = ?, updated_at = ? WHERE user_id = ?",
                (now, now, user_id),
            )
            self._conn.commit()


class EmailStore:
    """Persist and query outbound message records."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = connection_lock(conn)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, message: OutboundMessage) -> None:
        """Insert a newly sent outbound message.

        Raises:
            sqlite3.Error: If the row cannot be written.
        """
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO emails (
                    id, campaign_id, user_id, recipient_email, subject,
                    original_draft, message_id, thread_id, status, sent_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.campaign_id,
                    message.user_id,
                    message.recipient_email,
                    message.subject,
                    message.original_draft,
                    message.message_id,
                    message.thread_id,
                    message.status.value,
                    message.sent_at,
                ),
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, email_id: str) -> OutboundMessage | None:
        """Load a single outbound message by ID."""
        with self._lock:
            rows = _fetch_all(self._conn, "SELECT * FROM emails WHERE id = ?", (email_id,))
        if not rows:
            return None
        return OutboundMessage(**rows[0])

    def user_ids_with_status(self, status: EmailStatus) -> list[str]:
        """Return the distinct user IDs owning at least one message in *status*."""
        with self._lock:
            rows = _fetch_all(
                self._conn,
                "SELECT DISTINCT user_id FROM emails WHERE status = ? ORDER BY user_id",
                (status.value,),
            )
        return [row["user_id"] for row in rows]

    def list_for_user(
        self,
        user_id: str,
        *,
        status: EmailStatus | None = None,
        campaign_id: str | None = None,
    ) -> list[OutboundMessage]:
        """List a user's outbound messages, newest first, with optional filters."""
        conditions = ["user_id = ?"]
        params: list[str] = [user_id]

        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)

        if campaign_id is not None:
            conditions.append("campaign_id = ?")
            params.append(campaign_id)

        where_clause = " AND ".join(conditions)
        with self._lock:
            rows = _fetch_all(
                self._conn,
                f"SELECT * FROM emails WHERE {where_clause} ORDER BY sent_at DESC",
                params,
            )
        return [OutboundMessage(**row) for row in rows]


class ReplyStore:
    """Persist and query inbound replies.

    ``record_reply`` writes the reply and the owning message's status change
    in one transaction, so a recorded reply never leaves its message ``sent``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = connection_lock(conn)

    def exists(self, message_id: str) -> bool:
        """Return True if a reply with this Gmail message ID is already recorded."""
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM replies WHERE message_id = ?", (message_id,)
            ).fetchone()
        return row is not None

    def record_reply(self, reply: InboundReply) -> bool:
        """Insert *reply* and move its message from ``sent`` to ``replied``.

        The UNIQUE constraint on ``message_id`` decides whether the row is
        new; a conflicting insert is a no-op and leaves the status untouched.

        Args:
            reply: The reply to record.

        Returns:
            True if a new reply row was written, False if it already existed.

        Raises:
            sqlite3.Error: If the transaction fails; nothing is written.
        """
        replied = next_status(EmailStatus.SENT, EmailEvent.REPLY_RECEIVED)
        from_statuses = [s.value for s in statuses_before(replied)]
        placeholders = ", ".join("?" for _ in from_statuses)

        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO replies (
                    id, email_id, user_id, campaign_id, message_id, thread_id,
                    snippet, from_address, received_at, outcome_tag
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (message_id) DO NOTHING
                """,
                (
                    reply.id,
                    reply.email_id,
                    reply.user_id,
                    reply.campaign_id,
                    reply.message_id,
                    reply.thread_id,
                    reply.snippet,
                    reply.from_address,
                    reply.received_at,
                    reply.outcome_tag.value if reply.outcome_tag else None,
                ),
            )
            if cursor.rowcount == 0:
                return False

            self._conn.execute(
                f"UPDATE emails SET status = ? WHERE id = ? AND status IN ({placeholders})",
                (replied.value, reply.email_id, *from_statuses),
            )
        return True

    def list_for_email(self, email_id: str) -> list[InboundReply]:
        """List replies to one outbound message in the order they were received."""
        with self._lock:
            rows = _fetch_all(
                self._conn,
                "SELECT * FROM replies WHERE email_id = ? ORDER BY received_at",
                (email_id,),
            )
        return [InboundReply(**row) for row in rows]

    def set_outcome_tag(self, reply_id: str, user_id: str, tag: ReplyOutcome) -> None:
        """Assign an outcome classification to one of the user's replies.

        Raises:
            NotFound: If no reply with *reply_id* belongs to *user_id*.
        """
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE replies SET outcome_tag = ? WHERE id = ? AND user_id = ?",
                (tag.value, reply_id, user_id),
            )
            self._conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"Reply '{reply_id}' not found")
