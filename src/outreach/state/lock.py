"""Advisory run-lock stored in SQLite.

Keeps two invocations of the same periodic job from overlapping, whether
they are triggered in this process or by another process sharing the same
database.  A lock whose ``expires_at`` has passed is treated as abandoned
(e.g. the holder crashed) and may be taken over.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import UTC, datetime, timedelta

import structlog

from outreach.state.schema import connection_lock

logger = structlog.get_logger()

_TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class JobLock:
    """A named, expiring lock row in the ``job_locks`` table.

    Args:
        conn: An open sqlite3.Connection whose database has ``job_locks``.
        name: The job name the lock protects.
        ttl_seconds: How long a held lock is honoured before it may be
            taken over.
    """

    def __init__(self, conn: sqlite3.Connection, name: str, ttl_seconds: int) -> None:
        self._conn = conn
        self._lock = connection_lock(conn)
        self._name = name
        self._ttl = timedelta(seconds=ttl_seconds)
        self._holder = str(uuid.uuid4())

    @property
    def holder(self) -> str:
        """The unique token identifying this lock instance."""
        return self._holder

    def acquire(self) -> bool:
        """Try to take the lock.

        Returns:
            True if this instance now holds the lock, False if another live
            holder has it.
        """
        now = datetime.now(tz=UTC)
        now_s = now.strftime(_TS_FORMAT)
        expires_s = (now + self._ttl).strftime(_TS_FORMAT)

        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM job_locks WHERE name = ? AND expires_at <= ?",
                (self._name, now_s),
            )
            cursor = self._conn.execute(
                """
                INSERT INTO job_locks (name, holder, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (name) DO NOTHING
                """,
                (self._name, self._holder, now_s, expires_s),
            )
        acquired = cursor.rowcount == 1
        if not acquired:
            logger.info("job_lock_busy", job=self._name)
        return acquired

    def release(self) -> None:
        """Release the lock if this instance holds it."""
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM job_locks WHERE name = ? AND holder = ?",
                (self._name, self._holder),
            )
