"""Outreach persistence package.

Provides the SQLite schema, the credential/email/reply stores, and the
advisory job lock.
"""

from outreach.state.lock import JobLock
from outreach.state.schema import SharedConnection, connect, connection_lock, init_db
from outreach.state.store import CredentialStore, EmailStore, ReplyStore, utc_now

__all__ = [
    "CredentialStore",
    "EmailStore",
    "JobLock",
    "ReplyStore",
    "SharedConnection",
    "connect",
    "connection_lock",
    "init_db",
    "utc_now",
]
