"""Reply reconciliation job.

One run walks every user who owns at least one ``sent`` email, refreshes
that user's Gmail access, fetches each outstanding thread, and records any
third-party message after the first as an ``InboundReply`` (moving the
email to ``replied``).

Failures are isolated: a user whose credential is missing, revoked, or
unreadable is skipped, and a thread that cannot be fetched is skipped,
without stopping the rest of the batch.  Unexpected errors are logged with
their traceback and isolated the same way.  The run itself fails only when
it cannot start (run-lock held, datastore unreachable, configuration
missing).

Re-running against unchanged threads records nothing new: replies are
keyed by Gmail message ID, and the UNIQUE constraint on that column is the
authoritative duplicate guard.
"""

from __future__ import annotations

import sqlite3
import threading
import uuid
from collections.abc import Callable

import structlog
from pydantic import BaseModel

from outreach.auth.credentials import GmailCredentialService
from outreach.domain.errors import (
    ConfigurationError,
    CredentialNotFound,
    DecryptionFailure,
    JobAlreadyRunning,
    RefreshRevoked,
    TransportError,
)
from outreach.domain.models import InboundReply, OutboundMessage
from outreach.domain.types import EmailStatus
from outreach.email.client import GmailClient
from outreach.observability.metrics import POLL_RUNS, POLL_USER_FAILURES, REPLIES_RECORDED
from outreach.replies.sender import is_from_account
from outreach.state.lock import JobLock
from outreach.state.store import EmailStore, ReplyStore

logger = structlog.get_logger()

REPLY_POLLER_JOB = "reply_poller"


class PollResult(BaseModel):
    """Aggregate outcome of one reconciliation run."""

    users_total: int = 0
    users_processed: int = 0
    users_skipped: int = 0
    threads_checked: int = 0
    threads_failed: int = 0
    replies_recorded: int = 0


class ReplyPoller:
    """Detect and record replies to outbound emails across all users.

    Args:
        email_store: Source of outstanding ``sent`` emails.
        reply_store: Where new replies are recorded.
        credentials: Produces a fresh access token per user.
        client_factory: Builds a ``GmailClient`` from an access token.
        job_lock: Optional cross-process run-lock.  An in-process lock
            always serializes runs made through this instance.
    """

    def __init__(
        self,
        email_store: EmailStore,
        reply_store: ReplyStore,
        credentials: GmailCredentialService,
        client_factory: Callable[[str], GmailClient],
        job_lock: JobLock | None = None,
    ) -> None:
        self._emails = email_store
        self._replies = reply_store
        self._credentials = credentials
        self._client_factory = client_factory
        self._job_lock = job_lock
        self._run_lock = threading.Lock()

    def run(self) -> PollResult:
        """Run one reconciliation pass over every user with ``sent`` emails.

        Returns:
            Counts for the run; ``replies_recorded`` is the number of new
            reply rows written.

        Raises:
            JobAlreadyRunning: If another run holds the run-lock.
            sqlite3.Error: If the outstanding users cannot be enumerated.
            ConfigurationError: If OAuth or encryption settings are missing.
        """
        if not self._run_lock.acquire(blocking=False):
            POLL_RUNS.labels(outcome="locked").inc()
            raise JobAlreadyRunning("Reply poller is already running in this process")
        try:
            if self._job_lock is not None and not self._job_lock.acquire():
                POLL_RUNS.labels(outcome="locked").inc()
                raise JobAlreadyRunning("Reply poller is already running")
            try:
                result = self._poll_all()
            except (sqlite3.Error, ConfigurationError):
                POLL_RUNS.labels(outcome="failed").inc()
                logger.exception("reply_poller_failed")
                raise
            finally:
                if self._job_lock is not None:
                    self._job_lock.release()
        finally:
            self._run_lock.release()

        POLL_RUNS.labels(outcome="completed").inc()
        logger.info("reply_poller_completed", **result.model_dump())
        return result

    def _poll_all(self) -> PollResult:
        result = PollResult()
        user_ids = self._emails.user_ids_with_status(EmailStatus.SENT)
        result.users_total = len(user_ids)
        logger.info("reply_poller_started", users=len(user_ids))

        for user_id in user_ids:
            try:
                processed = self._poll_user(user_id, result)
            except ConfigurationError:
                raise
            except sqlite3.Error:
                logger.exception("poll_user_skipped", user_id=user_id, reason="datastore")
                processed = self._skip_user("datastore")
            except Exception:
                logger.exception("poll_user_skipped", user_id=user_id, reason="unexpected")
                processed = self._skip_user("unexpected")
            if processed:
                result.users_processed += 1
            else:
                result.users_skipped += 1
        return result

    def _skip_user(self, reason: str) -> bool:
        POLL_USER_FAILURES.labels(reason=reason).inc()
        return False

    def _poll_user(self, user_id: str, result: PollResult) -> bool:
        """Process one user's outstanding emails.  Returns False if skipped."""
        log = logger.bind(user_id=user_id)

        try:
            access_token = self._credentials.access_token_for(user_id)
        except CredentialNotFound:
            log.warning("poll_user_skipped", reason="no_credential")
            return self._skip_user("no_credential")
        except RefreshRevoked:
            log.warning("poll_user_skipped", reason="revoked")
            return self._skip_user("revoked")
        except DecryptionFailure:
            log.error("poll_user_skipped", reason="decryption_failed")
            return self._skip_user("decryption_failed")
        except TransportError as exc:
            log.warning("poll_user_skipped", reason="token_refresh_failed", error=str(exc))
            return self._skip_user("token_refresh_failed")

        try:
            client = self._client_factory(access_token)
            own_address = client.get_own_address()
        except TransportError as exc:
            log.warning("poll_user_skipped", reason="profile_unavailable", error=str(exc))
            return self._skip_user("profile_unavailable")

        try:
            outstanding = self._emails.list_for_user(user_id, status=EmailStatus.SENT)
        except sqlite3.Error:
            log.exception("poll_user_skipped", reason="datastore")
            return self._skip_user("datastore")

        log.debug("poll_user_started", outstanding=len(outstanding))
        for message in outstanding:
            result.threads_checked += 1
            thread_log = log.bind(email_id=message.id, thread_id=message.thread_id)
            try:
                recorded = self._poll_thread(client, own_address, message, thread_log)
            except TransportError as exc:
                result.threads_failed += 1
                thread_log.warning("poll_thread_failed", error=str(exc))
            except sqlite3.Error:
                result.threads_failed += 1
                thread_log.exception("poll_thread_failed")
            except ConfigurationError:
                raise
            except Exception:
                result.threads_failed += 1
                thread_log.exception("poll_thread_failed", reason="unexpected")
            else:
                result.replies_recorded += recorded
        return True

    def _poll_thread(
        self,
        client: GmailClient,
        own_address: str,
        message: OutboundMessage,
        log: structlog.typing.FilteringBoundLogger,
    ) -> int:
        """Record new third-party replies in one email's thread.

        The outbound email is message #1 of its thread, so only later
        messages are candidates.
        """
        thread = client.get_thread(message.thread_id)
        if len(thread.messages) <= 1:
            return 0

        recorded = 0
        for candidate in thread.messages[1:]:
            msg_log = log.bind(message_id=candidate.id)
            if candidate.from_header is None:
                msg_log.debug("thread_message_skipped", reason="no_sender")
                continue
            if is_from_account(candidate.from_header, own_address):
                continue
            if self._replies.exists(candidate.id):
                continue

            reply = InboundReply(
                id=str(uuid.uuid4()),
                email_id=message.id,
                user_id=message.user_id,
                campaign_id=message.campaign_id,
                message_id=candidate.id,
                thread_id=thread.id,
                snippet=candidate.snippet,
                from_address=candidate.from_header,
                received_at=candidate.received_at,
            )
            # A concurrent writer may have recorded it since the exists() check.
            if self._replies.record_reply(reply):
                recorded += 1
                REPLIES_RECORDED.inc()
                msg_log.info("reply_recorded")
        return recorded
