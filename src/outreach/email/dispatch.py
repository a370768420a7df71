"""Send one outbound email for a user and record it.

The flow is compose -> send -> persist.  Failures before Gmail accepts the
message surface as ``DispatchFailure`` (or a credential error).  A failure
to persist after Gmail accepted it is a separate, higher-severity condition:
the message was delivered, so it is logged at ``critical`` with the Gmail
identifiers and raised as ``DeliveryNotRecorded``.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from outreach.domain.errors import DeliveryNotRecorded
from outreach.domain.models import OutboundMessage
from outreach.domain.types import EmailStatus
from outreach.email.client import GmailClient
from outreach.email.composer import compose_new, compose_reply
from outreach.email.models import OutboundEmail
from outreach.observability.metrics import EMAILS_SENT
from outreach.state.store import EmailStore, utc_now

if TYPE_CHECKING:
    from outreach.auth.credentials import GmailCredentialService

logger = structlog.get_logger()


def compose(outbound: OutboundEmail) -> str:
    """Build the base64url raw message for *outbound*.

    A threaded reply envelope is used only when every threading field is
    present; otherwise a plain new-thread envelope is built.
    """
    if outbound.is_reply:
        # is_reply guarantees these are set
        return compose_reply(
            to=outbound.to,
            from_address=outbound.from_address or "",
            subject=outbound.subject,
            body=outbound.body,
            thread_id=outbound.thread_id or "",
            in_reply_to=outbound.in_reply_to or "",
            references=outbound.references or "",
        )
    return compose_new(outbound.to, outbound.subject, outbound.body)


def send_outbound(
    user_id: str,
    outbound: OutboundEmail,
    credentials: GmailCredentialService,
    client_factory: Callable[[str], GmailClient],
    email_store: EmailStore,
) -> OutboundMessage:
    """Send *outbound* through *user_id*'s Gmail account and record it.

    Args:
        user_id: The authenticated user sending the message.
        outbound: What to send.
        credentials: Produces a fresh access token for the user.
        client_factory: Builds a ``GmailClient`` from an access token.
        email_store: Where the sent message is recorded.

    Returns:
        The recorded ``OutboundMessage`` (status ``sent``).

    Raises:
        CredentialNotFound: If the user has not connected Gmail.
        RefreshRevoked: If the user revoked access.
        DecryptionFailure: If the stored credential cannot be opened.
        TokenExchangeError: On token endpoint failure.
        DispatchFailure: If Gmail did not accept the message.
        DeliveryNotRecorded: If Gmail accepted the message but recording it failed.
    """
    log = logger.bind(user_id=user_id, campaign_id=outbound.campaign_id)

    raw = compose(outbound)
    access_token = credentials.access_token_for(user_id)
    client = client_factory(access_token)

    result = client.send(raw, thread_id=outbound.thread_id)
    log = log.bind(provider_message_id=result.message_id, provider_thread_id=result.thread_id)

    message = OutboundMessage(
        id=str(uuid.uuid4()),
        campaign_id=outbound.campaign_id,
        user_id=user_id,
        recipient_email=outbound.to,
        subject=outbound.subject,
        original_draft=outbound.body,
        message_id=result.message_id,
        thread_id=result.thread_id,
        status=EmailStatus.SENT,
        sent_at=utc_now(),
    )

    try:
        email_store.insert(message)
    except sqlite3.Error as exc:
        log.critical("email_sent_but_not_recorded", error=str(exc))
        raise DeliveryNotRecorded(result.message_id, result.thread_id) from exc

    EMAILS_SENT.inc()
    log.info("email_sent", email_id=message.id, reply=outbound.is_reply)
    return message
