"""FastAPI router for the interactive outreach endpoints.

Every route except the job trigger requires an authenticated user (see
``auth.identity.current_user``).  Blocking work (SQLite, Google, Anthropic)
runs in a worker thread via ``asyncio.to_thread``.

Domain errors are translated to HTTP responses by ``register_error_handlers``
so the handlers themselves only deal with the success path.
"""

from __future__ import annotations

import asyncio
import hmac
from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from outreach.auth.identity import current_user
from outreach.domain.errors import (
    ConfigurationError,
    DeliveryNotRecorded,
    InvalidTransitionError,
    JobAlreadyRunning,
    MissingRefreshToken,
    NotFound,
    OutreachError,
)
from outreach.domain.types import ReplyOutcome
from outreach.email.dispatch import send_outbound
from outreach.email.models import OutboundEmail
from outreach.llm.drafter import compose_draft

logger = structlog.get_logger()

router = APIRouter()


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also allowed)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenRequest(CamelModel):
    code: str


class SendEmailRequest(CamelModel):
    recipient_email: str
    subject: str
    body: str
    campaign_id: str | None = None
    thread_id: str | None = None
    in_reply_to: str | None = None
    references: str | None = None
    from_address: str | None = None


class DraftRequest(CamelModel):
    campaign_goal: str
    audience: str
    thread_context: str | None = None
    user_notes: str | None = None


class OutcomeTagRequest(CamelModel):
    outcome_tag: ReplyOutcome


def _services(request: Request) -> dict[str, Any]:
    services: dict[str, Any] = request.app.state.services
    return services


# ---------------------------------------------------------------------------
# Gmail connection
# ---------------------------------------------------------------------------


@router.post("/gmail/auth/start")
async def gmail_auth_start(
    request: Request, user_id: str = Depends(current_user)
) -> dict[str, str]:
    """Return the Google consent URL for the current user."""
    service = _services(request)["credential_service"]
    url: str = service.authorization_url(user_id)
    logger.info("gmail_auth_started", user_id=user_id)
    return {"url": url}


@router.post("/gmail/auth/token")
async def gmail_auth_token(
    payload: TokenRequest, request: Request, user_id: str = Depends(current_user)
) -> dict[str, Any]:
    """Exchange the authorization code and store the sealed refresh token."""
    service = _services(request)["credential_service"]
    await asyncio.to_thread(service.connect, user_id, payload.code)
    return {"success": True, "message": "Gmail account connected successfully"}


# ---------------------------------------------------------------------------
# Sending and drafting
# ---------------------------------------------------------------------------


@router.post("/emails/send")
async def send_email(
    payload: SendEmailRequest, request: Request, user_id: str = Depends(current_user)
) -> dict[str, Any]:
    """Send an email (new thread or threaded reply) and record it."""
    svc = _services(request)
    try:
        outbound = OutboundEmail(
            to=payload.recipient_email,
            subject=payload.subject,
            body=payload.body,
            campaign_id=payload.campaign_id,
            thread_id=payload.thread_id,
            in_reply_to=payload.in_reply_to,
            references=payload.references,
            from_address=payload.from_address,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    message = await asyncio.to_thread(
        send_outbound,
        user_id,
        outbound,
        svc["credential_service"],
        svc["gmail_client_factory"],
        svc["email_store"],
    )
    return {
        "success": True,
        "emailId": message.id,
        "messageId": message.message_id,
        "threadId": message.thread_id,
    }


@router.post("/drafts")
async def generate_draft(
    payload: DraftRequest, request: Request, user_id: str = Depends(current_user)
) -> dict[str, Any]:
    """Draft a cold email, or a follow-up when thread context and notes are given."""
    client = _services(request).get("anthropic_client")
    if client is None:
        raise ConfigurationError("Missing configuration: ANTHROPIC_API_KEY")

    draft = await asyncio.to_thread(
        compose_draft,
        payload.campaign_goal,
        payload.audience,
        client,
        payload.thread_context,
        payload.user_notes,
    )
    logger.info("draft_returned", user_id=user_id)
    return {"success": True, "email": draft.model_dump()}


# ---------------------------------------------------------------------------
# Sent emails and replies
# ---------------------------------------------------------------------------


@router.get("/emails")
async def list_emails(
    request: Request,
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    user_id: str = Depends(current_user),
) -> dict[str, Any]:
    """List the current user's sent emails with their replies, newest first."""
    svc = _services(request)

    def load() -> list[dict[str, Any]]:
        emails = svc["email_store"].list_for_user(user_id, campaign_id=campaign_id)
        return [
            {
                **email.model_dump(mode="json"),
                "replies": [
                    reply.model_dump(mode="json")
                    for reply in svc["reply_store"].list_for_email(email.id)
                ],
            }
            for email in emails
        ]

    return {"emails": await asyncio.to_thread(load)}


@router.patch("/replies/{reply_id}")
async def tag_reply(
    reply_id: str,
    payload: OutcomeTagRequest,
    request: Request,
    user_id: str = Depends(current_user),
) -> dict[str, Any]:
    """Assign an outcome tag to one of the current user's replies."""
    store = _services(request)["reply_store"]
    await asyncio.to_thread(store.set_outcome_tag, reply_id, user_id, payload.outcome_tag)
    return {"success": True, "replyId": reply_id, "outcomeTag": payload.outcome_tag.value}


# ---------------------------------------------------------------------------
# Job trigger
# ---------------------------------------------------------------------------


@router.post("/jobs/reply-poller")
async def trigger_reply_poller(
    request: Request,
    x_job_token: str | None = Header(default=None),
) -> dict[str, Any]:
    """Run one reply reconciliation pass.

    When ``JOB_TRIGGER_TOKEN`` is configured the caller must present it in
    the ``X-Job-Token`` header.  Without one the trigger is open in
    development and refused in production.
    """
    settings = request.app.state.settings
    expected = settings.job_trigger_token.get_secret_value()
    if not expected and settings.production:
        logger.error("job_trigger_unconfigured")
        raise HTTPException(status_code=403, detail="Job trigger is not configured")
    if expected and not hmac.compare_digest(expected, x_job_token or ""):
        logger.warning("job_trigger_rejected")
        raise HTTPException(status_code=401, detail="Invalid job token")

    poller = _services(request)["reply_poller"]
    result = await asyncio.to_thread(poller.run)
    return {
        "success": True,
        "repliesRecorded": result.replies_recorded,
        "usersProcessed": result.users_processed,
        "usersSkipped": result.users_skipped,
        "threadsFailed": result.threads_failed,
    }


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def status_for(exc: OutreachError) -> int:
    """Map a domain error to the HTTP status returned to the caller."""
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, (MissingRefreshToken, JobAlreadyRunning, InvalidTransitionError)):
        return 409
    if isinstance(exc, (ConfigurationError, DeliveryNotRecorded)):
        return 500
    # Provider, credential, and drafting failures
    return 502


async def outreach_error_handler(request: Request, exc: OutreachError) -> JSONResponse:
    """Render an ``OutreachError`` as ``{"success": false, "error": ...}``."""
    status = status_for(exc)
    content: dict[str, Any] = {"success": False, "error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, DeliveryNotRecorded):
        content["messageId"] = exc.provider_message_id
        content["threadId"] = exc.provider_thread_id

    log = logger.error if status >= 500 else logger.warning
    log("request_failed", path=request.url.path, status=status, error_type=type(exc).__name__)
    return JSONResponse(status_code=status, content=content)


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain error handler on *app*."""
    app.add_exception_handler(OutreachError, outreach_error_handler)  # type: ignore[arg-type]
