"""Draft cold-outreach and follow-up emails with the Claude API.

The model is asked for a JSON object with ``subject`` and ``body``.  When it
answers in prose instead, the subject is taken from a ``Subject:`` line and
the rest becomes the body.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from anthropic import Anthropic, APIError

from outreach.domain.errors import DraftingError
from outreach.domain.models import DraftEmail
from outreach.llm.client import COMPOSE_MODEL, DRAFT_MAX_TOKENS, DRAFT_TEMPERATURE
from outreach.llm.prompts import COLD_EMAIL_PROMPT, DRAFT_SYSTEM_PROMPT, FOLLOW_UP_PROMPT

logger = structlog.get_logger()

DEFAULT_SUBJECT = "Cold Outreach"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")
_SUBJECT_RE = re.compile(r"^\W*subject\W*:?\s*", re.IGNORECASE)
_BODY_RE = re.compile(r"^\W*body\W*:?\s*", re.IGNORECASE)


def build_prompt(
    campaign_goal: str,
    audience: str,
    thread_context: str | None = None,
    user_notes: str | None = None,
) -> str:
    """Return the follow-up prompt when both thread context and notes are given.

    Otherwise the cold-email prompt is used.
    """
    if thread_context and user_notes:
        return FOLLOW_UP_PROMPT.format(
            campaign_goal=campaign_goal,
            audience=audience,
            thread_context=thread_context,
            user_notes=user_notes,
        )
    return COLD_EMAIL_PROMPT.format(campaign_goal=campaign_goal, audience=audience)


def parse_draft(text: str) -> DraftEmail:
    """Turn model output into a ``DraftEmail``.

    Args:
        text: Raw model output, ideally a JSON object.

    Returns:
        The parsed draft.

    Raises:
        DraftingError: If *text* contains no usable content.
    """
    stripped = _FENCE_RE.sub("", text.strip())
    if not stripped:
        raise DraftingError("Drafting model returned no content")

    try:
        payload: Any = json.loads(stripped)
    except json.JSONDecodeError:
        payload = None

    if isinstance(payload, dict) and ("subject" in payload or "body" in payload):
        return DraftEmail(
            subject=str(payload.get("subject") or DEFAULT_SUBJECT).strip(),
            body=str(payload.get("body") or "").strip(),
        )

    lines = stripped.splitlines()
    subject = DEFAULT_SUBJECT
    body_lines = lines
    for index, line in enumerate(lines):
        if "subject" in line.lower():
            subject = _SUBJECT_RE.sub("", line).strip() or DEFAULT_SUBJECT
            body_lines = lines[index + 1 :]
            break

    body = "\n".join(body_lines).strip()
    body = _BODY_RE.sub("", body, count=1).strip()
    if not body:
        raise DraftingError("Drafting model returned a subject but no body")
    return DraftEmail(subject=subject, body=body)


def compose_draft(
    campaign_goal: str,
    audience: str,
    client: Anthropic,
    thread_context: str | None = None,
    user_notes: str | None = None,
    model: str = COMPOSE_MODEL,
) -> DraftEmail:
    """Draft an outreach email with the Claude API.

    Args:
        campaign_goal: What the campaign is trying to achieve.
        audience: Who the email is for.
        client: Configured Anthropic client instance.
        thread_context: The thread so far, for a follow-up.
        user_notes: The user's notes on the reply, for a follow-up.
        model: Model ID to use.  Defaults to COMPOSE_MODEL.

    Returns:
        The drafted subject and body.

    Raises:
        DraftingError: If the API call fails or returns nothing usable.
    """
    prompt = build_prompt(campaign_goal, audience, thread_context, user_notes)
    follow_up = bool(thread_context and user_notes)

    try:
        response = client.messages.create(
            model=model,
            max_tokens=DRAFT_MAX_TOKENS,
            temperature=DRAFT_TEMPERATURE,
            system=DRAFT_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
    except APIError as exc:
        logger.error("draft_generation_failed", error=str(exc))
        raise DraftingError(f"Drafting model call failed: {exc}") from exc

    text = "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )
    draft = parse_draft(text)
    logger.info(
        "draft_generated",
        follow_up=follow_up,
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
    )
    return draft
