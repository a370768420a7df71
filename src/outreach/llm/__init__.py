"""LLM-powered drafting of outreach emails."""

from outreach.llm.client import COMPOSE_MODEL, get_anthropic_client
from outreach.llm.drafter import build_prompt, compose_draft, parse_draft

__all__ = [
    "COMPOSE_MODEL",
    "build_prompt",
    "compose_draft",
    "get_anthropic_client",
    "parse_draft",
]
