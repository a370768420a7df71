"""Anthropic client factory and model configuration for email drafting."""

from anthropic import Anthropic

COMPOSE_MODEL = "claude-sonnet-4-5-20250929"

# Configuration constants
DRAFT_MAX_TOKENS = 500
DRAFT_TEMPERATURE = 0.7


def get_anthropic_client(api_key: str | None = None) -> Anthropic:
    """Create an Anthropic client.

    When *api_key* is empty the ``Anthropic()`` constructor reads
    ANTHROPIC_API_KEY from the environment.

    Returns:
        Configured Anthropic client instance.
    """
    if api_key:
        return Anthropic(api_key=api_key)
    return Anthropic()
