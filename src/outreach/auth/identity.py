"""Current-user identity for the interactive endpoints.

Bearer tokens have the form ``<user_id>.<hex HMAC-SHA256 of user_id>``,
signed with ``SESSION_SECRET``.  The background reply poller never goes
through this module; it enumerates users from the datastore instead.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Protocol

import structlog
from fastapi import HTTPException, Request

logger = structlog.get_logger()


class IdentityProvider(Protocol):
    """Resolve a presented credential to an authenticated user ID."""

    def identify(self, token: str) -> str | None:
        """Return the user ID for *token*, or ``None`` if it is not valid."""
        ...


class SessionTokenSigner:
    """Issue and verify HMAC-signed session tokens.

    Args:
        secret: The signing secret.  Must not be empty.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("session secret must not be empty")
        self._secret = secret.encode()

    def _sign(self, user_id: str) -> str:
        return hmac.new(self._secret, user_id.encode(), hashlib.sha256).hexdigest()

    def issue(self, user_id: str) -> str:
        """Return a bearer token identifying *user_id*."""
        if not user_id:
            raise ValueError("user_id must not be empty")
        return f"{user_id}.{self._sign(user_id)}"

    def identify(self, token: str) -> str | None:
        """Verify *token* and return its user ID, or ``None`` if tampered."""
        user_id, sep, signature = token.rpartition(".")
        if not sep or not user_id or not signature:
            return None
        if not hmac.compare_digest(self._sign(user_id), signature):
            return None
        return user_id


def current_user(request: Request) -> str:
    """FastAPI dependency returning the authenticated user ID.

    Reads ``Authorization: Bearer <token>`` and resolves it through the
    ``IdentityProvider`` stored on ``app.state.identity``.

    Raises:
        HTTPException: 401 when the header is missing or the token is invalid.
    """
    provider: IdentityProvider | None = getattr(request.app.state, "identity", None)
    if provider is None:
        logger.error("identity_provider_not_configured")
        raise HTTPException(status_code=401, detail="Authentication is not configured")

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")

    user_id = provider.identify(token.strip())
    if user_id is None:
        logger.warning("invalid_session_token")
        raise HTTPException(status_code=401, detail="Invalid session token")
    return user_id
