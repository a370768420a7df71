"""Google OAuth2 authorization-code and refresh-token grants.

Provides helpers for:
- Building the consent URL (offline access, forced re-consent)
- Exchanging an authorization code for access + refresh tokens
- Exchanging a stored refresh token for a fresh access token

All token endpoint calls go through ``httpx`` with a bounded timeout.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from outreach.domain.errors import MissingRefreshToken, RefreshRevoked, TokenExchangeError
from outreach.resilience.retry import resilient_api_call

logger = structlog.get_logger()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

DEFAULT_GMAIL_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]

DEFAULT_TIMEOUT_SECONDS = 30.0


class TokenPair(BaseModel):
    """Tokens issued by a successful authorization-code exchange."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
    state: str | None = None,
) -> str:
    """Build the Google consent URL.

    Requests offline access and forces the consent screen so a refresh
    token is issued even to a user who consented before.

    Args:
        client_id: OAuth client ID.
        redirect_uri: Registered redirect URI receiving the code.
        scopes: Scopes to request.  Defaults to ``DEFAULT_GMAIL_SCOPES``.
        state: Opaque value echoed back to the redirect URI.

    Returns:
        The authorization URL.
    """
    if scopes is None:
        scopes = DEFAULT_GMAIL_SCOPES

    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "access_type": "offline",
        "prompt": "consent",
    }
    if state is not None:
        params["state"] = state
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def _post_token_request(
    data: dict[str, str],
    http_client: httpx.Client | None,
    timeout: float,
) -> httpx.Response:
    """POST a form-encoded grant to the token endpoint.

    Raises:
        TokenExchangeError: On network failure or timeout (``status=None``).
    """
    try:
        if http_client is not None:
            return http_client.post(GOOGLE_TOKEN_URL, data=data, timeout=timeout)
        with httpx.Client(timeout=timeout) as client:
            return client.post(GOOGLE_TOKEN_URL, data=data)
    except httpx.HTTPError as exc:
        raise TokenExchangeError(None, str(exc)) from exc


def _error_code(response: httpx.Response) -> str:
    """Extract the OAuth ``error`` field from a failed token response."""
    try:
        payload: Any = response.json()
    except ValueError:
        return ""
    if isinstance(payload, dict):
        return str(payload.get("error", ""))
    return ""


def _token_payload(response: httpx.Response) -> dict[str, Any]:
    """Parse a successful token response body.

    Raises:
        TokenExchangeError: If the body is not a JSON object.
    """
    try:
        payload: Any = response.json()
    except ValueError as exc:
        raise TokenExchangeError(response.status_code, response.text) from exc
    if not isinstance(payload, dict):
        raise TokenExchangeError(response.status_code, response.text)
    return payload


def exchange_code_for_tokens(
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    *,
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> TokenPair:
    """Exchange an authorization code for access and refresh tokens.

    One-shot: an authorization code is single-use, so this is never retried.

    Args:
        code: The authorization code from the redirect.
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        redirect_uri: The redirect URI used to obtain *code*.
        http_client: Optional pre-configured ``httpx.Client``.
        timeout: Request timeout in seconds.

    Returns:
        A ``TokenPair`` with both tokens.

    Raises:
        TokenExchangeError: On transport failure, a non-2xx response, or a
            body that is not a JSON object.
        MissingRefreshToken: When the provider omits the refresh token.
    """
    response = _post_token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        },
        http_client,
        timeout,
    )

    if not response.is_success:
        logger.error(
            "google_token_exchange_failed",
            status=response.status_code,
            error=_error_code(response),
        )
        raise TokenExchangeError(response.status_code, response.text)

    tokens = _token_payload(response)
    refresh_token = tokens.get("refresh_token")
    if not refresh_token:
        raise MissingRefreshToken()

    return TokenPair(access_token=tokens.get("access_token", ""), refresh_token=refresh_token)


@resilient_api_call("google_oauth_refresh")
def refresh_access_token(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    *,
    http_client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Exchange a stored refresh token for a short-lived access token.

    Args:
        refresh_token: The decrypted refresh token.
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        http_client: Optional pre-configured ``httpx.Client``.
        timeout: Request timeout in seconds.

    Returns:
        A fresh access token.

    Raises:
        RefreshRevoked: When the provider answers ``invalid_grant`` (the
            user revoked access or the token expired).
        TokenExchangeError: On transport failure or any other non-2xx
            response.
    """
    response = _post_token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        http_client,
        timeout,
    )

    if not response.is_success:
        error = _error_code(response)
        if error == "invalid_grant":
            raise RefreshRevoked("Google rejected the stored refresh token (invalid_grant)")
        raise TokenExchangeError(response.status_code, response.text)

    payload = _token_payload(response)
    access_token = payload.get("access_token")
    if not access_token:
        raise TokenExchangeError(response.status_code, "Token response has no access_token")
    return str(access_token)
