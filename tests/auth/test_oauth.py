"""Tests for the Google OAuth2 grants.

The token endpoint is simulated with ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from outreach.auth.oauth import (
    DEFAULT_GMAIL_SCOPES,
    GOOGLE_AUTH_URL,
    GOOGLE_TOKEN_URL,
    build_authorization_url,
    exchange_code_for_tokens,
    refresh_access_token,
)
from outreach.domain.errors import MissingRefreshToken, RefreshRevoked, TokenExchangeError

CLIENT_ID = "client-id.apps.googleusercontent.com"
CLIENT_SECRET = "client-secret"
REDIRECT_URI = "https://app.example.com/auth/callback/google"


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    requests: list[httpx.Request] | None = None,
) -> httpx.Client:
    """Build an httpx.Client whose transport records requests and calls *handler*."""

    def recording(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return httpx.Client(transport=httpx.MockTransport(recording))


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# ---------------------------------------------------------------------------
# build_authorization_url
# ---------------------------------------------------------------------------


class TestBuildAuthorizationUrl:
    """Consent URL construction."""

    def test_requests_offline_access_and_forced_consent(self) -> None:
        url = build_authorization_url(CLIENT_ID, REDIRECT_URI)
        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        assert url.startswith(GOOGLE_AUTH_URL)
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["response_type"] == ["code"]
        assert params["client_id"] == [CLIENT_ID]
        assert params["redirect_uri"] == [REDIRECT_URI]

    def test_default_scopes(self) -> None:
        params = parse_qs(urlparse(build_authorization_url(CLIENT_ID, REDIRECT_URI)).query)
        assert params["scope"] == [" ".join(DEFAULT_GMAIL_SCOPES)]

    def test_state_is_included_when_given(self) -> None:
        state = json.dumps({"userId": "user-1"})
        url = build_authorization_url(CLIENT_ID, REDIRECT_URI, state=state)
        params = parse_qs(urlparse(url).query)
        assert json.loads(params["state"][0]) == {"userId": "user-1"}

    def test_is_deterministic(self) -> None:
        assert build_authorization_url(CLIENT_ID, REDIRECT_URI) == build_authorization_url(
            CLIENT_ID, REDIRECT_URI
        )


# ---------------------------------------------------------------------------
# exchange_code_for_tokens
# ---------------------------------------------------------------------------


class TestExchangeCodeForTokens:
    """Authorization-code grant."""

    def test_returns_both_tokens(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(
            lambda _r: httpx.Response(
                200, json={"access_token": "ya29.access", "refresh_token": "1//refresh"}
            ),
            requests,
        )

        tokens = exchange_code_for_tokens(
            "auth-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=client
        )

        assert tokens.access_token == "ya29.access"
        assert tokens.refresh_token == "1//refresh"
        assert str(requests[0].url) == GOOGLE_TOKEN_URL
        form = _form(requests[0])
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"
        assert form["redirect_uri"] == REDIRECT_URI

    def test_missing_refresh_token_is_distinct_error(self) -> None:
        client = _client(lambda _r: httpx.Response(200, json={"access_token": "ya29.access"}))

        with pytest.raises(MissingRefreshToken):
            exchange_code_for_tokens(
                "auth-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=client
            )

    def test_non_2xx_is_token_exchange_error(self) -> None:
        client = _client(lambda _r: httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(TokenExchangeError) as exc_info:
            exchange_code_for_tokens(
                "used-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=client
            )

        assert exc_info.value.status == 400
        assert "invalid_grant" in exc_info.value.body

    def test_server_error_is_not_retried(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda _r: httpx.Response(503, text="unavailable"), requests)

        with pytest.raises(TokenExchangeError):
            exchange_code_for_tokens(
                "auth-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=client
            )
        assert len(requests) == 1

    def test_network_failure_has_no_status(self) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TokenExchangeError) as exc_info:
            exchange_code_for_tokens(
                "auth-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=_client(boom)
            )
        assert exc_info.value.status is None

    def test_non_json_success_body_is_token_exchange_error(self) -> None:
        client = _client(lambda _r: httpx.Response(200, text="<html>captive portal</html>"))

        with pytest.raises(TokenExchangeError) as exc_info:
            exchange_code_for_tokens(
                "auth-code", CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, http_client=client
            )
        assert exc_info.value.status == 200
        assert "captive portal" in exc_info.value.body


# ---------------------------------------------------------------------------
# refresh_access_token
# ---------------------------------------------------------------------------


class TestRefreshAccessToken:
    """Refresh-token grant."""

    def test_returns_access_token(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(
            lambda _r: httpx.Response(200, json={"access_token": "ya29.fresh", "expires_in": 3599}),
            requests,
        )

        token = refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)

        assert token == "ya29.fresh"
        form = _form(requests[0])
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "1//refresh"
        assert requests[0].headers["content-type"] == "application/x-www-form-urlencoded"

    def test_invalid_grant_is_refresh_revoked_without_retry(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(
            lambda _r: httpx.Response(
                400, json={"error": "invalid_grant", "error_description": "Token has been revoked."}
            ),
            requests,
        )

        with pytest.raises(RefreshRevoked):
            refresh_access_token("1//revoked", CLIENT_ID, CLIENT_SECRET, http_client=client)
        assert len(requests) == 1

    def test_other_client_error_is_not_retried(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda _r: httpx.Response(401, json={"error": "invalid_client"}), requests)

        with pytest.raises(TokenExchangeError) as exc_info:
            refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)
        assert exc_info.value.status == 401
        assert len(requests) == 1

    def test_server_error_is_retried_then_succeeds(self, no_retry_wait: None) -> None:
        responses = iter(
            [
                httpx.Response(503, text="unavailable"),
                httpx.Response(200, json={"access_token": "ya29.second-try"}),
            ]
        )
        client = _client(lambda _r: next(responses))

        token = refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)

        assert token == "ya29.second-try"

    def test_gives_up_after_three_attempts(self, no_retry_wait: None) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda _r: httpx.Response(500, text="error"), requests)

        with pytest.raises(TokenExchangeError):
            refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)
        assert len(requests) == 3

    def test_missing_access_token_in_response(self) -> None:
        client = _client(lambda _r: httpx.Response(200, json={"token_type": "Bearer"}))

        with pytest.raises(TokenExchangeError):
            refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)

    def test_non_json_success_body_is_not_retried(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda _r: httpx.Response(200, text="not json"), requests)

        with pytest.raises(TokenExchangeError) as exc_info:
            refresh_access_token("1//refresh", CLIENT_ID, CLIENT_SECRET, http_client=client)
        assert exc_info.value.status == 200
        assert len(requests) == 1
