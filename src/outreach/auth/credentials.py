"""Per-user Gmail OAuth2 credential management.

Provides helpers for:
- Running the consent flow and storing the sealed refresh token
- Turning a stored refresh token into a fresh access token
- Building the Gmail API service client for an access token
"""

from __future__ import annotations

import json
from collections.abc import Callable

import httplib2
import httpx
import structlog
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import Resource, build

from outreach.auth.oauth import (
    DEFAULT_GMAIL_SCOPES,
    DEFAULT_TIMEOUT_SECONDS,
    build_authorization_url,
    exchange_code_for_tokens,
    refresh_access_token,
)
from outreach.auth.vault import open_sealed, seal
from outreach.config import Settings
from outreach.domain.errors import ConfigurationError, CredentialNotFound, RefreshRevoked
from outreach.email.client import GmailClient
from outreach.state.store import CredentialStore

logger = structlog.get_logger()


def build_gmail_service(
    access_token: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Resource:
    """Build a Gmail API v1 service client authorized by *access_token*.

    The underlying ``httplib2.Http`` carries *timeout* so every Gmail call
    made through the service is bounded.

    Args:
        access_token: A short-lived OAuth2 access token.
        timeout: Socket timeout in seconds for each API call.

    Returns:
        A ``googleapiclient.discovery.Resource`` for the Gmail API v1.
    """
    credentials = Credentials(token=access_token)  # type: ignore[no-untyped-call]
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("gmail", "v1", http=http, cache_discovery=False)


def gmail_client_factory(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Callable[[str], GmailClient]:
    """Return a callable that builds a ``GmailClient`` for an access token."""

    def factory(access_token: str) -> GmailClient:
        return GmailClient(build_gmail_service(access_token, timeout=timeout))

    return factory


class GmailCredentialService:
    """Acquire, store, and refresh a user's Gmail credential.

    The refresh token is only ever persisted sealed (see ``auth.vault``).
    Missing configuration is reported as ``ConfigurationError`` by the
    first operation that needs the value.

    Args:
        store: Credential persistence.
        encryption_key: Process-wide secret used to seal refresh tokens.
        client_id: Google OAuth client ID.
        client_secret: Google OAuth client secret.
        redirect_uri: Registered OAuth redirect URI.
        http_client: Optional ``httpx.Client`` for the token endpoint.
        timeout: Timeout in seconds for token endpoint calls.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        encryption_key: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._encryption_key = encryption_key
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http_client = http_client
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls,
        store: CredentialStore,
        settings: Settings,
        http_client: httpx.Client | None = None,
    ) -> GmailCredentialService:
        """Create a service from application settings."""
        return cls(
            store,
            encryption_key=settings.encryption_key.get_secret_value(),
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret.get_secret_value(),
            redirect_uri=settings.redirect_uri,
            http_client=http_client,
            timeout=settings.http_timeout_seconds,
        )

    def _require(self, **values: str) -> None:
        missing = [name.upper() for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")

    def authorization_url(self, user_id: str) -> str:
        """Return the consent URL for *user_id*, carrying the user in ``state``."""
        self._require(google_client_id=self._client_id, redirect_uri=self._redirect_uri)
        return build_authorization_url(
            self._client_id,
            self._redirect_uri,
            DEFAULT_GMAIL_SCOPES,
            state=json.dumps({"userId": user_id}),
        )

    def connect(self, user_id: str, code: str) -> None:
        """Exchange *code* and store the sealed refresh token for *user_id*.

        Re-consent overwrites the existing credential and clears any
        revocation mark.

        Raises:
            ConfigurationError: If OAuth or encryption settings are missing.
            MissingRefreshToken: If Google did not issue a refresh token.
            TokenExchangeError: On token endpoint failure.
        """
        self._require(
            google_client_id=self._client_id,
            google_client_secret=self._client_secret,
            redirect_uri=self._redirect_uri,
            encryption_key=self._encryption_key,
        )
        tokens = exchange_code_for_tokens(
            code,
            self._client_id,
            self._client_secret,
            self._redirect_uri,
            http_client=self._http_client,
            timeout=self._timeout,
        )
        self._store.upsert(user_id, seal(tokens.refresh_token, self._encryption_key))
        logger.info("gmail_account_connected", user_id=user_id)

    def access_token_for(self, user_id: str) -> str:
        """Return a fresh access token for *user_id*.

        Raises:
            CredentialNotFound: If no usable credential is stored.
            DecryptionFailure: If the stored blob cannot be opened.
            RefreshRevoked: If Google rejected the refresh token; the stored
                credential is marked revoked before re-raising.
            TokenExchangeError: On token endpoint failure.
        """
        self._require(
            google_client_id=self._client_id,
            google_client_secret=self._client_secret,
            encryption_key=self._encryption_key,
        )
        credential = self._store.get(user_id)
        if credential is None or credential.is_revoked:
            raise CredentialNotFound(user_id)

        refresh_token = open_sealed(credential.encrypted_refresh_token, self._encryption_key)
        try:
            return refresh_access_token(
                refresh_token,
                self._client_id,
                self._client_secret,
                http_client=self._http_client,
                timeout=self._timeout,
            )
        except RefreshRevoked:
            self._store.mark_revoked(user_id)
            logger.warning("gmail_credential_revoked", user_id=user_id)
            raise
