"""Authentication: credential sealing, Google OAuth, and user identity."""

from outreach.auth.credentials import (
    GmailCredentialService,
    build_gmail_service,
    gmail_client_factory,
)
from outreach.auth.identity import IdentityProvider, SessionTokenSigner, current_user
from outreach.auth.oauth import (
    DEFAULT_GMAIL_SCOPES,
    TokenPair,
    build_authorization_url,
    exchange_code_for_tokens,
    refresh_access_token,
)
from outreach.auth.vault import open_sealed, seal

__all__ = [
    "DEFAULT_GMAIL_SCOPES",
    "GmailCredentialService",
    "IdentityProvider",
    "SessionTokenSigner",
    "TokenPair",
    "build_authorization_url",
    "build_gmail_service",
    "current_user",
    "exchange_code_for_tokens",
    "gmail_client_factory",
    "open_sealed",
    "refresh_access_token",
    "seal",
]
