"""Tests for session tokens and the current-user dependency."""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from outreach.auth.identity import SessionTokenSigner, current_user

SECRET = "session-secret"


class TestSessionTokenSigner:
    """Issue/verify behavior."""

    def test_issued_token_identifies_user(self) -> None:
        signer = SessionTokenSigner(SECRET)
        assert signer.identify(signer.issue("user-1")) == "user-1"

    def test_user_id_with_dots(self) -> None:
        signer = SessionTokenSigner(SECRET)
        assert signer.identify(signer.issue("jane.doe@example.com")) == "jane.doe@example.com"

    def test_tampered_user_id_is_rejected(self) -> None:
        signer = SessionTokenSigner(SECRET)
        _, signature = signer.issue("user-1").rsplit(".", 1)
        assert signer.identify(f"user-2.{signature}") is None

    def test_token_from_other_secret_is_rejected(self) -> None:
        token = SessionTokenSigner("other-secret").issue("user-1")
        assert SessionTokenSigner(SECRET).identify(token) is None

    @pytest.mark.parametrize("token", ["", "no-signature", ".abc", "user-1."])
    def test_malformed_tokens_are_rejected(self, token: str) -> None:
        assert SessionTokenSigner(SECRET).identify(token) is None

    def test_empty_secret_is_refused(self) -> None:
        with pytest.raises(ValueError):
            SessionTokenSigner("")


def _app(identity: SessionTokenSigner | None) -> FastAPI:
    app = FastAPI()
    app.state.identity = identity

    @app.get("/whoami")
    async def whoami(user_id: str = Depends(current_user)) -> dict[str, str]:
        return {"user_id": user_id}

    return app


class TestCurrentUser:
    """FastAPI dependency."""

    def test_valid_bearer_token(self) -> None:
        signer = SessionTokenSigner(SECRET)
        client = TestClient(_app(signer))

        response = client.get(
            "/whoami", headers={"Authorization": f"Bearer {signer.issue('user-1')}"}
        )

        assert response.status_code == 200
        assert response.json() == {"user_id": "user-1"}

    def test_missing_header_is_401(self) -> None:
        client = TestClient(_app(SessionTokenSigner(SECRET)))
        assert client.get("/whoami").status_code == 401

    def test_wrong_scheme_is_401(self) -> None:
        signer = SessionTokenSigner(SECRET)
        client = TestClient(_app(signer))
        response = client.get("/whoami", headers={"Authorization": f"Basic {signer.issue('u')}"})
        assert response.status_code == 401

    def test_invalid_token_is_401(self) -> None:
        client = TestClient(_app(SessionTokenSigner(SECRET)))
        response = client.get("/whoami", headers={"Authorization": "Bearer user-1.deadbeef"})
        assert response.status_code == 401

    def test_unconfigured_provider_is_401(self) -> None:
        client = TestClient(_app(None))
        response = client.get("/whoami", headers={"Authorization": "Bearer user-1.sig"})
        assert response.status_code == 401
