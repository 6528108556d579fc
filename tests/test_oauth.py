"""
tests/test_oauth.py -- Federated (Google) login: token parsing and the callback route.

The provider is never contacted: app.state.oauth is replaced with a mock
registry whose client returns canned token responses.

Coverage:
  - profile_from_token(): verified profile accepted; missing/unverified rejected
  - build_oauth(): Google registered only when client id and secret are set
  - GET /auth/google: redirects to /auth/login when Google is not configured
  - GET /auth/google/callback: failures redirect to /auth/login; success links
    the existing account, sets the session cookie, and redirects to the app
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from authlib.integrations.starlette_client import OAuthError
from conftest import Harness
from fastapi.responses import RedirectResponse

from api.main import app
from auth.oauth import GOOGLE, build_oauth, profile_from_token
from core.config import Settings, get_settings


def _token(**userinfo) -> dict:
    claims = {"sub": "google-123", "email": "a@b.com", "email_verified": True}
    claims.update(userinfo)
    return {"access_token": "x", "userinfo": claims}


def _install_client(harness: Harness, token=None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.authorize_access_token = AsyncMock(return_value=token, side_effect=error)
    client.authorize_redirect = AsyncMock(
        return_value=RedirectResponse("https://accounts.google.com/o/oauth2/auth", status_code=302)
    )
    registry = MagicMock()
    registry.create_client.return_value = client
    app.state.oauth = registry
    return client


class TestProfileFromToken:
    def test_verified_profile(self) -> None:
        profile = profile_from_token(_token())
        assert (profile.subject, profile.email) == ("google-123", "a@b.com")

    @pytest.mark.parametrize(
        "token",
        [
            None,
            {},
            _token(email_verified=False),
            _token(email=None),
            _token(sub=None),
        ],
    )
    def test_rejected(self, token) -> None:
        with pytest.raises(ValueError):
            profile_from_token(token)


class TestBuildOAuth:
    def test_disabled_without_credentials(self) -> None:
        oauth = build_oauth(Settings(debug=True, google_client_id="", google_client_secret=""))
        assert oauth.create_client(GOOGLE) is None

    def test_registered_with_credentials(self) -> None:
        oauth = build_oauth(Settings(debug=True, google_client_id="id", google_client_secret="secret"))
        assert oauth.create_client(GOOGLE) is not None


class TestGoogleRoutes:
    def test_login_without_provider_redirects_to_login(self, harness: Harness) -> None:
        resp = harness.client.get("/auth/google")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login"

    def test_login_redirects_to_provider(self, harness: Harness) -> None:
        client = _install_client(harness)
        resp = harness.client.get("/auth/google")
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("https://accounts.google.com/")
        redirect_uri = client.authorize_redirect.await_args.args[1]
        assert redirect_uri.endswith("/auth/google/callback")

    def test_callback_oauth_error_redirects_to_login(self, harness: Harness) -> None:
        _install_client(harness, error=OAuthError(error="access_denied"))
        resp = harness.client.get("/auth/google/callback")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login"

    def test_callback_unverified_email_redirects_to_login(self, harness: Harness) -> None:
        _install_client(harness, token=_token(email_verified=False))
        resp = harness.client.get("/auth/google/callback")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/login"
        assert harness.user_store.find_by_email("a@b.com") is None

    def test_callback_links_account_and_opens_session(self, harness: Harness) -> None:
        uid = harness.create_user("a@b.com")
        _install_client(harness, token=_token())

        resp = harness.client.get("/auth/google/callback")

        assert resp.status_code == 302
        assert resp.headers["location"] == get_settings().post_login_redirect_url
        assert harness.user_store.find_by_id(uid).google_id == "google-123"
        check = harness.client.get("/auth/checkAuthentication")
        assert check.status_code == 200
        assert check.json()["id"] == uid

    def test_callback_twice_yields_one_user(self, harness: Harness) -> None:
        _install_client(harness, token=_token(email="new@b.com"))

        harness.client.get("/auth/google/callback")
        harness.client.get("/auth/google/callback")

        user = harness.user_store.find_by_federated_id("google-123")
        assert user is not None
        assert user.email == "new@b.com"
        assert harness.user_store.find_by_email("new@b.com").id == user.id
