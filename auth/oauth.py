"""
auth/oauth.py -- Authlib OAuth/OIDC configuration for federated (Google) login.

build_oauth() returns a fresh authlib registry. The app lifespan builds one
and stores it on app.state.oauth; nothing is registered at import time, so
tests can swap in a mock registry without touching module globals.

Security notes:
  Email verification is mandatory. profile_from_token() raises ValueError
  if the provider does not confirm the email is verified. An unverified
  email could belong to someone who typed a victim's address into their
  provider account, and linking it would hand them the victim's queryhub
  account.

  The OAuth state parameter (CSRF protection) is handled by authlib via
  Starlette SessionMiddleware. The session stores the state between the
  authorization redirect and the callback.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import FederatedProfile
from core.config import Settings

logger = logging.getLogger("queryhub.auth.oauth")

GOOGLE = "google"
GOOGLE_SCOPES = "openid email profile"


def build_oauth(settings: Settings) -> OAuth:
    """Return an OAuth registry with Google registered when it is configured."""
    oauth = OAuth()
    if settings.google_enabled:
        oauth.register(
            name=GOOGLE,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": GOOGLE_SCOPES},
        )
        logger.info("Google OAuth provider registered")
    else:
        logger.info("Google OAuth not configured; federated login disabled")
    return oauth


def profile_from_token(token: dict | None) -> FederatedProfile:
    """Extract a verified (subject, email) profile from a Google token response.

    Google returns an id_token whose claims authlib parses into
    token["userinfo"]: sub, email, email_verified.

    Raises:
        ValueError: If no userinfo was returned, the email is unverified,
            or either claim is missing.
    """
    userinfo = (token or {}).get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(
            "google OAuth: email is not verified. "
            "The provider must confirm email ownership before login is allowed."
        )

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError("google OAuth: missing email or sub claim in userinfo")

    return FederatedProfile(subject=str(subject), email=email)
