"""
auth/oauth.py -- Social sign-in providers (authlib Starlette client).

A provider is registered at import time only if both its client ID and
secret are configured; get_enabled_providers() reports the same set, and the
sign-in page and /api/auth/providers are built from it.

Only GitHub is supported, via the authorization code flow against fixed
endpoints. The state value travels in the Starlette session cookie between
the authorize redirect and the callback; authlib checks it.

get_oauth_profile() refuses any GitHub account without a primary, verified
email. Sign-in links accounts by email, so an address GitHub has not
confirmed would let its holder take over an existing user.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import OAuthProfile
from core.config import get_settings

logger = logging.getLogger("betterdemo.auth.oauth")

_PROVIDER_LABELS = {"github": "GitHub"}

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

# GitHub -- static endpoints (no OIDC discovery document)
if _cfg.github_client_id and _cfg.github_client_secret:
    oauth.register(
        name="github",
        client_id=_cfg.github_client_id,
        client_secret=_cfg.github_client_secret,
        access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user user:email"},
    )
    logger.info("GitHub OAuth provider registered")


def get_enabled_providers() -> list[dict]:
    """Return {"name", "label"} for every configured OAuth provider."""
    cfg = get_settings()
    providers: list[dict] = []
    if cfg.github_client_id and cfg.github_client_secret:
        providers.append({"name": "github", "label": _PROVIDER_LABELS["github"]})
    return providers


def is_provider_enabled(provider: str) -> bool:
    return provider in {p["name"] for p in get_enabled_providers()}


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def get_oauth_profile(client, provider: str, token: dict) -> OAuthProfile:
    """Build an OAuthProfile from a provider token response.

    Args:
        client:   The authlib OAuth client for this provider.
        provider: Provider name ("github").
        token:    The token dict returned by authlib after code exchange.

    Raises:
        ValueError: If the provider is unknown or a verified email cannot be
            confirmed.
    """
    if provider == "github":
        return await _get_github_profile(client, token)
    raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_profile(client, token: dict) -> OAuthProfile:
    """Extract the GitHub profile.

    GitHub does not include the email in the access token. Two API calls are
    required:
      1. GET /user -- numeric user ID (stable subject), display name, avatar.
      2. GET /user/emails -- to find the primary verified email.

    Only the email where both primary=true AND verified=true is accepted.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()

    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()
    emails = emails_resp.json()

    email: str | None = None
    for entry in emails:
        if entry.get("primary") and entry.get("verified"):
            email = entry["email"]
            break

    if not email:
        raise ValueError(
            "GitHub OAuth: no primary verified email found. "
            "The user must verify their email address on GitHub before signing in."
        )

    return OAuthProfile(
        provider="github",
        subject=str(profile["id"]),
        email=email,
        email_verified=True,
        name=profile.get("name") or profile.get("login"),
        image=profile.get("avatar_url"),
        access_token=token.get("access_token"),
        scope=token.get("scope"),
    )
