"""
api/routes/auth.py -- JSON authentication API consumed by auth.client.AuthClient.

Routes (mounted under /api/auth):
  GET  /get-session      -- current session payload, or null
  POST /sign-in/email    -- password sign-in; sets session cookie
  POST /sign-up/email    -- register + sign in; sets session cookie
  POST /sign-in/social   -- start OAuth; returns the provider authorization URL
  POST /sign-out         -- delete the session; clears cookie
  GET  /providers        -- list enabled OAuth providers (public)

Security:
  Sign-in and sign-up are rate-limited per IP (AUTH_RATE_LIMIT).
  AuthService.sign_in_email() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a session token.
  callbackURL is reduced to a same-site relative path before it is echoed back.

Errors raised by AuthService (AuthError) are turned into the standard error
envelope by the exception handler in api/main.py.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import (
    OAuthProviderInfo,
    SessionResponse,
    SignInEmailRequest,
    SignInResponse,
    SignOutResponse,
    SignUpEmailRequest,
    SocialSignInRequest,
    SocialSignInResponse,
    SignUpResponse,
    UserResponse,
)
from auth.dependencies import get_auth_service, try_get_session
from auth.oauth import get_enabled_providers, is_provider_enabled
from auth.service import AuthService
from auth.tokens import clear_session_cookie, set_session_cookie
from core.limiter import AUTH_RATE_LIMIT, limiter
from core.redirects import safe_callback_url

logger = logging.getLogger("betterdemo.api.auth")

# Session key under which the post-OAuth redirect target waits for the callback.
OAUTH_CALLBACK_SESSION_KEY = "oauth_callback_url"

router = APIRouter()


def _client_meta(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/get-session", response_model=SessionResponse | None)
def get_session(request: Request) -> SessionResponse | None:
    """Return the current session and user, or null when signed out."""
    auth_session = try_get_session(request)
    if auth_session is None:
        return None
    return SessionResponse.from_auth_session(auth_session)


# ---------------------------------------------------------------------------
# Email / password
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/sign-in/email", response_model=SignInResponse)
def sign_in_email(request: Request, body: SignInEmailRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Wrong email and wrong password produce the same INVALID_EMAIL_OR_PASSWORD
    error so the response does not reveal which emails are registered.
    """
    auth: AuthService = get_auth_service(request)
    result = auth.sign_in_email(
        body.email,
        body.password,
        remember_me=body.remember_me,
        **_client_meta(request),
    )
    url = safe_callback_url(body.callback_url) if body.callback_url else None
    resp = JSONResponse(
        content=SignInResponse(
            redirect=url is not None,
            url=url,
            token=result.session.session.token,
            user=UserResponse.from_user(result.session.user),
        ).model_dump(mode="json", by_alias=True),
    )
    set_session_cookie(resp, result.cookie_value, result.max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/sign-up/email", response_model=SignUpResponse)
def sign_up_email(request: Request, body: SignUpEmailRequest) -> JSONResponse:
    """Register a new email/password user and sign them in."""
    auth: AuthService = get_auth_service(request)
    result = auth.sign_up_email(
        body.name.strip(),
        body.email,
        body.password,
        image=body.image,
        **_client_meta(request),
    )
    resp = JSONResponse(
        content=SignUpResponse(
            token=result.session.session.token,
            user=UserResponse.from_user(result.session.user),
        ).model_dump(mode="json", by_alias=True),
    )
    set_session_cookie(resp, result.cookie_value, result.max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.post("/sign-in/social", response_model=SocialSignInResponse)
async def sign_in_social(request: Request, body: SocialSignInRequest) -> SocialSignInResponse:
    """Start an OAuth sign-in and return the provider authorization URL.

    The OAuth state is saved in the Starlette session exactly as
    authorize_redirect() would; the browser then follows the returned URL and
    the provider calls back into the web UI's /sign-in/callback/{provider}.
    """
    if not is_provider_enabled(body.provider):
        raise HTTPException(
            status_code=404,
            detail={"code": "PROVIDER_NOT_FOUND", "message": "Provider not found"},
        )

    client = request.app.state.oauth.create_client(body.provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=body.provider))
    rv = await client.create_authorization_url(redirect_uri)
    await client.save_authorize_data(request, redirect_uri=redirect_uri, **rv)
    request.session[OAUTH_CALLBACK_SESSION_KEY] = safe_callback_url(body.callback_url)
    return SocialSignInResponse(url=rv["url"], redirect=True)


@router.get("/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty when none are configured."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers()]


# ---------------------------------------------------------------------------
# Sign-out
# ---------------------------------------------------------------------------


@router.post("/sign-out", response_model=SignOutResponse)
def sign_out(request: Request) -> JSONResponse:
    """Delete the current session (if any) and clear the cookie.

    Succeeds even without a session so a client can always reach a clean
    signed-out state.
    """
    auth: AuthService = get_auth_service(request)
    deleted = auth.sign_out(request.headers)
    if deleted:
        logger.info("Session signed out")
    resp = JSONResponse(content=SignOutResponse(success=True).model_dump())
    clear_session_cookie(resp)
    return resp
