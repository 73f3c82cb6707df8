"""
web/routes.py -- Jinja2 template routes for the Better Demo web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same AuthService, same OAuth registry) but return HTML and redirects
instead of JSON.

Route registration order matters. /sign-in/social/{provider} and
/sign-in/callback/{provider} are registered before the bare /sign-in routes,
and /dashboard/welcome before anything else under /dashboard.

Routes:
  GET  /                              -- redirect to /dashboard
  GET  /sign-in/social/{provider}     -- OAuth redirect to provider
  GET  /sign-in/callback/{provider}   -- OAuth callback handler
  GET  /sign-in                       -- sign-in form (redirects if signed in)
  POST /sign-in                       -- handle email/password sign-in
  GET  /sign-up                       -- registration form (redirects if signed in)
  POST /sign-up                       -- handle registration
  GET  /dashboard/welcome             -- server-rendered greeting fragment
  GET  /dashboard                     -- profile + raw session (auth required)
  POST /sign-out                      -- end session, redirect /sign-in

Failures never leave the user on a blank page: every error becomes a toast,
and a failed form submission re-renders the form with the submitted values.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from auth.dependencies import get_auth_service, try_get_session
from auth.oauth import get_enabled_providers, get_oauth_profile, is_provider_enabled
from auth.service import AuthError, AuthService, SignInResult
from auth.tokens import clear_session_cookie, set_session_cookie
from core.limiter import AUTH_RATE_LIMIT, limiter
from core.redirects import DEFAULT_CALLBACK_URL, safe_callback_url
from web.forms import SignInForm, SignUpForm, form_errors
from web.toasts import pop_toasts, push_toast

logger = logging.getLogger("betterdemo.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# base.html renders queued toasts without every handler passing them in.
templates.env.globals["pop_toasts"] = pop_toasts
router = APIRouter()

# Session key shared with api/routes/auth.py (POST /api/auth/sign-in/social).
_OAUTH_CALLBACK_SESSION_KEY = "oauth_callback_url"

_PROVIDER_LABELS = {"github": "GitHub"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client_meta(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def _signed_in_redirect(request: Request, result: SignInResult, callback_url: str) -> RedirectResponse:
    """Redirect after a successful sign-in and attach the session cookie."""
    resp = RedirectResponse(safe_callback_url(callback_url), status_code=302)
    set_session_cookie(resp, result.cookie_value, result.max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _render_sign_in(
    request: Request,
    values: Optional[dict] = None,
    errors: Optional[dict] = None,
    callback_url: str = DEFAULT_CALLBACK_URL,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "sign_in.html",
        {
            "values": values or {"email": "", "password": ""},
            "errors": errors or {},
            "providers": get_enabled_providers(),
            "callback_url": safe_callback_url(callback_url),
        },
    )


def _render_sign_up(
    request: Request,
    values: Optional[dict] = None,
    errors: Optional[dict] = None,
    callback_url: str = DEFAULT_CALLBACK_URL,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "sign_up.html",
        {
            "values": values or {"name": "", "email": "", "password": ""},
            "errors": errors or {},
            "callback_url": safe_callback_url(callback_url),
        },
    )


# ---------------------------------------------------------------------------
# GET / -- the dashboard decides whether the visitor needs to sign in
# ---------------------------------------------------------------------------


@router.get("/")
def root() -> RedirectResponse:
    return RedirectResponse("/dashboard", status_code=302)


# ---------------------------------------------------------------------------
# OAuth (registered BEFORE the bare /sign-in routes)
# ---------------------------------------------------------------------------


@router.get("/sign-in/social/{provider}")
async def oauth_redirect(request: Request, provider: str) -> RedirectResponse:
    """Redirect the browser to the OAuth provider's authorization page.

    Validates the provider name against the enabled provider list before
    redirecting, so a crafted provider name cannot send the browser anywhere.
    """
    label = _PROVIDER_LABELS.get(provider, provider.title())
    if not is_provider_enabled(provider):
        logger.warning("OAuth sign-in requested for disabled provider %r", provider)
        push_toast(request, "error", f"Failed to sign in with {label}")
        return RedirectResponse("/sign-in", status_code=302)

    request.session[_OAUTH_CALLBACK_SESSION_KEY] = safe_callback_url(request.query_params.get("callbackURL"))
    try:
        client = request.app.state.oauth.create_client(provider)
        redirect_uri = request.url_for("oauth_callback", provider=provider)
        return await client.authorize_redirect(request, str(redirect_uri))
    except Exception:
        logger.exception("OAuth authorization redirect failed for provider %r", provider)
        push_toast(request, "error", f"Failed to sign in with {label}")
        return RedirectResponse("/sign-in", status_code=302)


@router.get("/sign-in/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Handle the OAuth provider callback and issue the session cookie.

    Flow:
      1. Exchange authorization code for token (authlib checks the state).
      2. Build the profile -- raises ValueError if the email is unverified,
         httpx.HTTPError if the provider API call fails.
      3. AuthService links or creates the user and opens a session.
      4. Redirect to the callback URL saved when the flow started.
    """
    label = _PROVIDER_LABELS.get(provider, provider.title())
    failure = RedirectResponse("/sign-in", status_code=302)
    if not is_provider_enabled(provider):
        push_toast(request, "error", f"Failed to sign in with {label}")
        return failure

    client = request.app.state.oauth.create_client(provider)
    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        push_toast(request, "error", f"Failed to sign in with {label}")
        return failure

    try:
        profile = await get_oauth_profile(client, provider, token)
    except httpx.HTTPError:
        logger.exception("OAuth profile request failed for provider %r", provider)
        push_toast(request, "error", f"Failed to sign in with {label}")
        return failure
    except ValueError:
        logger.warning("OAuth sign-in rejected: unverified or missing email from %r", provider)
        push_toast(request, "error", f"Failed to sign in with {label}")
        return failure

    auth: AuthService = get_auth_service(request)
    try:
        result = auth.sign_in_social(profile, **_client_meta(request))
    except AuthError as exc:
        push_toast(request, "error", exc.message)
        return failure

    callback_url = request.session.pop(_OAUTH_CALLBACK_SESSION_KEY, DEFAULT_CALLBACK_URL)
    push_toast(request, "success", "Signed in successfully!")
    return _signed_in_redirect(request, result, callback_url)


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


@router.get("/sign-in", response_class=HTMLResponse)
def sign_in_page(request: Request) -> HTMLResponse:
    """Render the sign-in form. Visitors who already have a session go to the dashboard."""
    if try_get_session(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)
    return _render_sign_in(request, callback_url=request.query_params.get("callbackURL") or DEFAULT_CALLBACK_URL)


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/sign-in", response_class=HTMLResponse)
def sign_in_post(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    callback_url: str = Form(DEFAULT_CALLBACK_URL, alias="callbackURL"),
) -> HTMLResponse:
    """Handle the email/password sign-in form.

    Invalid input is reported next to the fields without calling the auth
    service. A rejected sign-in keeps the form on screen with what the user
    typed, plus an error toast.
    """
    values = {"email": email, "password": password}
    try:
        form = SignInForm(**values)
    except ValidationError as exc:
        return _render_sign_in(request, values, form_errors(exc), callback_url)

    auth: AuthService = get_auth_service(request)
    try:
        result = auth.sign_in_email(form.email, form.password, **_client_meta(request))
    except AuthError as exc:
        push_toast(request, "error", exc.message)
        return _render_sign_in(request, values, callback_url=callback_url)
    except Exception:
        logger.exception("Email sign-in failed")
        push_toast(request, "error", "Failed to sign in")
        return _render_sign_in(request, values, callback_url=callback_url)

    push_toast(request, "success", "Signed in successfully!")
    return _signed_in_redirect(request, result, callback_url)


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


@router.get("/sign-up", response_class=HTMLResponse)
def sign_up_page(request: Request) -> HTMLResponse:
    """Render the registration form. Visitors who already have a session go to the dashboard."""
    if try_get_session(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)
    return _render_sign_up(request, callback_url=request.query_params.get("callbackURL") or DEFAULT_CALLBACK_URL)


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/sign-up", response_class=HTMLResponse)
def sign_up_post(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    callback_url: str = Form(DEFAULT_CALLBACK_URL, alias="callbackURL"),
) -> HTMLResponse:
    """Handle the registration form. A successful sign-up also signs the user in."""
    values = {"name": name, "email": email, "password": password}
    try:
        form = SignUpForm(**values)
    except ValidationError as exc:
        return _render_sign_up(request, values, form_errors(exc), callback_url)

    auth: AuthService = get_auth_service(request)
    try:
        result = auth.sign_up_email(form.name, form.email, form.password, **_client_meta(request))
    except AuthError as exc:
        push_toast(request, "error", exc.message)
        return _render_sign_up(request, values, callback_url=callback_url)
    except Exception:
        logger.exception("Email sign-up failed")
        push_toast(request, "error", "Failed to create account")
        return _render_sign_up(request, values, callback_url=callback_url)

    push_toast(request, "success", "Account created successfully!")
    return _signed_in_redirect(request, result, callback_url)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard/welcome", response_class=HTMLResponse)
def dashboard_welcome(request: Request) -> HTMLResponse:
    """Greeting rendered entirely on the server from the request headers."""
    auth_session = try_get_session(request)
    return templates.TemplateResponse(
        request,
        "partials/welcome.html",
        {"user": auth_session.user if auth_session else None},
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    """Account details and the raw session payload for the signed-in user."""
    auth_session = try_get_session(request)
    if auth_session is None:
        return RedirectResponse("/sign-in", status_code=302)

    user = auth_session.user
    display_name = user.name or user.email
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": user,
            "display_name": display_name,
            "initial": (user.name or user.email or "U")[:1].upper(),
            "session_json": json.dumps(auth_session.to_dict(), indent=2),
        },
    )


# ---------------------------------------------------------------------------
# Sign-out
# ---------------------------------------------------------------------------


@router.post("/sign-out")
def sign_out(request: Request) -> RedirectResponse:
    """Delete the session, clear the cookie, and return to the sign-in page."""
    auth: AuthService = get_auth_service(request)
    try:
        auth.sign_out(request.headers)
    except Exception:
        logger.exception("Sign-out failed")
        push_toast(request, "error", "Failed to sign out")
        return RedirectResponse("/dashboard", status_code=302)

    push_toast(request, "success", "Signed out successfully")
    resp = RedirectResponse("/sign-in", status_code=302)
    clear_session_cookie(resp)
    return resp
