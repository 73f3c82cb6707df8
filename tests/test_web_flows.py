"""
tests/test_web_flows.py -- Integration tests for the server-rendered auth forms.

Two kinds of client are used:
  mock_web_client -- app.state.auth is a MagicMock, so tests can assert on
                     exactly which AuthService calls a form submission makes.
  web_client      -- real AuthService over mongomock, for end-to-end flows.

Toasts live in the Starlette session cookie and render on the next page
load, so several tests submit a form and then GET a page to read them.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from auth.service import AuthError, AuthService, SignInResult
from auth.store import AuthStore
from auth.tokens import SESSION_COOKIE_NAME
from web.toasts import push_toast


def _set_cookie_headers(resp) -> list[str]:
    return resp.headers.get_list("set-cookie")


# ---------------------------------------------------------------------------
# Sign-in form
# ---------------------------------------------------------------------------


class TestSignInForm:
    def test_rejected_credentials_keep_form_and_toast(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        mock_auth.sign_in_email.side_effect = AuthError("INVALID_EMAIL_OR_PASSWORD", "Invalid credentials", 401)

        resp = mock_web_client.post("/sign-in", data={"email": "john@example.com", "password": "secret"})

        assert resp.status_code == 200
        assert "Invalid credentials" in resp.text
        assert 'value="john@example.com"' in resp.text
        assert "secret" not in resp.text
        assert mock_auth.sign_in_email.call_count == 1

    def test_invalid_email_never_reaches_service(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        resp = mock_web_client.post("/sign-in", data={"email": "not-an-email", "password": "secret"})

        assert resp.status_code == 200
        assert "Please enter a valid email" in resp.text
        mock_auth.sign_in_email.assert_not_called()

    def test_empty_password_never_reaches_service(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        resp = mock_web_client.post("/sign-in", data={"email": "john@example.com", "password": ""})

        assert "Password is required" in resp.text
        mock_auth.sign_in_email.assert_not_called()

    def test_unexpected_failure_shows_generic_toast(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        mock_auth.sign_in_email.side_effect = RuntimeError("connection reset")

        resp = mock_web_client.post("/sign-in", data={"email": "john@example.com", "password": "secret"})

        assert resp.status_code == 200
        assert "Failed to sign in" in resp.text
        assert "connection reset" not in resp.text

    def test_success_redirects_with_cookie(
        self, mock_web_client: TestClient, mock_auth: MagicMock, sign_in_result: SignInResult
    ) -> None:
        mock_auth.sign_in_email.return_value = sign_in_result

        resp = mock_web_client.post("/sign-in", data={"email": "john@example.com", "password": "secret"})

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"
        cookies = _set_cookie_headers(resp)
        assert any(c.startswith(f"{SESSION_COOKIE_NAME}=signed-cookie-value") for c in cookies)
        assert any("httponly" in c.lower() for c in cookies if c.startswith(SESSION_COOKIE_NAME))
        args, _kwargs = mock_auth.sign_in_email.call_args
        assert args[:2] == ("john@example.com", "secret")

    def test_success_toast_shown_on_next_page(
        self, mock_web_client: TestClient, mock_auth: MagicMock, sign_in_result: SignInResult
    ) -> None:
        mock_auth.sign_in_email.return_value = sign_in_result
        mock_web_client.post("/sign-in", data={"email": "john@example.com", "password": "secret"})

        resp = mock_web_client.get("/sign-up")
        assert "Signed in successfully!" in resp.text

        # A toast is shown once
        resp = mock_web_client.get("/sign-up")
        assert "Signed in successfully!" not in resp.text


# ---------------------------------------------------------------------------
# Sign-up form
# ---------------------------------------------------------------------------


class TestSignUpForm:
    def test_valid_submission_calls_service_once(
        self, mock_web_client: TestClient, mock_auth: MagicMock, sign_in_result: SignInResult
    ) -> None:
        mock_auth.sign_up_email.return_value = sign_in_result

        resp = mock_web_client.post("/sign-up", data={"name": "Jo", "email": "a@b.com", "password": "Password1"})

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"
        assert mock_auth.sign_up_email.call_count == 1
        args, _kwargs = mock_auth.sign_up_email.call_args
        assert args[:3] == ("Jo", "a@b.com", "Password1")

    def test_weak_password_never_reaches_service(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        resp = mock_web_client.post("/sign-up", data={"name": "Jo", "email": "a@b.com", "password": "password1"})

        assert resp.status_code == 200
        assert "Password must contain uppercase, lowercase, and number" in resp.text
        assert 'value="Jo"' in resp.text
        mock_auth.sign_up_email.assert_not_called()

    def test_each_field_reports_its_own_error(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        resp = mock_web_client.post("/sign-up", data={"name": "J", "email": "bad", "password": "short"})

        assert "Name must be at least 2 characters" in resp.text
        assert "Please enter a valid email" in resp.text
        assert "Password must be at least 8 characters" in resp.text
        mock_auth.sign_up_email.assert_not_called()

    def test_duplicate_email_toast(self, mock_web_client: TestClient, mock_auth: MagicMock) -> None:
        mock_auth.sign_up_email.side_effect = AuthError("USER_ALREADY_EXISTS", "User already exists", 422)

        resp = mock_web_client.post("/sign-up", data={"name": "Jo", "email": "a@b.com", "password": "Password1"})

        assert resp.status_code == 200
        assert "User already exists" in resp.text
        assert 'value="a@b.com"' in resp.text
        assert "Password1" not in resp.text

    def test_unexpected_failure_shows_generic_toast(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        mock_auth.sign_up_email.side_effect = RuntimeError("boom")

        resp = mock_web_client.post("/sign-up", data={"name": "Jo", "email": "a@b.com", "password": "Password1"})

        assert "Failed to create account" in resp.text

    def test_end_to_end_sign_up_reaches_dashboard(self, web_client: TestClient, store: AuthStore) -> None:
        resp = web_client.post(
            "/sign-up",
            data={"name": "Jane Doe", "email": "Jane@Example.com", "password": "Password1"},
        )
        assert resp.status_code == 302
        assert store.get_user_by_email("jane@example.com") is not None

        resp = web_client.get("/dashboard")
        assert resp.status_code == 200
        assert "Account created successfully!" in resp.text
        assert "Welcome back, Jane Doe!" in resp.text


# ---------------------------------------------------------------------------
# Dashboard and server component
# ---------------------------------------------------------------------------


class TestDashboard:
    def test_shows_profile_and_session_payload(self, web_client: TestClient, signed_in: SignInResult) -> None:
        resp = web_client.get("/dashboard")

        assert resp.status_code == 200
        assert "Welcome back, Jane Doe!" in resp.text
        assert "jane@example.com" in resp.text
        assert "Not Verified" in resp.text
        assert "userId" in resp.text
        assert signed_in.session.session.token in resp.text

    def test_welcome_fragment_signed_in(self, web_client: TestClient, signed_in: SignInResult) -> None:
        resp = web_client.get("/dashboard/welcome")
        assert resp.status_code == 200
        assert "Welcome Jane Doe" in resp.text

    def test_welcome_fragment_signed_out(self, web_client: TestClient) -> None:
        resp = web_client.get("/dashboard/welcome")
        assert resp.status_code == 200
        assert "Not authenticated" in resp.text


# ---------------------------------------------------------------------------
# Sign-out
# ---------------------------------------------------------------------------


class TestSignOut:
    def test_sign_out_deletes_session_and_clears_cookie(
        self, web_client: TestClient, signed_in: SignInResult, store: AuthStore
    ) -> None:
        resp = web_client.post("/sign-out")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/sign-in"
        assert store.get_session_by_token(signed_in.session.session.token) is None
        cleared = [c for c in _set_cookie_headers(resp) if c.startswith(f"{SESSION_COOKIE_NAME}=")]
        assert cleared and "max-age=0" in cleared[0].lower()

    def test_sign_out_toast_on_sign_in_page(self, web_client: TestClient, signed_in: SignInResult) -> None:
        web_client.post("/sign-out")
        resp = web_client.get("/sign-in")
        assert resp.status_code == 200
        assert "Signed out successfully" in resp.text

    def test_sign_out_failure_returns_to_dashboard(
        self, mock_web_client: TestClient, mock_auth: MagicMock
    ) -> None:
        mock_auth.sign_out.side_effect = RuntimeError("database down")

        resp = mock_web_client.post("/sign-out")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"


# ---------------------------------------------------------------------------
# GitHub OAuth
# ---------------------------------------------------------------------------


class _FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", "https://api.github.com/user")
            raise httpx.HTTPStatusError(
                f"{self.status_code} error", request=request, response=httpx.Response(self.status_code, request=request)
            )

    def json(self):
        return self._payload


class _FakeGitHubClient:
    """Enough of an authlib StarletteOAuth2App for the callback route."""

    def __init__(self, emails: list[dict], fail_exchange: bool = False, user_status: int = 200) -> None:
        self.emails = emails
        self.fail_exchange = fail_exchange
        self.user_status = user_status

    async def authorize_access_token(self, request):
        if self.fail_exchange:
            from authlib.integrations.starlette_client import OAuthError

            raise OAuthError(error="mismatching_state")
        return {"access_token": "gho_test", "scope": "read:user,user:email"}

    async def get(self, path, token=None):
        if path == "user":
            return _FakeResponse(
                {"id": 4242, "login": "octo", "name": "Octo Cat", "avatar_url": "https://x/a.png"},
                status_code=self.user_status,
            )
        return _FakeResponse(self.emails)


class TestGitHubCallback:
    @pytest.fixture
    def oauth_state(self, web_client: TestClient):
        return web_client.app.state.oauth

    def test_verified_email_signs_in(self, web_client: TestClient, oauth_state, store: AuthStore) -> None:
        oauth_state.create_client.return_value = _FakeGitHubClient(
            [{"email": "octo@example.com", "primary": True, "verified": True}]
        )

        resp = web_client.get("/sign-in/callback/github")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"
        user = store.get_user_by_email("octo@example.com")
        assert user is not None and user.email_verified
        assert store.get_account("github", "4242") is not None

        resp = web_client.get("/dashboard")
        assert resp.status_code == 200
        assert "Octo Cat" in resp.text
        assert "Signed in successfully!" in resp.text

    def test_unverified_email_rejected(self, web_client: TestClient, oauth_state, store: AuthStore) -> None:
        oauth_state.create_client.return_value = _FakeGitHubClient(
            [{"email": "octo@example.com", "primary": True, "verified": False}]
        )

        resp = web_client.get("/sign-in/callback/github")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/sign-in"
        assert store.get_user_by_email("octo@example.com") is None
        assert "Failed to sign in with GitHub" in web_client.get("/sign-in").text

    def test_failed_token_exchange_rejected(self, web_client: TestClient, oauth_state) -> None:
        oauth_state.create_client.return_value = _FakeGitHubClient([], fail_exchange=True)

        resp = web_client.get("/sign-in/callback/github")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/sign-in"

    def test_provider_api_error_rejected(self, web_client: TestClient, oauth_state, store: AuthStore) -> None:
        oauth_state.create_client.return_value = _FakeGitHubClient(
            [{"email": "octo@example.com", "primary": True, "verified": True}], user_status=502
        )

        resp = web_client.get("/sign-in/callback/github")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/sign-in"
        assert store.get_user_by_email("octo@example.com") is None
        assert "Failed to sign in with GitHub" in web_client.get("/sign-in").text

    def test_unknown_provider_redirects_with_toast(self, web_client: TestClient) -> None:
        resp = web_client.get("/sign-in/social/gitlab")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/sign-in"
        assert "Failed to sign in with Gitlab" in web_client.get("/sign-in").text

    def test_social_link_starts_authorization(self, web_client: TestClient, oauth_state) -> None:
        async def authorize_redirect(request, redirect_uri):
            from fastapi.responses import RedirectResponse

            return RedirectResponse(f"https://github.com/login/oauth/authorize?redirect_uri={redirect_uri}")

        oauth_state.create_client.return_value.authorize_redirect = authorize_redirect

        resp = web_client.get("/sign-in/social/github", params={"callbackURL": "/dashboard/welcome"})

        assert resp.status_code in (302, 307)
        assert resp.headers["location"].startswith("https://github.com/login/oauth/authorize")
        assert "/sign-in/callback/github" in resp.headers["location"]

    def test_oauth_callback_honours_saved_callback_url(
        self, web_client: TestClient, oauth_state
    ) -> None:
        async def authorize_redirect(request, redirect_uri):
            from fastapi.responses import RedirectResponse

            return RedirectResponse("https://github.com/login/oauth/authorize")

        fake = _FakeGitHubClient([{"email": "octo@example.com", "primary": True, "verified": True}])
        fake.authorize_redirect = authorize_redirect
        oauth_state.create_client.return_value = fake

        web_client.get("/sign-in/social/github", params={"callbackURL": "/dashboard/welcome"})
        resp = web_client.get("/sign-in/callback/github")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard/welcome"


def test_auth_service_is_shared_with_routes(web_client: TestClient, auth_service: AuthService) -> None:
    assert web_client.app.state.auth is auth_service


@pytest.mark.parametrize("kind", ["info", "warning"])
def test_toast_kind_must_be_success_or_error(kind: str) -> None:
    request = SimpleNamespace(session={})
    with pytest.raises(ValueError):
        push_toast(request, kind, "Heads up")
    assert request.session == {}
