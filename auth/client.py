"""
auth/client.py -- HTTP client for the Better Demo auth API.

The client mirrors the JSON API mounted at /api/auth. Every call returns an
AuthResult: data on success, error on an API-reported failure. Transport
failures (connection refused, timeouts) are not swallowed -- they propagate
as requests exceptions and the caller decides what to show.

The session cookie set by sign-in lives in the transport's cookie jar, so a
client instance behaves like one browser:

    client = AuthClient("http://localhost:3000")
    result = client.sign_in_email("john@example.com", "Password1")
    if result.error:
        print(result.error.message)
    me = client.get_session().data

base_url defaults to APP_URL. transport defaults to a requests.Session;
anything with the same request(method, url, json=..., timeout=...) signature
works (tests pass a FastAPI TestClient).

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

from core.config import get_settings

logger = logging.getLogger("betterdemo.auth.client")

DEFAULT_BASE_PATH = "/api/auth"


@dataclass
class AuthClientError:
    """An error reported by the auth API."""

    code: str
    message: str
    status: int


@dataclass
class AuthResult:
    data: Any = None
    error: AuthClientError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthClient:
    """Client for the auth API. One instance = one cookie jar = one user."""

    def __init__(
        self,
        base_url: str | None = None,
        transport=None,
        base_path: str = DEFAULT_BASE_PATH,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = (base_url or get_settings().app_url).rstrip("/")
        self.base_path = base_path
        self.timeout = timeout
        self.transport = transport if transport is not None else requests.Session()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_session(self) -> AuthResult:
        """Return the current session payload; data is None when signed out."""
        return self._request("GET", "/get-session")

    def sign_in_email(
        self,
        email: str,
        password: str,
        callback_url: str | None = None,
        remember_me: bool = True,
    ) -> AuthResult:
        body: dict = {"email": email, "password": password, "rememberMe": remember_me}
        if callback_url:
            body["callbackURL"] = callback_url
        return self._request("POST", "/sign-in/email", body)

    def sign_in_social(self, provider: str, callback_url: str | None = None) -> AuthResult:
        """Start an OAuth sign-in. data["url"] is where the browser must go next."""
        body: dict = {"provider": provider}
        if callback_url:
            body["callbackURL"] = callback_url
        return self._request("POST", "/sign-in/social", body)

    def sign_up_email(
        self,
        email: str,
        password: str,
        name: str,
        callback_url: str | None = None,
        image: str | None = None,
    ) -> AuthResult:
        body: dict = {"email": email, "password": password, "name": name}
        if callback_url:
            body["callbackURL"] = callback_url
        if image:
            body["image"] = image
        return self._request("POST", "/sign-up/email", body)

    def sign_out(self, on_success: Callable[[AuthResult], None] | None = None) -> AuthResult:
        """End the session. on_success runs only when the API confirms sign-out."""
        result = self._request("POST", "/sign-out")
        if result.ok and on_success is not None:
            on_success(result)
        return result

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, body: dict | None = None) -> AuthResult:
        url = f"{self.base_url}{self.base_path}{path}"
        resp = self.transport.request(method, url, json=body, timeout=self.timeout)
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.status_code >= 400:
            error = payload.get("error") if isinstance(payload, dict) else None
            if not isinstance(error, dict):
                error = {}
            logger.debug("Auth API %s %s failed with %d", method, path, resp.status_code)
            return AuthResult(
                error=AuthClientError(
                    code=str(error.get("code") or f"http_{resp.status_code}"),
                    message=str(error.get("message") or f"Request failed with status {resp.status_code}"),
                    status=resp.status_code,
                )
            )
        return AuthResult(data=payload)
