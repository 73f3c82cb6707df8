"""
auth/service.py -- Server-side authentication API.

AuthService is the one object route handlers talk to. It owns the sign-in,
sign-up and sign-out flows and session lookup; AuthStore owns persistence and
auth.tokens owns the cryptography.

Session retrieval is an explicit function of the request headers:
    session = request.app.state.auth.get_session(request.headers)
Nothing is read from global request state, so server pages, the JSON API and
tests all retrieve sessions the same way.

Failures that a user can cause (wrong password, duplicate email, ...) raise
AuthError carrying a stable code, a human message, and an HTTP status. The
web layer shows the message as a toast; the API layer returns it in the error
envelope.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from starlette.requests import cookie_parser

from auth.models import Account, AuthSession, OAuthProfile, Session, User
from auth.store import AuthStore, DuplicateEmailError
from auth.tokens import (
    DUMMY_HASH,
    SESSION_COOKIE_NAME,
    decode_session_cookie,
    encode_session_cookie,
    generate_session_token,
    hash_password,
    verify_password,
)
from core.config import get_settings

logger = logging.getLogger("betterdemo.auth.service")

CREDENTIAL_PROVIDER = "credential"

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


class AuthError(Exception):
    """A user-facing authentication failure."""

    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


@dataclass
class SignInResult:
    """Outcome of a successful sign-in or sign-up.

    cookie_value is what goes into the session cookie. max_age is the cookie
    lifetime in seconds, or None for a browser-session cookie.
    """

    session: AuthSession
    cookie_value: str
    max_age: int | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Email/password and OAuth authentication backed by an AuthStore."""

    def __init__(self, store: AuthStore) -> None:
        self.store = store
        self._settings = get_settings()

    # ------------------------------------------------------------------
    # Session retrieval
    # ------------------------------------------------------------------

    def get_session(self, headers: Mapping[str, str]) -> AuthSession | None:
        """Return the live session for the given request headers, or None.

        Looks for the signed value in the session cookie first, then in an
        "Authorization: Bearer <value>" header (non-browser clients). Expired
        sessions are deleted on sight.
        """
        session_token = self._session_token_from_headers(headers)
        if session_token is None:
            return None

        session = self.store.get_session_by_token(session_token)
        if session is None:
            return None
        if session.expires_at <= _now():
            self.store.delete_session(session.token)
            return None

        user = self.store.get_user_by_id(session.user_id)
        if user is None:
            # Orphaned session -- the user was removed underneath it
            self.store.delete_session(session.token)
            return None
        return AuthSession(session=session, user=user)

    def _session_token_from_headers(self, headers: Mapping[str, str]) -> str | None:
        value = cookie_parser(headers.get("cookie", "")).get(SESSION_COOKIE_NAME)
        if not value:
            auth_header = headers.get("authorization", "")
            if auth_header.startswith("Bearer "):
                value = auth_header[7:].strip()
        if not value:
            return None
        return decode_session_cookie(value)

    # ------------------------------------------------------------------
    # Email / password
    # ------------------------------------------------------------------

    def sign_in_email(
        self,
        email: str,
        password: str,
        remember_me: bool = True,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SignInResult:
        """Authenticate an email/password pair and open a session.

        Always runs bcrypt whether or not the email exists so response time
        does not reveal which emails are registered.

        Raises AuthError(INVALID_EMAIL_OR_PASSWORD) on any mismatch.
        """
        user = self.store.get_user_by_email(email)
        account = self.store.get_user_account(user.id, CREDENTIAL_PROVIDER) if user is not None else None
        if user is None or account is None or account.password is None:
            verify_password(password, DUMMY_HASH)
            raise _invalid_credentials()
        if not verify_password(password, account.password):
            raise _invalid_credentials()

        logger.info("Email sign-in for user %s", user.id)
        return self._open_session(user, remember_me, ip_address, user_agent)

    def sign_up_email(
        self,
        name: str,
        email: str,
        password: str,
        image: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SignInResult:
        """Register a new user with a password and sign them in.

        Raises:
            AuthError(PASSWORD_TOO_SHORT / PASSWORD_TOO_LONG): 400
            AuthError(USER_ALREADY_EXISTS): 422
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError("PASSWORD_TOO_SHORT", "Password too short", 400)
        if len(password) > MAX_PASSWORD_LENGTH:
            raise AuthError("PASSWORD_TOO_LONG", "Password too long", 400)

        if self.store.get_user_by_email(email) is not None:
            raise _user_exists()

        hashed = hash_password(password)
        try:
            user = self.store.create_user(User(name=name, email=email, image=image))
        except DuplicateEmailError as exc:
            # Lost a race with a concurrent sign-up for the same email
            raise _user_exists() from exc
        self.store.create_account(
            Account(
                user_id=user.id,
                provider_id=CREDENTIAL_PROVIDER,
                account_id=user.id,
                password=hashed,
            )
        )
        logger.info("Created user %s via email sign-up", user.id)
        return self._open_session(user, True, ip_address, user_agent)

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def sign_in_social(
        self,
        profile: OAuthProfile,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SignInResult:
        """Sign in with a provider profile, linking or creating the user.

        Flow:
          1. Known (provider, subject) pair -- returning user.
          2. Existing user with the same email -- link the provider account.
             Only allowed when the provider verified the email.
          3. Otherwise create the user and the provider account.
        """
        if not profile.email_verified:
            raise AuthError("EMAIL_NOT_VERIFIED", "Email not verified by provider", 401)

        account = self.store.get_account(profile.provider, profile.subject)
        if account is not None:
            user = self.store.get_user_by_id(account.user_id)
            if user is None:
                raise AuthError("USER_NOT_FOUND", "User not found", 401)
            self.store.update_account_tokens(account.id, profile.access_token, profile.scope)
            return self._open_session(user, True, ip_address, user_agent)

        user = self.store.get_user_by_email(profile.email)
        if user is None:
            try:
                user = self.store.create_user(
                    User(
                        name=profile.name or profile.email.split("@")[0],
                        email=profile.email,
                        email_verified=True,
                        image=profile.image,
                    )
                )
            except DuplicateEmailError as exc:
                raise _user_exists() from exc
            logger.info("Created user %s via %s sign-in", user.id, profile.provider)
        elif not user.email_verified:
            # The provider has now vouched for the address.
            self.store.update_user(user.id, email_verified=True)
            user.email_verified = True

        self.store.create_account(
            Account(
                user_id=user.id,
                provider_id=profile.provider,
                account_id=profile.subject,
                access_token=profile.access_token,
                scope=profile.scope,
            )
        )
        logger.info("Linked %s account to user %s", profile.provider, user.id)
        return self._open_session(user, True, ip_address, user_agent)

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    def sign_out(self, headers: Mapping[str, str]) -> bool:
        """Delete the session named by the request headers.

        Returns True if a session was deleted, False if there was none.
        """
        session_token = self._session_token_from_headers(headers)
        if session_token is None:
            return False
        return self.store.delete_session(session_token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(
        self,
        user: User,
        remember_me: bool,
        ip_address: str | None,
        user_agent: str | None,
    ) -> SignInResult:
        if remember_me:
            lifetime = self._settings.session_expire_seconds
        else:
            lifetime = self._settings.short_session_expire_seconds
        session = self.store.create_session(
            Session(
                user_id=user.id,
                token=generate_session_token(),
                expires_at=_now() + timedelta(seconds=lifetime),
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        cookie_value = encode_session_cookie(session.token, user.id, session.expires_at)
        return SignInResult(
            session=AuthSession(session=session, user=user),
            cookie_value=cookie_value,
            max_age=lifetime if remember_me else None,
        )


def _invalid_credentials() -> AuthError:
    return AuthError("INVALID_EMAIL_OR_PASSWORD", "Invalid email or password", 401)


def _user_exists() -> AuthError:
    return AuthError("USER_ALREADY_EXISTS", "User already exists", 422)

