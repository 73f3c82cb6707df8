"""
auth/tokens.py -- Password hashing, session tokens, and the signed session cookie.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). Cost factor comes from
       BCRYPT_ROUNDS. The DUMMY_HASH constant enables timing equalization in
       AuthService.sign_in_email() so response time does not reveal whether
       an email is registered.

  Session tokens: secrets.token_urlsafe(32) -- 256 bits of entropy. The token
       is the primary key of the server-side session document; deleting the
       document revokes the session immediately.

  Session cookie: python-jose HS256 JWT signed with SECRET_KEY carrying the
       session token (sid), the user id (sub) and the session expiry (exp).
       The signature stops a client from forging a token value; the database
       lookup is still the authority on whether the session is alive.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("betterdemo.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE_NAME = "better_demo.session_token"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. Sign-up caps passwords at 128
    characters server-side; anything past byte 72 does not affect the hash.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8")[:72], salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        logger.warning("Stored password hash could not be parsed")
        return False


# Computed once at module load so the first sign-in attempt is not measurably
# slower than later ones.
DUMMY_HASH: str = hash_password("better_demo_timing_dummy")


# ---------------------------------------------------------------------------
# Session tokens and the signed cookie value
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def encode_session_cookie(session_token: str, user_id: str, expires_at: datetime) -> str:
    """Sign the session token into the value stored in the browser cookie."""
    payload = {
        "sid": session_token,
        "sub": user_id,
        "exp": expires_at,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_cookie(value: str) -> str | None:
    """Verify a cookie value and return the session token it carries.

    Returns None on a bad signature, an expired value, or a missing claim.
    Callers treat None as unauthenticated.
    """
    try:
        payload = jwt.decode(value, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    if not sid or "sub" not in payload:
        return None
    return sid


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, value: str, max_age: int | None) -> None:
    """Write the signed session cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": sent on top-level navigations, not on cross-site POSTs.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: None makes a browser-session cookie (remember_me=False).
    """
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
