"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Dataclasses own domain shape; the
store and the service do the work. to_dict() produces the camelCase payload
shared by the JSON API and the dashboard's raw session view.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """An identity that can sign in with a password, a provider, or both.

    email is stored lower-cased and is unique. email_verified is True only when
    an OAuth provider has vouched for the address; password sign-ups start
    unverified.
    """

    name: str
    email: str
    email_verified: bool = False
    image: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "emailVerified": self.email_verified,
            "image": self.image,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class Account:
    """A credential linked to a user.

    provider_id is "credential" for email/password accounts (account_id is the
    user id and password holds the bcrypt hash) or the OAuth provider name
    (account_id is the provider's stable subject id, password is None).
    """

    user_id: str
    provider_id: str
    account_id: str
    password: str | None = None  # bcrypt hash, credential accounts only
    access_token: str | None = None
    scope: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Session:
    """A server-side session row. token is the opaque value named by the cookie."""

    user_id: str
    token: str
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "token": self.token,
            "expiresAt": _iso(self.expires_at),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class AuthSession:
    """What get_session() hands back: the session row plus its user."""

    session: Session
    user: User

    def to_dict(self) -> dict:
        return {"session": self.session.to_dict(), "user": self.user.to_dict()}


@dataclass
class OAuthProfile:
    """Provider-neutral identity extracted from an OAuth token response."""

    provider: str
    subject: str  # provider's stable user ID
    email: str
    email_verified: bool
    name: str | None = None
    image: str | None = None
    access_token: str | None = None
    scope: str | None = None
