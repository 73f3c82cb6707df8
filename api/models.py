"""
API request and response models for the Better Demo auth API.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON field names are camelCase (emailVerified, callbackURL, ...). Models use
an alias generator so Python attribute names stay snake_case.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import AuthSession, Session, User
from core.validation import MAX_EMAIL_LENGTH, is_valid_email


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _EmailBody(_CamelModel):
    """Shared email handling: trimmed, format-checked, lower-cased."""

    email: str = Field(max_length=MAX_EMAIL_LENGTH)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_email(value):
            raise ValueError("Invalid email")
        return value.lower()


class SignInEmailRequest(_EmailBody):
    """Request body for POST /api/auth/sign-in/email."""

    password: str = Field(min_length=1, max_length=128)
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")
    remember_me: bool = True


class SignUpEmailRequest(_EmailBody):
    """Request body for POST /api/auth/sign-up/email.

    Password length is enforced by AuthService so the API reports the same
    PASSWORD_TOO_SHORT / PASSWORD_TOO_LONG codes regardless of entry point.
    """

    name: str = Field(min_length=1, max_length=100)
    password: str
    image: Optional[str] = None
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")


class SocialSignInRequest(_CamelModel):
    """Request body for POST /api/auth/sign-in/social."""

    provider: str = Field(min_length=1, max_length=30)
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    id: str
    name: str
    email: str
    email_verified: bool
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            image=user.image,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class SessionInfoResponse(_CamelModel):
    id: str
    user_id: str
    token: str
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionInfoResponse":
        return cls(
            id=session.id,
            user_id=session.user_id,
            token=session.token,
            expires_at=session.expires_at,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionResponse(_CamelModel):
    """Body of GET /api/auth/get-session when a session exists."""

    session: SessionInfoResponse
    user: UserResponse

    @classmethod
    def from_auth_session(cls, auth_session: AuthSession) -> "SessionResponse":
        return cls(
            session=SessionInfoResponse.from_session(auth_session.session),
            user=UserResponse.from_user(auth_session.user),
        )


class SignInResponse(_CamelModel):
    redirect: bool
    url: Optional[str] = None
    token: str
    user: UserResponse


class SignUpResponse(_CamelModel):
    token: str
    user: UserResponse


class SocialSignInResponse(_CamelModel):
    url: str
    redirect: bool = True


class SignOutResponse(_CamelModel):
    success: bool


class OAuthProviderInfo(BaseModel):
    name: str
    label: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = {}


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
