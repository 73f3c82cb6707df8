"""
web/forms.py -- Validation schemas for the sign-in and sign-up forms.

These checks exist for the user's benefit: a bad email or a weak password is
reported next to the field without a round trip to the auth service. The
auth service enforces its own rules independently (see auth/service.py).

Each field reports one message -- the first rule it breaks, in the order the
rules are listed below.
"""

import re

from pydantic import BaseModel, ValidationError, field_validator

from core.validation import MAX_EMAIL_LENGTH, is_valid_email

_PASSWORD_STRENGTH_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])")


def _check_email(value: str) -> str:
    if not is_valid_email(value):
        raise ValueError("Please enter a valid email")
    if len(value) > MAX_EMAIL_LENGTH:
        raise ValueError(f"Email must be less than {MAX_EMAIL_LENGTH} characters")
    return value


class SignInForm(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 1:
            raise ValueError("Password is required")
        if len(value) > 100:
            raise ValueError("Password must be less than 100 characters")
        return value


class SignUpForm(BaseModel):
    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(value) > 50:
            raise ValueError("Name must be less than 50 characters")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters")
        if len(value) > 100:
            raise ValueError("Password must be less than 100 characters")
        if not _PASSWORD_STRENGTH_RE.match(value):
            raise ValueError("Password must contain uppercase, lowercase, and number")
        return value


def form_errors(exc: ValidationError) -> dict[str, str]:
    """Map a ValidationError to {field: message}, one message per field.

    Messages raised by the validators above are used verbatim (pydantic's
    "Value error, " prefix is dropped).
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__all__"
        if field in errors:
            continue
        ctx_error = err.get("ctx", {}).get("error")
        errors[field] = str(ctx_error) if ctx_error is not None else err["msg"]
    return errors
