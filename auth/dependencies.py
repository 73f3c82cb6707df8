"""
auth/dependencies.py -- Request helpers for authentication.

Both helpers delegate to AuthService.get_session(request.headers), which
accepts the signed session cookie (browsers) or an Authorization: Bearer
header carrying the same value (API clients).

try_get_session() is the soft lookup: it returns None when unauthenticated
and leaves the redirect-or-null decision to the route.

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI request handling.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import AuthSession
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def try_get_session(request: Request) -> AuthSession | None:
    """Return the request's live session, or None. Never raises for bad credentials."""
    return get_auth_service(request).get_session(request.headers)
