"""
web/toasts.py -- One-shot notifications carried in the Starlette session.

push_toast() queues a message on the signed session cookie; the next page
render pops and shows it (base.html calls pop_toasts via a Jinja2 global).
A toast queued right before a redirect survives the redirect; a toast queued
before a render in the same request shows up in that render.
"""

from __future__ import annotations

from fastapi import Request

_SESSION_KEY = "_toasts"

KINDS = ("success", "error")


def push_toast(request: Request, kind: str, message: str) -> None:
    if kind not in KINDS:
        raise ValueError(f"Unknown toast kind: {kind!r}")
    queued = list(request.session.get(_SESSION_KEY, []))
    queued.append({"kind": kind, "message": message})
    request.session[_SESSION_KEY] = queued


def pop_toasts(request: Request) -> list[dict]:
    return request.session.pop(_SESSION_KEY, [])
