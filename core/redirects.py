"""
core/redirects.py -- Callback URL validation shared by the API and web layers.

Layer rule: core/ is the kernel. No imports from api/, web/, or auth/.
"""

from __future__ import annotations

DEFAULT_CALLBACK_URL = "/dashboard"


def safe_callback_url(callback_url: str | None, default: str = DEFAULT_CALLBACK_URL) -> str:
    """Validate a post-authentication redirect target. Only accept relative paths.

    Prevents open redirect attacks where an attacker crafts a URL like:
      /sign-in?callbackURL=https://attacker.com  or  ?callbackURL=//attacker.com

    Both would redirect off-site after sign-in. We only allow paths that:
    - Start with "/" (relative, server-local)
    - Do NOT start with "//" or "/\\" (browsers treat both as protocol-relative)
    """
    if callback_url and callback_url.startswith("/") and not callback_url.startswith(("//", "/\\")):
        return callback_url
    return default
