"""Stateless double-submit CSRF protection.

A random token is mirrored into a script-readable cookie; same-origin
JavaScript echoes it back in a header on every state-changing request.
Nothing is stored server-side.
"""

import hmac
import secrets
from typing import Optional

from fastapi import Response

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "x-csrf-token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token() -> str:
    """
    Generate CSRF token

    Returns:
        str: 64 hex characters from 32 random bytes
    """
    return secrets.token_hex(32)


def set_csrf_cookie(response: Response, token: str) -> None:
    # Session cookie, deliberately readable by JavaScript.
    response.set_cookie(
        CSRF_COOKIE,
        token,
        path="/",
        secure=True,
        httponly=False,
        samesite="strict",
    )


def csrf_tokens_match(method: str, cookie_token: Optional[str], header_token: Optional[str]) -> bool:
    """Safe methods always pass; everything else needs identical cookie and header values."""
    if method.upper() in SAFE_METHODS:
        return True
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8"))
