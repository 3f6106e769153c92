"""Authentication cookie transport.

Cookie names, paths and flags are part of the client contract.
"""

from datetime import timedelta

from fastapi import Response

from nutritrack.services.results import TokenPair

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
ACCESS_COOKIE_PATH = "/"
# Only the auth endpoints ever see the refresh token.
REFRESH_COOKIE_PATH = "/api/auth"


def set_auth_cookies(
    response: Response,
    tokens: TokenPair,
    access_ttl: timedelta,
    refresh_ttl: timedelta,
) -> None:
    """Set the access cookie, and the refresh cookie when a new refresh token exists."""
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=int(access_ttl.total_seconds()),
        path=ACCESS_COOKIE_PATH,
        secure=True,
        httponly=True,
        samesite="strict",
    )
    if tokens.refresh_token:
        response.set_cookie(
            REFRESH_COOKIE,
            tokens.refresh_token,
            max_age=int(refresh_ttl.total_seconds()),
            path=REFRESH_COOKIE_PATH,
            secure=True,
            httponly=True,
            samesite="strict",
        )


def clear_auth_cookies(response: Response) -> None:
    """Clear both cookies with the same attributes used when setting them."""
    response.delete_cookie(
        ACCESS_COOKIE, path=ACCESS_COOKIE_PATH, secure=True, httponly=True, samesite="strict"
    )
    response.delete_cookie(
        REFRESH_COOKIE, path=REFRESH_COOKIE_PATH, secure=True, httponly=True, samesite="strict"
    )
