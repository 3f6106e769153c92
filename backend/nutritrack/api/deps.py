"""API dependencies - rate limiting, CSRF, authentication and authorization"""

from dataclasses import dataclass, replace
from typing import Callable, Optional
import logging

from fastapi import Depends, Request, Response

from nutritrack.core.cookies import ACCESS_COOKIE, REFRESH_COOKIE, set_auth_cookies
from nutritrack.core.csrf import CSRF_COOKIE, CSRF_HEADER, csrf_tokens_match
from nutritrack.core.exceptions import (
    AccountBlockedError,
    AuthenticationError,
    AuthorizationError,
    BaseAPIException,
    CsrfMismatchError,
    RateLimitExceededError,
)
from nutritrack.services.container import Services

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity established for the current request"""
    user_id: int
    username: str
    access_level: Optional[int] = None


def get_services(request: Request) -> Services:
    """Services built once for this application"""
    return request.app.state.services


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limit(policy_name: str) -> Callable[..., None]:
    """
    Build a dependency enforcing a named rate-limit policy per client address

    Args:
        policy_name: One of auth, refresh, status, mutation, query

    Returns:
        FastAPI dependency raising RateLimitExceededError once the window is full
    """
    def dependency(request: Request, services: Services = Depends(get_services)) -> None:
        policy = services.rate_policies[policy_name]
        key = f"{policy.name}:{client_ip(request)}"
        if not services.rate_limiter.allow(key, policy.limit, policy.window_seconds):
            logger.warning("Rate limit %s exceeded for %s", policy.name, client_ip(request))
            raise RateLimitExceededError(
                policy.message,
                retry_after=services.rate_limiter.retry_after(key, policy.window_seconds),
            )

    return dependency


def verify_csrf(request: Request) -> None:
    """Reject state-changing requests whose CSRF header does not echo the cookie"""
    if not csrf_tokens_match(
        request.method,
        request.cookies.get(CSRF_COOKIE),
        request.headers.get(CSRF_HEADER),
    ):
        raise CsrfMismatchError()


def _silent_refresh(
    refresh_token: Optional[str],
    response: Response,
    services: Services,
) -> AuthenticatedUser:
    """Mint a new access token from the refresh cookie without rotating it"""
    if not refresh_token:
        raise AuthenticationError()

    result = services.tokens.refresh_session(refresh_token, rotate=False)
    if not result.ok:
        logger.info("Silent refresh failed: %s", result.failure.value)
        raise AuthenticationError()

    set_auth_cookies(response, result.tokens, services.codec.access_ttl, services.codec.refresh_ttl)
    user = result.user
    return AuthenticatedUser(user_id=user.id, username=user.username, access_level=user.access_level)


def authenticate_request(request: Request, response: Response, services: Services) -> AuthenticatedUser:
    """
    Establish identity from the auth cookies

    Raises:
        AuthenticationError: If neither cookie yields a valid identity
    """
    access_token = request.cookies.get(ACCESS_COOKIE)
    refresh_token = request.cookies.get(REFRESH_COOKIE)

    if not access_token and not refresh_token:
        raise AuthenticationError()

    if access_token:
        decoded = services.codec.verify_access(access_token)
        if decoded.ok:
            return AuthenticatedUser(user_id=decoded.claims.user_id, username=decoded.claims.username)

    return _silent_refresh(refresh_token, response, services)


def require_auth(min_access_level: int = 0) -> Callable[..., AuthenticatedUser]:
    """
    Build the authentication dependency for a route

    Args:
        min_access_level: Minimum access level; 0 accepts any authenticated user

    Returns:
        FastAPI dependency resolving to the AuthenticatedUser
    """
    def dependency(
        request: Request,
        response: Response,
        services: Services = Depends(get_services),
    ) -> AuthenticatedUser:
        try:
            identity = authenticate_request(request, response, services)

            if min_access_level > 0:
                # Access level and block state always come from the store, never the token
                user = services.users.find_by_id(identity.user_id)
                if not user:
                    raise AuthenticationError("User not found")
                if user.is_blocked:
                    raise AccountBlockedError()
                if user.access_level < min_access_level:
                    raise AuthorizationError()
                identity = replace(identity, access_level=user.access_level)
        except BaseAPIException:
            raise
        except Exception:
            logger.exception("Unexpected error during authentication")
            raise AuthenticationError()

        request.state.user = identity
        return identity

    return dependency
