"""Authentication routes"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from nutritrack.api.deps import (
    AuthenticatedUser,
    authenticate_request,
    get_services,
    rate_limit,
    require_auth,
    verify_csrf,
)
from nutritrack.core.cookies import ACCESS_COOKIE, REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies
from nutritrack.core.csrf import generate_csrf_token, set_csrf_cookie
from nutritrack.core.exceptions import (
    AccountBlockedError,
    AccountLockedError,
    AuthenticationError,
    BaseAPIException,
    InvalidCredentialsError,
    SessionRefreshError,
    SuspiciousActivityError,
    TokenExpiredError,
    TokenInvalidError,
)
from nutritrack.schemas.response import APIResponse
from nutritrack.schemas.user import (
    AccessLevel,
    AuthStatusResponse,
    LoginResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from nutritrack.services.container import Services
from nutritrack.services.results import AuthFailure, AuthResult

logger = logging.getLogger(__name__)

router = APIRouter()


def exception_for_failure(result: AuthResult) -> BaseAPIException:
    """Map an expected auth failure to the API error it is reported as"""
    failure = result.failure
    if failure == AuthFailure.ACCOUNT_LOCKED:
        return AccountLockedError(result.minutes_remaining or 1)
    if failure == AuthFailure.ACCOUNT_BLOCKED:
        return AccountBlockedError()
    if failure == AuthFailure.SUSPICIOUS_ACTIVITY:
        return SuspiciousActivityError()
    if failure == AuthFailure.TOKEN_EXPIRED:
        return TokenExpiredError()
    if failure == AuthFailure.TOKEN_INVALID:
        return TokenInvalidError()
    return InvalidCredentialsError()


@router.get(
    "/csrf-token",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit("query"))],
)
def issue_csrf_token():
    """
    Provide a fresh CSRF token in a script-readable cookie

    Returns:
        Empty 204 response carrying the csrf_token cookie
    """
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    set_csrf_cookie(response, generate_csrf_token())
    return response


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("auth")), Depends(verify_csrf)],
)
def register(
    user_data: UserRegister,
    services: Services = Depends(get_services),
):
    """
    Register a new user

    Args:
        user_data: Username, email and password
        services: Application services

    Returns:
        Created user
    """
    user = services.accounts.register(
        user_data.username,
        user_data.email,
        user_data.password,
        access_level=AccessLevel.TRIAL_USER,
    )
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit("auth")), Depends(verify_csrf)],
)
def login(
    credentials: UserLogin,
    response: Response,
    services: Services = Depends(get_services),
):
    """
    Login endpoint - authenticate user and set session cookies

    Args:
        credentials: Username (or email) and password
        response: Response receiving the auth cookies
        services: Application services

    Returns:
        Logged in user
    """
    result = services.accounts.authenticate(credentials.username, credentials.password)
    if not result.ok:
        raise exception_for_failure(result)

    issued = services.tokens.issue_tokens(result.user)
    if not issued.ok:
        raise exception_for_failure(issued)

    set_auth_cookies(response, issued.tokens, services.codec.access_ttl, services.codec.refresh_ttl)
    return LoginResponse(user=UserResponse.model_validate(result.user))


@router.post(
    "/refresh",
    response_model=APIResponse,
    dependencies=[Depends(rate_limit("refresh")), Depends(verify_csrf)],
)
def refresh_tokens(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
):
    """
    Rotate the refresh token and issue a new access token

    Returns:
        Success message; the new tokens travel in cookies
    """
    current_refresh_token = request.cookies.get(REFRESH_COOKIE)
    if not current_refresh_token:
        raise AuthenticationError("Refresh token is required")

    result = services.tokens.refresh_session(current_refresh_token, rotate=True)
    if not result.ok:
        logger.info("Refresh rejected: %s", result.failure.value)
        if result.failure in (AuthFailure.SUSPICIOUS_ACTIVITY, AuthFailure.ACCOUNT_BLOCKED):
            raise exception_for_failure(result)
        raise SessionRefreshError()

    set_auth_cookies(response, result.tokens, services.codec.access_ttl, services.codec.refresh_ttl)
    return APIResponse(message="Tokens refreshed successfully")


@router.post(
    "/logout",
    response_model=APIResponse,
    dependencies=[Depends(rate_limit("mutation")), Depends(verify_csrf)],
)
def logout(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
):
    """
    Logout endpoint - revoke the current refresh token and clear cookies

    Safe to call repeatedly; an unknown or already revoked token is ignored.
    """
    revoked = services.tokens.logout(request.cookies.get(REFRESH_COOKIE))
    clear_auth_cookies(response)
    return APIResponse(
        message="Logged out successfully",
        data={"refresh_token_revoked": revoked},
    )


@router.post(
    "/logout-everywhere",
    response_model=APIResponse,
    dependencies=[Depends(rate_limit("mutation")), Depends(verify_csrf)],
)
def logout_everywhere(
    response: Response,
    current_user: AuthenticatedUser = Depends(require_auth(AccessLevel.TRIAL_USER)),
    services: Services = Depends(get_services),
):
    """
    Revoke every refresh token of the current user

    Returns:
        Number of sessions ended
    """
    revoked = services.tokens.logout_everywhere(current_user.user_id)
    clear_auth_cookies(response)
    return APIResponse(
        message="Logged out successfully from all devices",
        data={"revoked_sessions": revoked},
    )


@router.get(
    "/status",
    response_model=AuthStatusResponse,
    dependencies=[Depends(rate_limit("status"))],
)
def auth_status(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
):
    """
    Report whether the request is authenticated, refreshing the access token if needed

    Returns:
        Authentication flag and minimal user data
    """
    if not request.cookies.get(ACCESS_COOKIE) and not request.cookies.get(REFRESH_COOKIE):
        return AuthStatusResponse(authenticated=False)

    try:
        identity = authenticate_request(request, response, services)
    except AuthenticationError:
        return AuthStatusResponse(authenticated=False)
    except Exception:
        logger.exception("Unexpected error while checking auth status")
        return AuthStatusResponse(authenticated=False)

    user = services.users.find_by_id(identity.user_id)
    if not user or user.is_blocked:
        return AuthStatusResponse(authenticated=False)

    return AuthStatusResponse(authenticated=True, user=UserResponse.model_validate(user))
