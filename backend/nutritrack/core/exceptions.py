"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    # When set, the error response also clears the auth cookies
    clears_session = False

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Unknown user or wrong password; the message never says which"""
    def __init__(self):
        super().__init__("Invalid credentials")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenInvalidError(AuthenticationError):
    """JWT token is invalid"""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class AccountLockedError(AuthenticationError):
    """Account is locked due to failed login attempts"""
    def __init__(self, minutes_remaining: int):
        unit = "minute" if minutes_remaining == 1 else "minutes"
        super().__init__(
            f"Account locked due to too many failed login attempts. "
            f"Try again in {minutes_remaining} {unit}.",
            details={"minutes_remaining": minutes_remaining}
        )


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient access level"):
        super().__init__(message, status_code=403)


class AccountBlockedError(AuthorizationError):
    """Account has been blocked by an administrator"""
    def __init__(self):
        super().__init__("Account blocked")


class SuspiciousActivityError(AuthorizationError):
    """Refresh token reuse detected; the whole token family was revoked"""
    clears_session = True

    def __init__(self):
        super().__init__("Session terminated due to suspicious activity. Please log in again.")


class SessionRefreshError(AuthorizationError):
    """Refresh token rejected on the explicit refresh endpoint"""
    clears_session = True

    def __init__(self, message: str = "Please log in again"):
        super().__init__(message)


class CsrfMismatchError(AuthorizationError):
    """Double-submit CSRF token missing or mismatched"""
    def __init__(self):
        super().__init__("CSRF token invalid or missing")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class DuplicateUserError(BaseAPIException):
    """Username or email already registered"""
    def __init__(self):
        super().__init__("Username or email already exists", status_code=409)


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(
        self,
        message: str = "Too many requests, please try again later",
        retry_after: Optional[int] = None
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(message, status_code=429, details=details, headers=headers)
