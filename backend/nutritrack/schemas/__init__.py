"""Pydantic schemas for API validation"""

from nutritrack.schemas.user import (
    AccessLevel,
    UserLogin,
    UserRegister,
    UserResponse,
    AdminUserResponse,
    LoginResponse,
    AuthStatusResponse,
    BlockUserRequest,
)
from nutritrack.schemas.response import APIResponse, CountResponse

__all__ = [
    "AccessLevel", "UserLogin", "UserRegister", "UserResponse", "AdminUserResponse",
    "LoginResponse", "AuthStatusResponse", "BlockUserRequest",
    "APIResponse", "CountResponse"
]
