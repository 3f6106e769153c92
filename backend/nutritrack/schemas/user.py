"""User and authentication schemas"""

import base64
import binascii
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class AccessLevel(IntEnum):
    """Ordered access levels; a route requires a minimum level"""
    NO_ACCESS = 0
    TRIAL_USER = 1
    REGULAR_USER = 3
    EDITOR = 4
    MODERATOR = 5
    ADMIN = 6


def _decode_encoded_fields(data: Any, fields: tuple) -> Any:
    """Base64-decode the given fields when the client sent ``encoded: true``."""
    if not isinstance(data, dict) or not data.get("encoded"):
        return data
    decoded = dict(data)
    for name in fields:
        value = decoded.get(name)
        if not isinstance(value, str):
            continue
        try:
            decoded[name] = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise ValueError("Invalid encoded data")
    return decoded


class UserLogin(BaseModel):
    """User login schema; username may also be an email"""
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    encoded: bool = False

    @model_validator(mode="before")
    @classmethod
    def decode_fields(cls, data: Any) -> Any:
        return _decode_encoded_fields(data, ("username", "password"))


class UserRegister(BaseModel):
    """User registration schema"""
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255, pattern=r"^\S+@\S+\.\S+$")
    password: str = Field(..., min_length=8)
    encoded: bool = False

    @model_validator(mode="before")
    @classmethod
    def decode_fields(cls, data: Any) -> Any:
        return _decode_encoded_fields(data, ("username", "email", "password"))

    @field_validator("username", "email")
    @classmethod
    def normalize(cls, v):
        """Identifiers are case-insensitive"""
        return v.strip().lower()


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    username: str
    email: str
    access_level: int
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUserResponse(UserResponse):
    """User details visible to administrators"""
    is_blocked: bool
    failed_login_attempts: int
    locked_until: Optional[datetime] = None


class LoginResponse(BaseModel):
    """Login result; tokens travel only in cookies"""
    success: bool = True
    message: str = "Logged in successfully"
    user: UserResponse


class AuthStatusResponse(BaseModel):
    """Authentication status of the current request"""
    authenticated: bool
    user: Optional[UserResponse] = None


class BlockUserRequest(BaseModel):
    """Block or unblock a user"""
    blocked: bool = True
