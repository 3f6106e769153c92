"""Typed outcomes for expected authentication results.

Services return these instead of raising; exceptions are reserved for
infrastructure failures. The API layer maps failures to HTTP errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class AuthFailure(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_BLOCKED = "account_blocked"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a login, issuance or refresh attempt."""

    failure: Optional[AuthFailure] = None
    user: Any = None
    tokens: Optional[TokenPair] = None
    minutes_remaining: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, user: Any = None, tokens: Optional[TokenPair] = None) -> "AuthResult":
        return cls(user=user, tokens=tokens)

    @classmethod
    def fail(cls, failure: AuthFailure, *, minutes_remaining: Optional[int] = None) -> "AuthResult":
        return cls(failure=failure, minutes_remaining=minutes_remaining)
