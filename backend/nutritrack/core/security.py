"""Security utilities - password hashing, JWT signing and verification"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated, Literal, Optional, Union
import base64
import hashlib
import hmac
import logging
import secrets

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from nutritrack.config import Settings
from nutritrack.services.results import AuthFailure

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Salted bcrypt hashing with an application-wide pepper."""

    def __init__(self, pepper: str = "", rounds: int = 10):
        self._pepper = pepper
        self._rounds = rounds

    def _peppered(self, password: str) -> bytes:
        # bcrypt reads at most 72 bytes; the 44-byte HMAC digest keeps the pepper for any length
        digest = hmac.new(self._pepper.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).digest()
        return base64.b64encode(digest)

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt

        Args:
            password: Plain text password

        Returns:
            str: Hash with the salt and cost factor embedded
        """
        return bcrypt.hashpw(
            self._peppered(password),
            bcrypt.gensalt(rounds=self._rounds)
        ).decode("utf-8")

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash

        Args:
            password: Plain text password
            hashed_password: Stored hash

        Returns:
            bool: True if password matches. Malformed hashes count as a mismatch.
        """
        try:
            return bcrypt.checkpw(
                self._peppered(password),
                hashed_password.encode("utf-8")
            )
        except Exception as exc:
            logger.warning("Password verification error: %s", exc)
            return False

    @staticmethod
    def is_hashed(value: Optional[str]) -> bool:
        """Whether the value already looks like a bcrypt hash ($2a$/$2b$/$2y$, 60 chars)"""
        return bool(value) and len(value) == 60 and value[:4] in ("$2a$", "$2b$", "$2y$")


class AccessClaims(BaseModel):
    """Claims carried by an access token."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["access"] = "access"
    user_id: int = Field(alias="userId")
    username: str
    jti: str
    iat: int
    exp: int


class RefreshClaims(BaseModel):
    """Claims carried by a refresh token."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["refresh"] = "refresh"
    user_id: int = Field(alias="userId")
    family_id: str = Field(alias="familyId")
    jti: str
    iat: int
    exp: int


TokenClaims = Annotated[Union[AccessClaims, RefreshClaims], Field(discriminator="type")]
_claims_adapter = TypeAdapter(TokenClaims)


@dataclass(frozen=True)
class DecodeResult:
    claims: Optional[Union[AccessClaims, RefreshClaims]] = None
    failure: Optional[AuthFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class TokenCodec:
    """Signs and verifies access and refresh tokens with independent secrets and lifetimes."""

    def __init__(self, settings: Settings):
        self._algorithm = settings.ALGORITHM
        self._access_secret = settings.JWT_SECRET
        self._refresh_secret = settings.get_refresh_secret()
        self.access_ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    @staticmethod
    def _timestamps(ttl: timedelta) -> tuple:
        now = datetime.now(timezone.utc)
        return int(now.timestamp()), int((now + ttl).timestamp())

    def sign_access(self, user_id: int, username: str, expires_delta: Optional[timedelta] = None) -> str:
        iat, exp = self._timestamps(expires_delta if expires_delta is not None else self.access_ttl)
        claims = AccessClaims(
            user_id=user_id,
            username=username,
            jti=secrets.token_urlsafe(16),
            iat=iat,
            exp=exp,
        )
        return jwt.encode(claims.model_dump(by_alias=True), self._access_secret, algorithm=self._algorithm)

    def sign_refresh(self, user_id: int, family_id: str, expires_delta: Optional[timedelta] = None) -> str:
        iat, exp = self._timestamps(expires_delta if expires_delta is not None else self.refresh_ttl)
        claims = RefreshClaims(
            user_id=user_id,
            family_id=family_id,
            jti=secrets.token_urlsafe(16),
            iat=iat,
            exp=exp,
        )
        return jwt.encode(claims.model_dump(by_alias=True), self._refresh_secret, algorithm=self._algorithm)

    def _verify(self, token: str, secret: str, expected_type: str) -> DecodeResult:
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            return DecodeResult(failure=AuthFailure.TOKEN_EXPIRED)
        except JWTError:
            return DecodeResult(failure=AuthFailure.TOKEN_INVALID)

        try:
            claims = _claims_adapter.validate_python(payload)
        except PydanticValidationError:
            return DecodeResult(failure=AuthFailure.TOKEN_INVALID)

        if claims.type != expected_type:
            return DecodeResult(failure=AuthFailure.TOKEN_INVALID)
        return DecodeResult(claims=claims)

    def verify_access(self, token: str) -> DecodeResult:
        return self._verify(token, self._access_secret, "access")

    def verify_refresh(self, token: str) -> DecodeResult:
        return self._verify(token, self._refresh_secret, "refresh")
