"""Per-application service wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from nutritrack.config import Settings
from nutritrack.core.database import create_session_factory
from nutritrack.core.security import PasswordHasher, TokenCodec
from nutritrack.services.rate_limiter import RateLimiter, RateLimitPolicy, build_policies, build_rate_limiter
from nutritrack.services.token_ledger import RefreshTokenLedger
from nutritrack.services.token_service import TokenService
from nutritrack.services.user_service import UserService
from nutritrack.services.user_store import UserStore


@dataclass
class Services:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    hasher: PasswordHasher
    codec: TokenCodec
    users: UserStore
    ledger: RefreshTokenLedger
    tokens: TokenService
    accounts: UserService
    rate_limiter: RateLimiter
    rate_policies: Dict[str, RateLimitPolicy]


def build_services(settings: Settings) -> Services:
    """Construct every service once, sharing the same store and ledger."""
    engine, session_factory = create_session_factory(settings)
    hasher = PasswordHasher(settings.PASSWORD_PEPPER, settings.PASSWORD_SALT_ROUNDS)
    codec = TokenCodec(settings)
    users = UserStore(session_factory, hasher)
    ledger = RefreshTokenLedger(
        session_factory,
        suspicious_threshold=settings.SUSPICIOUS_ACTIVE_TOKEN_THRESHOLD,
    )
    tokens = TokenService(
        codec,
        ledger,
        users,
        revoke_family_on_revoked_reuse=settings.REVOKE_FAMILY_ON_REVOKED_REUSE,
    )
    accounts = UserService(
        users,
        hasher,
        max_failed_attempts=settings.MAX_FAILED_LOGIN_ATTEMPTS,
        lockout_minutes=settings.LOCKOUT_DURATION_MINUTES,
    )
    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        hasher=hasher,
        codec=codec,
        users=users,
        ledger=ledger,
        tokens=tokens,
        accounts=accounts,
        rate_limiter=build_rate_limiter(settings),
        rate_policies=build_policies(settings),
    )
