"""Refresh token ledger - durable record of issued refresh tokens."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import sessionmaker

from nutritrack.core.clock import Clock, utcnow
from nutritrack.models.security import FAMILY_REVOKED, LOGOUT_EVERYWHERE, RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenLedger:
    """Issue, look up and revoke refresh tokens grouped into families.

    Every mutation is a single statement committed on its own, so concurrent
    requests never need a multi-step transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        suspicious_threshold: int = 2,
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self._suspicious_threshold = suspicious_threshold
        self._clock = clock

    def issue(self, token: str, user_id: int, family_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(
            token=token,
            user_id=user_id,
            family_id=family_id,
            expires_at=expires_at,
            is_revoked=False,
        )
        with self._session_factory() as db:
            db.add(record)
            db.commit()
            db.refresh(record)
        return record

    def find(self, token: str) -> Optional[RefreshToken]:
        with self._session_factory() as db:
            return db.execute(
                select(RefreshToken).where(RefreshToken.token == token)
            ).scalars().first()

    def is_active(self, record: RefreshToken) -> bool:
        return record.is_active(self._clock())

    def revoke(self, token: str, replaced_by_token: Optional[str] = None) -> Optional[RefreshToken]:
        """
        Revoke a single token. Revoking an already revoked token leaves the
        original revocation untouched.

        Returns:
            The record, or None if the token is unknown
        """
        with self._session_factory() as db:
            db.execute(
                update(RefreshToken)
                .where(RefreshToken.token == token, RefreshToken.is_revoked == False)  # noqa: E712
                .values(
                    is_revoked=True,
                    revoked_at=self._clock(),
                    replaced_by_token=replaced_by_token,
                )
            )
            db.commit()
            return db.execute(
                select(RefreshToken).where(RefreshToken.token == token)
            ).scalars().first()

    def _revoke_where(self, sentinel: str, *criteria) -> int:
        with self._session_factory() as db:
            result = db.execute(
                update(RefreshToken)
                .where(RefreshToken.is_revoked == False, *criteria)  # noqa: E712
                .values(is_revoked=True, revoked_at=self._clock(), replaced_by_token=sentinel)
            )
            db.commit()
            return result.rowcount

    def revoke_family(self, user_id: int, family_id: str) -> int:
        count = self._revoke_where(
            FAMILY_REVOKED,
            RefreshToken.user_id == user_id,
            RefreshToken.family_id == family_id,
        )
        logger.warning("Revoked token family %s for user %s (%d tokens)", family_id, user_id, count)
        return count

    def revoke_all_for_user(self, user_id: int) -> int:
        count = self._revoke_where(LOGOUT_EVERYWHERE, RefreshToken.user_id == user_id)
        logger.info("Revoked all refresh tokens for user %s (%d tokens)", user_id, count)
        return count

    def count_active(self, user_id: int, family_id: str) -> int:
        with self._session_factory() as db:
            return db.execute(
                select(func.count(RefreshToken.id)).where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.family_id == family_id,
                    RefreshToken.is_revoked == False,  # noqa: E712
                    RefreshToken.expires_at > self._clock(),
                )
            ).scalar_one()

    def detect_suspicious_activity(self, user_id: int, family_id: str) -> bool:
        """
        Rotation keeps one active token per family. Concurrent use of a stolen
        token alongside the legitimate client leaves extra active tokens
        behind; crossing the threshold is treated as an attack.
        """
        return self.count_active(user_id, family_id) > self._suspicious_threshold

    def purge_expired(self) -> int:
        """Delete expired rows, the way a TTL index would."""
        with self._session_factory() as db:
            result = db.execute(delete(RefreshToken).where(RefreshToken.expires_at <= self._clock()))
            db.commit()
            return result.rowcount
