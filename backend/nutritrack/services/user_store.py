"""Credential store - persistence of user records and lockout counters."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, inspect, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from nutritrack.core.exceptions import DuplicateUserError
from nutritrack.core.security import PasswordHasher
from nutritrack.models.user import User


class UserStore:
    """SQLAlchemy-backed user lookups and single-statement lockout updates."""

    def __init__(self, session_factory: sessionmaker, hasher: PasswordHasher):
        self._session_factory = session_factory
        self._hasher = hasher

    @staticmethod
    def _normalize(identifier: str) -> str:
        return (identifier or "").strip().lower()

    def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Find a user by username or email (case-insensitive)."""
        normalized = self._normalize(identifier)
        if not normalized:
            return None
        with self._session_factory() as db:
            return db.execute(
                select(User).where(or_(User.username == normalized, User.email == normalized))
            ).scalars().first()

    def find_by_id(self, user_id: int) -> Optional[User]:
        with self._session_factory() as db:
            return db.get(User, user_id)

    def save(self, user: User) -> User:
        """
        Persist a user, hashing the password first when it is new or changed.

        Raises:
            DuplicateUserError: If the username or email is already taken
        """
        state = inspect(user)
        if state.transient or state.pending or state.attrs.password.history.has_changes():
            user.password = self._hasher.hash(user.password)

        with self._session_factory() as db:
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise DuplicateUserError()
            db.refresh(user)
            return user

    def increment_failed_attempts(self, user_id: int, attempted_at: datetime) -> int:
        """Atomically bump the failed-login counter and return the new count."""
        with self._session_factory() as db:
            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    failed_login_attempts=User.failed_login_attempts + 1,
                    last_failed_login=attempted_at,
                )
            )
            db.commit()
            count = db.execute(
                select(User.failed_login_attempts).where(User.id == user_id)
            ).scalar_one()
            return count

    def update_lockout_state(
        self,
        user_id: int,
        *,
        count: int,
        last_attempt: Optional[datetime],
        locked_until: Optional[datetime],
    ) -> None:
        with self._session_factory() as db:
            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    failed_login_attempts=count,
                    last_failed_login=last_attempt,
                    locked_until=locked_until,
                )
            )
            db.commit()

    def record_login(self, user_id: int, logged_in_at: datetime) -> None:
        with self._session_factory() as db:
            db.execute(update(User).where(User.id == user_id).values(last_login=logged_in_at))
            db.commit()

    def set_blocked(self, user_id: int, blocked: bool) -> bool:
        """Returns False when no such user exists."""
        with self._session_factory() as db:
            result = db.execute(update(User).where(User.id == user_id).values(is_blocked=blocked))
            db.commit()
            return result.rowcount > 0

    def list_users(self) -> List[User]:
        with self._session_factory() as db:
            return list(db.execute(select(User).order_by(User.id)).scalars().all())

    def count_active_users(self) -> int:
        """Number of users that are not blocked."""
        with self._session_factory() as db:
            return db.execute(
                select(func.count(User.id)).where(User.is_blocked == False)  # noqa: E712
            ).scalar_one()
