"""User service - handles registration and authentication with lockout"""

from datetime import timedelta
import logging
import math

from nutritrack.core.clock import Clock, naive_utc, utcnow
from nutritrack.core.metrics import AUTH_EVENTS
from nutritrack.core.security import PasswordHasher
from nutritrack.models.user import User
from nutritrack.services.results import AuthFailure, AuthResult
from nutritrack.services.user_store import UserStore

logger = logging.getLogger(__name__)


class UserService:
    """Service for user registration and login"""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        *,
        max_failed_attempts: int = 5,
        lockout_minutes: int = 15,
        clock: Clock = utcnow,
    ):
        self.store = store
        self._hasher = hasher
        self.max_failed_attempts = max_failed_attempts
        self.lockout_duration = timedelta(minutes=lockout_minutes)
        self._clock = clock

    def register(self, username: str, email: str, password: str, access_level: int = 1) -> User:
        """
        Create new user

        Args:
            username: Username, stored lower-cased
            email: Email, stored lower-cased
            password: Plain text password, hashed on save
            access_level: Initial access level

        Returns:
            Created user
        """
        user = User(username=username, email=email, password=password, access_level=access_level)
        user = self.store.save(user)
        logger.info(f"Registered user: {user.username} (access level: {user.access_level})")
        return user

    def _minutes_until(self, moment) -> int:
        seconds = (moment - self._clock()).total_seconds()
        return max(1, math.ceil(seconds / 60))

    def authenticate(self, identifier: str, password: str) -> AuthResult:
        """
        Authenticate user with account lockout protection

        Args:
            identifier: Username or email
            password: Password

        Returns:
            AuthResult carrying the user on success
        """
        user = self.store.find_by_identifier(identifier)
        if not user:
            AUTH_EVENTS.labels("login_failed").inc()
            return AuthResult.fail(AuthFailure.INVALID_CREDENTIALS)

        now = self._clock()
        locked_until = naive_utc(user.locked_until)

        # Locked accounts are rejected before the password is even checked
        if locked_until and locked_until > now:
            AUTH_EVENTS.labels("login_locked").inc()
            return AuthResult.fail(
                AuthFailure.ACCOUNT_LOCKED,
                minutes_remaining=self._minutes_until(locked_until),
            )

        # An expired lock starts a fresh count
        if locked_until:
            self.store.update_lockout_state(user.id, count=0, last_attempt=None, locked_until=None)
            user.failed_login_attempts = 0
            user.locked_until = None

        if not self._hasher.verify(password, user.password):
            attempts = self.store.increment_failed_attempts(user.id, now)
            AUTH_EVENTS.labels("login_failed").inc()

            if attempts >= self.max_failed_attempts:
                lock_until = now + self.lockout_duration
                self.store.update_lockout_state(
                    user.id, count=attempts, last_attempt=now, locked_until=lock_until
                )
                AUTH_EVENTS.labels("account_locked").inc()
                logger.warning(f"Account locked for user: {user.username}")
                return AuthResult.fail(
                    AuthFailure.ACCOUNT_LOCKED,
                    minutes_remaining=self._minutes_until(lock_until),
                )

            return AuthResult.fail(AuthFailure.INVALID_CREDENTIALS)

        if user.is_blocked:
            logger.warning(f"Blocked user attempted login: {user.username}")
            return AuthResult.fail(AuthFailure.ACCOUNT_BLOCKED)

        if user.failed_login_attempts or user.locked_until:
            self.store.update_lockout_state(user.id, count=0, last_attempt=None, locked_until=None)
            user.failed_login_attempts = 0
            user.last_failed_login = None
            user.locked_until = None

        user.last_login = now
        self.store.record_login(user.id, now)
        AUTH_EVENTS.labels("login_success").inc()
        logger.info(f"User authenticated: {user.username}")
        return AuthResult.success(user=user)
