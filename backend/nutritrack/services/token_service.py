"""Token issuance, refresh-token rotation and revocation service."""

from __future__ import annotations

from typing import Optional
import logging
import secrets

from nutritrack.core.clock import Clock, utcnow
from nutritrack.core.metrics import AUTH_EVENTS
from nutritrack.core.security import TokenCodec
from nutritrack.models.user import User
from nutritrack.services.results import AuthFailure, AuthResult, TokenPair
from nutritrack.services.token_ledger import RefreshTokenLedger
from nutritrack.services.user_store import UserStore

logger = logging.getLogger(__name__)


class TokenService:
    """Manage access tokens and the refresh-token family lifecycle."""

    def __init__(
        self,
        codec: TokenCodec,
        ledger: RefreshTokenLedger,
        users: UserStore,
        *,
        revoke_family_on_revoked_reuse: bool = True,
        clock: Clock = utcnow,
    ):
        self.codec = codec
        self.ledger = ledger
        self.users = users
        self._revoke_family_on_revoked_reuse = revoke_family_on_revoked_reuse
        self._clock = clock

    def issue_tokens(
        self,
        user: User,
        old_refresh_token: Optional[str] = None,
        rotate: bool = True,
    ) -> AuthResult:
        """
        Mint an access token and, when rotating, a new refresh token.

        Args:
            user: Token owner
            old_refresh_token: Token being replaced; its family is continued
            rotate: False renews only the access token and leaves the refresh chain alone

        Returns:
            AuthResult with the token pair, or a failure if reuse was detected
        """
        access_token = self.codec.sign_access(user.id, user.username)

        if not rotate:
            return AuthResult.success(user=user, tokens=TokenPair(access_token=access_token))

        if old_refresh_token:
            old_record = self.ledger.find(old_refresh_token)
            if old_record is None:
                return AuthResult.fail(AuthFailure.TOKEN_INVALID)
            family_id = old_record.family_id
            if self.ledger.detect_suspicious_activity(user.id, family_id):
                self.ledger.revoke_family(user.id, family_id)
                AUTH_EVENTS.labels("suspicious_activity").inc()
                logger.warning("Suspicious refresh activity for user %s, family %s", user.id, family_id)
                return AuthResult.fail(AuthFailure.SUSPICIOUS_ACTIVITY)
        else:
            family_id = secrets.token_urlsafe(32)

        refresh_token = self.codec.sign_refresh(user.id, family_id)
        self.ledger.issue(
            refresh_token,
            user_id=user.id,
            family_id=family_id,
            expires_at=self._clock() + self.codec.refresh_ttl,
        )

        if old_refresh_token:
            self.ledger.revoke(old_refresh_token, replaced_by_token=refresh_token)

        return AuthResult.success(
            user=user,
            tokens=TokenPair(access_token=access_token, refresh_token=refresh_token),
        )

    def refresh_session(self, refresh_token: str, rotate: bool = False) -> AuthResult:
        """Validate a refresh token against the ledger and mint new tokens from it."""
        decoded = self.codec.verify_refresh(refresh_token)
        if not decoded.ok:
            return AuthResult.fail(decoded.failure)
        claims = decoded.claims

        record = self.ledger.find(refresh_token)
        if record is None or record.user_id != claims.user_id:
            return AuthResult.fail(AuthFailure.TOKEN_INVALID)

        if record.is_revoked:
            if self._revoke_family_on_revoked_reuse:
                self.ledger.revoke_family(record.user_id, record.family_id)
                AUTH_EVENTS.labels("suspicious_activity").inc()
                logger.warning(
                    "Revoked refresh token presented again for user %s, family %s",
                    record.user_id,
                    record.family_id,
                )
                return AuthResult.fail(AuthFailure.SUSPICIOUS_ACTIVITY)
            return AuthResult.fail(AuthFailure.TOKEN_INVALID)

        if not self.ledger.is_active(record):
            return AuthResult.fail(AuthFailure.TOKEN_EXPIRED)

        user = self.users.find_by_id(claims.user_id)
        if user is None:
            return AuthResult.fail(AuthFailure.TOKEN_INVALID)
        if user.is_blocked:
            return AuthResult.fail(AuthFailure.ACCOUNT_BLOCKED)

        result = self.issue_tokens(user, refresh_token if rotate else None, rotate)
        if result.ok:
            AUTH_EVENTS.labels("refresh_rotated" if rotate else "refresh_silent").inc()
        return result

    def logout(self, refresh_token: Optional[str]) -> bool:
        """Revoke the given refresh token. Unknown or missing tokens are a no-op."""
        if not refresh_token:
            return False
        record = self.ledger.revoke(refresh_token)
        AUTH_EVENTS.labels("logout").inc()
        return record is not None

    def logout_everywhere(self, user_id: int) -> int:
        AUTH_EVENTS.labels("logout_everywhere").inc()
        return self.ledger.revoke_all_for_user(user_id)
