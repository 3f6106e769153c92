"""Security-related persistence models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from nutritrack.core.clock import naive_utc, utcnow
from nutritrack.core.database import Base

# Successor markers for revocations that are not a rotation.
FAMILY_REVOKED = "FAMILY_REVOKED"
LOGOUT_EVERYWHERE = "LOGOUT_EVERYWHERE"


class RefreshToken(Base):
    """Refresh token record for rotation/revocation."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(1024), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    family_id = Column(String(128), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    replaced_by_token = Column(String(1024), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_refresh_tokens_user_family", "user_id", "family_id"),
    )

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return not self.is_revoked and naive_utc(self.expires_at) > now

    def __repr__(self):
        return (
            f"<RefreshToken(id={self.id}, user_id={self.user_id}, "
            f"family_id='{self.family_id}', revoked={self.is_revoked})>"
        )
