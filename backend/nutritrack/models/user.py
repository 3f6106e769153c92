"""User model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, validates
from nutritrack.core.database import Base


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # Holds plaintext only between assignment and UserStore.save(), which hashes it.
    password = Column("password_hash", String(255), nullable=False)
    access_level = Column(Integer, default=1, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    last_login = Column(DateTime)

    # Login lockout state
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    last_failed_login = Column(DateTime)
    locked_until = Column(DateTime)

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_users_access_level', 'access_level'),
    )

    @validates("username", "email")
    def _normalize_identifier(self, key, value):
        return value.strip().lower() if value else value

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', access_level={self.access_level})>"

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "access_level": self.access_level,
            "is_blocked": self.is_blocked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None
        }
