"""Database models"""

from nutritrack.models.user import User
from nutritrack.models.security import RefreshToken

__all__ = ["User", "RefreshToken"]
