"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent

_DEV_JWT_SECRET = "dev-jwt-secret-change-in-production-use-openssl-rand-hex-32"


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Nutritrack API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = f"sqlite:///{_BASE_DIR / 'nutritrack.db'}"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Tokens
    JWT_SECRET: str = _DEV_JWT_SECRET
    JWT_REFRESH_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # Refresh token families. Heuristic: rotation keeps one active token per
    # family, so more than this many active tokens is treated as reuse.
    SUSPICIOUS_ACTIVE_TOKEN_THRESHOLD: int = 2
    REVOKE_FAMILY_ON_REVOKED_REUSE: bool = True

    # Passwords
    PASSWORD_PEPPER: str = ""
    PASSWORD_SALT_ROUNDS: int = 10

    # Login lockout
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_DURATION_MINUTES: int = 15

    # Rate limiting
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: str = "redis://localhost:6379/0"
    AUTH_RATE_LIMIT: int = 10
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    REFRESH_RATE_LIMIT: int = 5
    REFRESH_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    STATUS_RATE_LIMIT: int = 30
    STATUS_RATE_LIMIT_WINDOW_SECONDS: int = 60
    MUTATION_RATE_LIMIT: int = 15
    MUTATION_RATE_LIMIT_WINDOW_SECONDS: int = 60
    QUERY_RATE_LIMIT: int = 60
    QUERY_RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["https://localhost:3000"]

    # Admin bootstrap
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@localhost.localdomain"
    ADMIN_PASSWORD: str = "admin123"
    CREATE_ADMIN_ON_STARTUP: bool = True

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["https://localhost:3000","https://example.com"]
            CORS_ORIGINS=https://localhost:3000,https://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_refresh_secret(self) -> str:
        """Refresh tokens fall back to the access secret when no dedicated one is set."""
        return self.JWT_REFRESH_SECRET or self.JWT_SECRET

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if p and p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if not self.is_production:
            return

        insecure_secret_markers = {
            "",
            _DEV_JWT_SECRET,
            "change-me",
        }
        insecure_admin_passwords = {
            "",
            "admin123",
            "change_this_password_immediately",
        }

        if self.JWT_SECRET in insecure_secret_markers or len(self.JWT_SECRET) < 32:
            raise ValueError(
                "Insecure JWT_SECRET for production. Use a strong key (e.g. `openssl rand -hex 32`)."
            )

        if self.get_refresh_secret() == self.JWT_SECRET:
            raise ValueError("JWT_REFRESH_SECRET must be set and differ from JWT_SECRET in production.")

        if self.CREATE_ADMIN_ON_STARTUP and (
            self.ADMIN_PASSWORD in insecure_admin_passwords or len(self.ADMIN_PASSWORD) < 10
        ):
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
