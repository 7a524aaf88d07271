"""
Application configuration management using Pydantic Settings.
"""
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "CoolCare"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(
        default="development",
        pattern="^(development|testing|staging|production)$",
    )

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "CoolCare Maintenance API"
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"]
    )

    # Security
    SECRET_KEY: str = Field(..., min_length=32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8

    # Database
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "coolcare"
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    # Sentry
    SENTRY_DSN: Optional[str] = None
    SENTRY_ENVIRONMENT: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200

    # Rate limiting (fixed window, per client IP and limit class)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_API_MAX: int = 100
    RATE_LIMIT_API_WINDOW_SECONDS: int = 60
    RATE_LIMIT_LOGIN_MAX: int = 5
    RATE_LIMIT_LOGIN_WINDOW_SECONDS: int = 60
    RATE_LIMIT_UPLOAD_MAX: int = 10
    RATE_LIMIT_UPLOAD_WINDOW_SECONDS: int = 60
    RATE_LIMIT_CONTACT_MAX: int = 5
    RATE_LIMIT_CONTACT_WINDOW_SECONDS: int = 3600
    RATE_LIMIT_STRICT: Optional[bool] = None  # None: strict everywhere except production
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 300
    RATE_LIMIT_IDLE_MULTIPLIER: int = 2
    UPLOAD_PATH_PREFIXES: List[str] = Field(default=["/api/v1/upload", "/api/v1/photos"])
    CONTACT_PATH_PREFIXES: List[str] = Field(default=["/api/v1/contact"])

    # Account locking
    ACCOUNT_LOCK_DEFAULT_MINUTES: int = 15
    LOGIN_MAX_FAILED_ATTEMPTS: int = 5
    LOGIN_FAILURE_WINDOW_SECONDS: int = 3600

    # Security dashboard
    SECURITY_EVENTS_DEFAULT_LIMIT: int = 50

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info) -> str:
        if v:
            return v
        values = info.data
        user = values.get("POSTGRES_USER")
        if not user:
            return "sqlite+aiosqlite:///./coolcare.db"
        password = values.get("POSTGRES_PASSWORD") or ""
        host = values.get("POSTGRES_HOST", "localhost")
        port = values.get("POSTGRES_PORT", 5432)
        db = values.get("POSTGRES_DB", "coolcare")
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

    @field_validator(
        "BACKEND_CORS_ORIGINS",
        "UPLOAD_PATH_PREFIXES",
        "CONTACT_PATH_PREFIXES",
        mode="before",
    )
    @classmethod
    def split_comma_separated(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    @property
    def is_sqlite(self) -> bool:
        return str(self.DATABASE_URL).startswith("sqlite")

    @property
    def rate_limit_strict(self) -> bool:
        """Unknown limit classes raise instead of being denied."""
        if self.RATE_LIMIT_STRICT is not None:
            return self.RATE_LIMIT_STRICT
        return not self.is_production

    def get_rate_limit_config(self) -> Dict[str, Dict[str, int]]:
        """Get per-class rate limit configuration."""
        return {
            "api": {
                "max_requests": self.RATE_LIMIT_API_MAX,
                "window_seconds": self.RATE_LIMIT_API_WINDOW_SECONDS,
            },
            "login": {
                "max_requests": self.RATE_LIMIT_LOGIN_MAX,
                "window_seconds": self.RATE_LIMIT_LOGIN_WINDOW_SECONDS,
            },
            "upload": {
                "max_requests": self.RATE_LIMIT_UPLOAD_MAX,
                "window_seconds": self.RATE_LIMIT_UPLOAD_WINDOW_SECONDS,
            },
            "contact": {
                "max_requests": self.RATE_LIMIT_CONTACT_MAX,
                "window_seconds": self.RATE_LIMIT_CONTACT_WINDOW_SECONDS,
            },
        }

    def get_sentry_config(self) -> Dict[str, Any]:
        """Get Sentry initialisation arguments."""
        return {
            "dsn": self.SENTRY_DSN,
            "environment": self.SENTRY_ENVIRONMENT or self.ENVIRONMENT,
            "traces_sample_rate": self.SENTRY_TRACES_SAMPLE_RATE,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()


# Create a settings instance for easy import
settings = get_settings()
