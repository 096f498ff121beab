"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (tests point it at SQLite).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="track_portal")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # JWT Authentication - REQUIRED for token signing
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=7 * 24 * 60)  # 7 days
    PASSWORD_RESET_EXPIRE_MINUTES: int = Field(default=60)

    # Account lifecycle
    PASSWORD_MIN_LENGTH: int = Field(default=6, ge=6, le=72)
    # Deactivation is a ban of ~100 years; effectively permanent.
    SUSPENSION_DURATION_HOURS: int = Field(default=876000)

    # Team assistant (Anthropic)
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    ASSISTANT_MODEL: str = Field(default="claude-3-5-haiku-latest")
    ASSISTANT_MAX_TOOL_ROUNDS: int = Field(default=8, ge=1, le=20)
    ASSISTANT_MAX_OUTPUT_TOKENS: int = Field(default=900)
    ASSISTANT_HISTORY_LIMIT: int = Field(default=12)

    # Inbox change stream
    INBOX_REFETCH_DEBOUNCE_S: float = Field(default=0.25)
    INBOX_HEARTBEAT_S: float = Field(default=15.0)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Web app base URL (password recovery links land on {base}/auth/reset).
    WEB_APP_BASE_URL: str = Field(default="http://localhost:3000")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


# Global settings instance
settings = Settings()
