"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: get_settings() is cached, so tests that need different values
    must set environment variables before the first import or call
    get_settings.cache_clear().
    """

    # Database settings
    DATABASE_URL: str = "sqlite:///./backoffice.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Security settings
    SECRET_KEY: str = "dev-secret-change-in-production"
    ALGORITHM: str = "HS256"
    # Session lifetime matches the 24h session cookie
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    SESSION_COOKIE_NAME: str = "session"
    SESSION_COOKIE_SECURE: bool = False
    BCRYPT_ROUNDS: int = 12

    # Redis for rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Rate limiting (per organization)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_BURST: int = 30

    # Billing. Leaving STRIPE_SECRET_KEY unset disables the billing routes.
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_BASE: str = "https://api.stripe.com"

    # Tabular-data provider
    AIRTABLE_API_KEY: Optional[str] = None
    AIRTABLE_API_BASE: str = "https://api.airtable.com"

    # Outbound HTTP calls (seconds)
    EXTERNAL_HTTP_TIMEOUT: float = 10.0

    AUDIT_LOG_DEFAULT_LIMIT: int = 50
    # Larger ?limit values are clamped, not rejected
    AUDIT_LOG_MAX_LIMIT: int = 500

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    """
    return Settings()
