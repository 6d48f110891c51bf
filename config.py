"""Application configuration with environment variables."""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

WEAK_SECRETS = {"", "devsecret", "secret", "change-me", "change-this-in-production"}


class ConfigurationError(RuntimeError):
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database. When unset every accessor runs against in-process collections.
    DATABASE_URL: Optional[str] = None

    # Identity tokens
    JWT_SECRET: str = "devsecret"
    JWT_EXPIRES_DAYS: int = 7

    # HTTP
    API_PREFIX: str = "/api"
    CORS_ORIGINS: str = "*"
    MAX_BODY_BYTES: int = 2 * 1024 * 1024

    # Outbound email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "asmith@beyond26advisors.com"
    EMAIL_TO: str = "asmith@beyond26advisors.com,esmith@beyond26advisors.com"

    # Password of the built-in demo roster used without a database
    DEMO_PASSWORD: str = "Password123!"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def email_recipients(self) -> List[str]:
        return [e.strip() for e in self.EMAIL_TO.split(",") if e.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("prod", "production")

    def check_secrets(self) -> None:
        """Refuse a weak signing secret in production, warn everywhere else."""
        if self.JWT_SECRET in WEAK_SECRETS:
            if self.is_production:
                raise ConfigurationError("JWT_SECRET must be set to a strong value in production")
            logger.warning("JWT_SECRET is using a weak default; tokens can be forged")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
