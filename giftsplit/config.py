"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environnement d'exécution: "dev" | "staging" | "prod"
ENV = os.getenv("GIFTSPLIT_ENV", "dev").lower()


class Settings(BaseSettings):
    """Environment configuration for the gift split backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///giftsplit.db"
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0
    APP_BASE_URL: str = "http://localhost:3000"
    ORGANIZER_API_KEY: str | None = None
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True
    ALLOW_DB_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Stripe Checkout --------------------------------------------------
    STRIPE_ENABLED: bool = True
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_TIMEOUT_SECONDS: int = 15

    # --- Payment emails ---------------------------------------------------
    RESEND_API_KEY: str | None = None
    MAIL_FROM: str = "Gift Split <onboarding@resend.dev>"
    NOTIFY_TIMEOUT_SECONDS: int = 10

    # --- Gift lifecycle ---------------------------------------------------
    INVITATION_LINK_DEFAULT_DAYS: int = 7
    LOCK_ASSIGN_WAIT_ATTEMPTS: int = 5
    LOCK_ASSIGN_WAIT_SECONDS: float = 0.2

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8"
    )

    @field_validator("STRIPE_WEBHOOK_SECRET", "ORGANIZER_API_KEY", "RESEND_API_KEY")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("APP_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AppInfo(BaseModel):
    name: str = "giftsplit-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
