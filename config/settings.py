"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    # ── School REST API ──────────────────────────────────────
    school_api_base_url: str = "http://localhost:3000"
    school_api_prefix: str = "/api"
    school_api_access_token: str = ""
    school_api_timeout: float = 15.0  # seconds, applies to every request

    # Compensating DELETE for orphaned login accounts, e.g. "/users/{user_id}".
    # Empty = no compensation, the orphan is reported to the user instead.
    account_compensation_path: str = ""

    # ── Sessions ─────────────────────────────────────────────
    session_ttl: int = 1800  # seconds of inactivity before a session is closed
    session_cleanup_interval: int = 300

    # ── Navigation ───────────────────────────────────────────
    landing_route: str = "/"


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
