"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True

    # ==========================================================================
    # API Server
    # ==========================================================================

    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Sessions
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    # Roles are snapshotted into the token, so keep this short
    session_expire_minutes: int = 30

    bcrypt_rounds: int = 12

    # ==========================================================================
    # Abuse mitigation
    # ==========================================================================

    failed_login_window_seconds: int = 3600
    failed_login_max_attempts: int = 10
    # Comma-separated peer addresses whose X-Forwarded-For / X-Real-IP are believed
    trusted_proxies: str = ""

    # ==========================================================================
    # Payments (Stripe)
    # ==========================================================================

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_version: str = "2024-06-20"

    # ==========================================================================
    # OAuth providers (optional)
    # ==========================================================================

    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    # Frontend origin the provider redirects back to; first CORS origin if unset
    oauth_redirect_base: str = ""
    oauth_state_ttl_seconds: int = 600

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def trusted_proxies_list(self) -> list[str]:
        return [p.strip() for p in self.trusted_proxies.split(",") if p.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
