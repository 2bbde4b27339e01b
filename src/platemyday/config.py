"""
PlateMyDay - Configuration and settings.

Settings are read from the environment (and `.env`) and cached. Import the
`settings` proxy for lazy access so modules can be imported without a
configured environment.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitRule(BaseModel):
    """Sliding-window quota for one endpoint."""

    limit: int
    window_seconds: int


class Settings(BaseSettings):
    """
    Server settings.

    Supabase and Stripe credentials default to empty strings so the app can
    start (and be tested) without them; the clients that need them fail at
    first use instead.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str | None = None

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_monthly: str = ""
    stripe_price_annual: str = ""
    stripe_price_lifetime: str = ""
    app_url: str = "http://localhost:3000"

    # Admin
    admin_secret_key: str = ""

    # Application
    platemyday_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # PLATEMYDAY_LOG_PROMPTS=1 - log prompts to local files (dev only)
    platemyday_log_prompts: bool = False

    # Streaming
    stream_throttle_ms: int = 500

    # Credits
    default_credits_limit: int = 10

    # Rate limits, keyed by endpoint name
    rate_limits: dict[str, RateLimitRule] = {
        "generate-recipe": RateLimitRule(limit=20, window_seconds=600),
        "generate-meal-plan": RateLimitRule(limit=10, window_seconds=600),
        "regenerate-meal": RateLimitRule(limit=25, window_seconds=600),
        "consolidate-shopping-list": RateLimitRule(limit=10, window_seconds=600),
    }

    @property
    def is_development(self) -> bool:
        return self.platemyday_env == "development"

    @property
    def is_production(self) -> bool:
        return self.platemyday_env == "production"

    def rate_limit_for(self, key: str) -> RateLimitRule:
        """Get the quota for an endpoint key (falls back to 10 per 10 minutes)."""
        return self.rate_limits.get(key, RateLimitRule(limit=10, window_seconds=600))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
