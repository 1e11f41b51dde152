"""Application configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="acp-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # ACP auth
    acp_auth_token: str = Field(
        default="",
        description="Bearer token agents must present on ACP routes. Empty disables the check.",
    )

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")

    # Checkout session store
    checkout_store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Checkout session store backend (memory is volatile, supabase is durable for the TTL)",
    )
    checkout_ttl_seconds: int = Field(default=86400, ge=1, description="Seconds until a checkout session expires")
    checkout_cleanup_interval_seconds: int = Field(
        default=300, ge=1, description="Seconds between expired session sweeps"
    )
    checkout_max_sessions: int = Field(
        default=10000, ge=1, description="Maximum sessions held by the in-memory store"
    )

    # Supabase (only needed for the supabase store backend)
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_secret_key: str = Field(default="", description="Supabase secret key for backend operations")
    supabase_checkout_table: str = Field(default="checkout_sessions", description="Table holding checkout sessions")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
