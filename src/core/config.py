"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173,http://localhost:5174,https://celebrated-hotteok-98d8df.netlify.app"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided, which
    aborts startup before the server accepts any request.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="checkout-bridge", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    max_request_body_size: int = Field(default=1024 * 1024, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default=DEFAULT_CORS_ORIGINS,
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., min_length=1, description="Supabase project URL")
    supabase_service_role_key: str = Field(..., min_length=1, description="Supabase service-role key for datastore writes")
    supabase_anon_key: str = Field(..., min_length=1, description="Supabase anonymous key for token verification")
    supabase_jwt_secret: str = Field(default="", description="Legacy HS256 JWT secret for local token verification")
    supabase_signing_key_jwk: str = Field(default="", description="Signing key JWK (JSON string) for local token verification")

    # Stripe
    stripe_secret_key: str = Field(..., min_length=1, description="Stripe secret API key")
    stripe_webhook_secret: str = Field(..., min_length=1, description="Stripe webhook signing secret")
    stripe_api_version: str = Field(default="2023-10-16", description="Pinned Stripe API version")
    stripe_max_network_retries: int = Field(default=2, ge=0, le=5, description="Stripe SDK retries on network errors")
    webhook_tolerance_seconds: int = Field(default=300, ge=1, description="Maximum webhook signature age in seconds")

    # Checkout policy
    checkout_currency: str = Field(default="usd", description="The single currency accepted at checkout")
    shipping_allowed_countries: str = Field(
        default="US,CA,GB",
        description="Comma-separated ISO country codes allowed for shipping",
    )

    # Outbound calls
    outbound_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=60.0,
        description="Timeout applied to every Stripe and Supabase call",
    )

    @model_validator(mode="after")
    def normalize_codes(self) -> "Settings":
        """Lower-case the currency and upper-case log level."""
        self.checkout_currency = self.checkout_currency.strip().lower()
        self.log_level = self.log_level.strip().upper()
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def shipping_countries_list(self) -> list[str]:
        """Parse allowed shipping countries into upper-case codes."""
        return [
            code.strip().upper()
            for code in self.shipping_allowed_countries.split(",")
            if code.strip()
        ]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")

    @property
    def verifies_tokens_locally(self) -> bool:
        """Whether bearer tokens can be verified without calling Supabase Auth."""
        return bool(self.supabase_signing_key_jwk or self.supabase_jwt_secret)


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
