"""Application settings loaded from the environment."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Payments settings loaded from environment variables or a local .env file."""

    # Pricing
    base_fee: float = Field(default=2000, description="Flat fee charged on every order")
    delivery_fee_local: float = Field(default=5000, description="Delivery fee for local-tier cities")
    delivery_fee_national: float = Field(default=10000, description="Delivery fee for every other city")
    currency: str = Field(default="COP", description="ISO 4217 currency used for pricing")

    # Delivery estimates
    local_delivery_days: int = Field(default=3, description="Estimated delivery days for local-tier cities")
    national_delivery_days: int = Field(default=7, description="Estimated delivery days for national deliveries")

    # Transaction sync job
    transaction_sync_interval_seconds: int = Field(default=300, description="Seconds between sync ticks")
    transaction_sync_batch_size: int = Field(default=100, description="Max pending transactions polled per tick")
    transaction_sync_enabled: bool = Field(default=True, description="Start the sync job with the HTTP app")

    # Payment gateway
    gateway_provider: str = Field(default="fake", description="Gateway adapter to use (fake/http)")
    gateway_base_url: str = Field(default="https://sandbox.service.co/v1", description="Gateway API base URL")
    gateway_public_key: str = Field(default="", description="Gateway merchant public key")
    gateway_private_key: str = Field(default="", description="Gateway private key for transactions")
    gateway_integrity_secret: str = Field(default="", description="Secret used to sign submitted transactions")
    gateway_events_secret: str = Field(default="", description="Secret used to verify webhook checksums")
    gateway_timeout_seconds: float = Field(default=10.0, description="HTTP timeout for gateway calls")

    # Application
    app_env: str = Field(default="development", description="Environment (development/production)")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("gateway_provider")
    @classmethod
    def validate_gateway_provider(cls, v: str) -> str:
        """Only the fake and HTTP gateway adapters exist."""
        if v.lower() not in ("fake", "http"):
            raise ValueError("Invalid gateway provider. Must be one of: ['fake', 'http']")
        return v.lower()

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    def get_allowed_origins_list(self) -> list[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Call ``get_settings.cache_clear()`` to reload after changing the environment.
    """
    return Settings()
