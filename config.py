"""
Configuration module for the Returns Settlement service.
Loads settings from environment variables (and .env when present).
"""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=8000,
        alias="APP_PORT",
        description="Port to bind the application"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    # Data Store Configuration
    order_store: str = Field(
        default="memory",
        alias="ORDER_STORE",
        description="Where orders, refunds and gift-card legs live: 'memory' or 'cosmos'"
    )

    # Pricing
    pricing_config_file: Optional[str] = Field(
        default=None,
        alias="PRICING_CONFIG_FILE",
        description="JSON file with a versioned pricing configuration (defaults are used when unset)"
    )

    # Payments
    stripe_secret_key: Optional[str] = Field(
        default=None,
        alias="STRIPE_SECRET_KEY",
        description="Stripe secret key used to issue original-payment refunds"
    )

    # Branding Configuration
    brand_name: str = Field(
        default="Return Pickup Settlement",
        alias="BRAND_NAME",
        description="Application name shown in API docs"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()
