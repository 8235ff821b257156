"""
Configuration management using Pydantic Settings.
Values come from the environment (prefix LEDGER_) or a .env file.
"""

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment-based configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Referral Investment Ledger"
    app_version: str = "1.0.0"
    environment: str = "development"
    cors_origins: list[str] = ["*"]

    # Default product granted on registration
    signup_product_name: str = "Signup bonus"
    signup_product_price: Decimal = Decimal("100")
    signup_product_rate: Decimal = Decimal("0.10")
    signup_product_total_profit: Decimal = Decimal("3600")
    signup_product_total_percentage: Decimal = Decimal("36")
    signup_product_period: int = 360

    # Retention
    retention_days: int = Field(default=4, ge=0)

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval: int = Field(default=300, gt=0)  # seconds
    recompute_concurrency: int = Field(default=20, gt=0)
    recompute_timeout_seconds: float = Field(default=30.0, gt=0)

    # Payout wallets seeded when the collection is empty
    default_wallets: list[dict] = [
        {"name": "primary", "number": "01000000001", "active": True},
        {"name": "secondary", "number": "01000000002", "active": False},
    ]

    # Dashboard
    dashboard_timezone: str = "Africa/Cairo"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    log_file: Optional[str] = None

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production", "test"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("default_wallets")
    @classmethod
    def validate_default_wallets(cls, v: list[dict]) -> list[dict]:
        active = [w for w in v if w.get("active")]
        if v and len(active) != 1:
            raise ValueError("Exactly one default wallet must be active")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Global settings instance
settings = Settings()
