"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Business rules configuration
    interest_rate: float = Field(default=0.01, ge=0)
    tax_rate: float = Field(default=0.02, ge=0, le=1)
    existential_deposit: float = Field(default=5.0, ge=0)  # Minimum balance kept in the store

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
