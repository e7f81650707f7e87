"""
Configuration Module for the Solana transaction builder.

This module provides configuration management using Pydantic v2 BaseSettings.
All settings are loaded from environment variables (or a ``.env`` file) with
validation and type safety. Explicit arguments passed to the pipeline always
take precedence over these defaults.

Usage:
    from solana_tx_builder.config import get_settings
    print(get_settings().builder.priority_fee_floor)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError, wrap_exception


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class PriorityLevel(str, Enum):
    """Urgency tiers understood by the getPriorityFeeEstimate fee oracle."""
    MIN = "Min"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"
    UNSAFE_MAX = "UnsafeMax"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# SOLANA RPC CONFIGURATION
# =============================================================================

class RPCSettings(BaseConfig):
    """Solana RPC connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOLANA_",
        env_file=".env",
        extra="ignore",
    )

    commitment: str = Field(
        default="confirmed",
        pattern="^(processed|confirmed|finalized)$",
        description="Commitment for blockhash fetches and simulation",
    )

    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="RPC request timeout in seconds",
    )


# =============================================================================
# BUILDER CONFIGURATION
# =============================================================================

class BuilderSettings(BaseConfig):
    """Compute budget and priority fee defaults."""

    model_config = SettingsConfigDict(
        env_prefix="BUILDER_",
        env_file=".env",
        extra="ignore",
    )

    default_tolerance: float = Field(
        default=1.1,
        gt=0.0,
        le=10.0,
        description="Multiplier applied to simulated compute units",
    )

    default_priority_level: PriorityLevel = Field(
        default=PriorityLevel.MEDIUM,
        description="Fee oracle tier used when a request omits one",
    )

    priority_fee_floor: int = Field(
        default=10_000,
        ge=0,
        description="Minimum compute unit price in micro-lamports",
    )

    max_compute_units: int = Field(
        default=1_400_000,
        ge=1,
        description="Compute unit ceiling requested while simulating",
    )

    optimize_compute: bool = Field(
        default=True,
        description="Estimate compute units by simulation",
    )

    optimize_fees: bool = Field(
        default=True,
        description="Estimate a priority fee from the fee oracle",
    )


# =============================================================================
# POLLER CONFIGURATION
# =============================================================================

class PollerSettings(BaseConfig):
    """Confirmation polling defaults."""

    model_config = SettingsConfigDict(
        env_prefix="POLLER_",
        env_file=".env",
        extra="ignore",
    )

    max_attempts: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Status queries issued before giving up",
    )

    interval_seconds: float = Field(
        default=4.0,
        gt=0.0,
        le=600.0,
        description="Delay between status queries",
    )

    fetch_logs_on_failure: bool = Field(
        default=True,
        description="Fetch program logs when a finalized transaction failed",
    )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log date format",
    )

    file_enabled: bool = Field(
        default=False,
        description="Enable file logging",
    )

    file_path: Path = Field(
        default=Path("logs/tx_builder.log"),
        description="Log file path",
    )

    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024,
        description="Max log file size in bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of backup log files",
    )


# =============================================================================
# APPLICATION SETTINGS (MAIN)
# =============================================================================

class Settings(BaseConfig):
    """
    Settings aggregating all configuration sections.

    Usage:
        settings = get_settings()
        settings.poller.interval_seconds
    """

    rpc: RPCSettings = Field(default_factory=RPCSettings)
    builder: BuilderSettings = Field(default_factory=BuilderSettings)
    poller: PollerSettings = Field(default_factory=PollerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# =============================================================================
# SINGLETON & CACHING
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Raises:
        ConfigurationError: If an environment value fails validation
    """
    try:
        return Settings()
    except ValidationError as e:
        raise wrap_exception(e, ConfigurationError, "Invalid builder configuration") from e


def reload_settings() -> Settings:
    """
    Clear settings cache and reload from environment.

    Returns:
        Settings: Fresh settings instance
    """
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "Settings",
    "RPCSettings",
    "BuilderSettings",
    "PollerSettings",
    "LoggingSettings",
    "LogLevel",
    "PriorityLevel",
    "get_settings",
    "reload_settings",
]
