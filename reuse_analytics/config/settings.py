"""
Reusable Packaging Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="reuse_analytics", alias="database", description="Database name")
    user: str = Field(default="reuse", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses POSTGRES_URL if set, otherwise builds an asyncpg URL"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis Configuration (lock backend)"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=20, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class OrderSourceSettings(BaseSettings):
    """Remote order source (system of record) configuration"""

    model_config = SettingsConfigDict(env_prefix="ORDERS_API_")

    base_url: Optional[str] = Field(default=None, description="Order source endpoint URL")
    api_key: Optional[SecretStr] = Field(default=None, description="API key sent with every request")
    api_key_header: str = Field(default="x-api-key", description="Header carrying the API key")
    request_timeout_seconds: float = Field(default=120.0, description="Per-request timeout")


class SyncSettings(BaseSettings):
    """Order ingestion configuration"""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    max_retries: int = Field(default=5, description="Retries after the first attempt")
    base_delay_ms: int = Field(default=2000, description="Backoff base delay")
    max_delay_ms: int = Field(default=60000, description="Backoff delay cap")
    jitter_ratio: float = Field(default=0.2, description="Relative jitter applied to each delay")
    lock_ttl_seconds: int = Field(default=300, description="Sync lock time-to-live")
    lock_name: str = Field(default="orders-sync", description="Sync lock key")
    lock_backend: str = Field(default="database", description="Lock backend: database or redis")
    batch_size: int = Field(default=500, description="Records per upsert batch")

    @field_validator("lock_backend")
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        """Validate lock backend value"""
        allowed = ["database", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"Lock backend must be one of: {allowed}")
        return v.lower()

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        """Keep upsert payloads bounded"""
        if not 1 <= v <= 1000:
            raise ValueError("Batch size must be between 1 and 1000")
        return v


class AnalyticsSettings(BaseSettings):
    """Aggregation configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    page_size: int = Field(default=1000, description="Rows per scan page")
    top_cities: int = Field(default=15, description="Cities in the volume-sorted list")
    top_provinces: int = Field(default=10, description="Provinces in the volume-sorted list")
    hierarchy_countries: int = Field(default=20, description="Countries kept in the hierarchy")
    hierarchy_cities: int = Field(default=15, description="Cities kept per country")
    hierarchy_regions: int = Field(default=10, description="Regions kept per city")
    best_cities_limit: int = Field(default=10, description="Cities in the best-by-opt-in list")
    min_city_orders: int = Field(default=10, description="Minimum orders for a city to rank by opt-in rate")
    min_store_orders: int = Field(default=10, description="Minimum orders for a store to rank by opt-in rate")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="reuse-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    order_source: OrderSourceSettings = Field(default_factory=OrderSourceSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
