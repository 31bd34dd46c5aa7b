"""
Shop Performance Engine
Centralized Configuration Management

Configuration sections are pydantic settings with environment variable
support. Library functions take explicit arguments; these values only
provide their defaults.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClassificationSettings(BaseSettings):
    """Goal classification thresholds"""
    
    model_config = SettingsConfigDict(env_prefix="CLASSIFY_")
    
    near_goal_ratio: float = Field(
        default=0.8,
        description="Share of the feasible goal that still counts as 'almost met' (red)",
    )
    
    @field_validator("near_goal_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Ratio must lie in (0, 1]"""
        if not 0 < v <= 1:
            raise ValueError("near_goal_ratio must be in the range (0, 1]")
        return v


class IngestionSettings(BaseSettings):
    """Report upload / normalization configuration"""
    
    model_config = SettingsConfigDict(env_prefix="INGEST_")
    
    header_scan_rows: int = Field(default=10, description="Rows scanned to locate the header row")
    max_skipped_details: int = Field(default=20, description="Skipped rows echoed back in summaries")
    emit_parse_warnings: bool = Field(default=True, description="Log a warning per malformed cell")


class DatabaseSettings(BaseSettings):
    """Report store configuration (PostgreSQL via asyncpg, or any async URL)"""
    
    model_config = SettingsConfigDict(env_prefix="DB_")
    
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="shop_performance", description="Database name")
    user: str = Field(default="reporting", description="Database user")
    password: SecretStr = Field(default="change-me", description="Database password")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")
    echo: bool = Field(default=False, description="Echo SQL queries")
    
    @property
    def async_url(self) -> str:
        """Async database URL - uses DB_URL if set, otherwise builds an asyncpg URL"""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.name}"
        )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""
    
    model_config = SettingsConfigDict(env_prefix="")
    
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings
    
    Aggregates all configuration sections and provides a single entry point
    for accessing configuration.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    app_name: str = Field(default="shop-performance", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")
    
    classification: ClassificationSettings = Field(default_factory=ClassificationSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
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
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Returns:
        Settings: Application settings instance
    """
    return Settings()
