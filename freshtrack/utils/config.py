"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScannerConfig(BaseModel):
    """Barcode scan debouncing settings."""
    cooldown_ms: int = 2000
    processing_timeout_ms: int = 5000


class AlertConfig(BaseModel):
    """Alert generation and status display cutoffs."""
    expiry_soon_days: int = 3
    expiring_week_days: int = 7


class StorageConfig(BaseModel):
    """Key-value persistence settings."""
    backend: str = "json"
    data_dir: str = "data"


class ExportConfig(BaseModel):
    """Export document settings."""
    version: str = "1.0.0"
    format: str = "JSON"


class LoggingFilesConfig(BaseModel):
    """Log file paths."""
    ledger: str = "logs/ledger.log"
    scanner: str = "logs/scanner.log"
    error: str = "logs/error.log"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    files: LoggingFilesConfig = LoggingFilesConfig()


class SchedulerConfig(BaseModel):
    """Scheduler configuration."""
    timezone: str = "Europe/Berlin"
    max_instances: int = 1
    coalesce: bool = True
    misfire_grace_time: int = 300

    # Expiry tiers roll over at midnight, refresh shortly after
    alert_refresh_hour: int = 0
    alert_refresh_minute: int = 5


class YAMLConfig(BaseModel):
    """Configuration loaded from YAML file."""
    scanner: ScannerConfig = ScannerConfig()
    alerts: AlertConfig = AlertConfig()
    storage: StorageConfig = StorageConfig()
    export: ExportConfig = ExportConfig()
    logging: LoggingConfig = LoggingConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


class Settings(BaseSettings):
    """Application settings from environment variables."""

    environment: str = Field(default="development", description="Environment (development/production)")
    log_level: Optional[str] = Field(default=None, description="Override log level")
    data_dir: Optional[str] = Field(default=None, description="Override storage directory")
    default_user: str = Field(default="Current User", description="User recorded on movements")
    port: int = Field(default=8000, description="Server port")

    model_config = SettingsConfigDict(
        env_prefix="FRESHTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


class AppConfig:
    """Combined application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.env = Settings()

        config_path = config_path or Path(__file__).parent.parent.parent / "config" / "config.yml"
        if config_path.exists():
            with open(config_path, "r") as f:
                yaml_data = yaml.safe_load(f) or {}
                self.yaml = YAMLConfig(**yaml_data)
        else:
            self.yaml = YAMLConfig()

        if self.env.log_level:
            self.yaml.logging.level = self.env.log_level

        if self.env.data_dir:
            self.yaml.storage.data_dir = self.env.data_dir

    @property
    def scanner(self) -> ScannerConfig:
        return self.yaml.scanner

    @property
    def alerts(self) -> AlertConfig:
        return self.yaml.alerts

    @property
    def storage(self) -> StorageConfig:
        return self.yaml.storage

    @property
    def export(self) -> ExportConfig:
        return self.yaml.export

    @property
    def logging(self) -> LoggingConfig:
        return self.yaml.logging

    @property
    def scheduler(self) -> SchedulerConfig:
        return self.yaml.scheduler

    @property
    def is_production(self) -> bool:
        return self.env.environment.lower() == "production"


@lru_cache()
def get_config() -> AppConfig:
    """Get cached configuration instance."""
    return AppConfig()
