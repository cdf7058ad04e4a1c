"""
CoreHeadlines Configuration System
=================================

Simple configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import os
from pathlib import Path
from typing import ClassVar, List, Optional, Tuple
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """HTTP fetching configuration."""
    request_timeout: float = Field(default=40.0, gt=0, le=300, description="Per-attempt request timeout in seconds")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per feed on transport failure")
    backoff_base: float = Field(default=0.5, ge=0.0, le=30.0, description="First backoff delay in seconds, doubled per attempt")
    contact_email: str = Field(default="", description="Operator contact address advertised in the bot user agent")
    site_url: str = Field(default="https://vitorio.us", description="Operator site advertised in the bot user agent")
    chrome_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/137.0.0.0 Safari/537.36"
        ),
        description="Browser user agent for sources that block bots",
    )
    reader_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; RSS Reader Bot 1.0)",
        description="Generic feed reader user agent",
    )

    @property
    def bot_user_agent(self) -> str:
        """User agent identifying the operator with a contact address."""
        return f"CoreHeadlines/1.0 (+{self.site_url}; {self.contact_email})"


class StorageSettings(BaseModel):
    """Publication store configuration."""
    path: str = Field(default="data/coreheadlines.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")
    batch_size: int = Field(default=25, ge=1, le=25, description="Records per batch write")
    retention_years: int = Field(default=1, ge=1, le=10, description="Calendar years a publication record is kept")


class DeliverySettings(BaseModel):
    """SMTP digest delivery configuration."""
    smtp_host: Optional[str] = Field(default=None, description="SMTP server host")
    smtp_port: int = Field(default=465, ge=1, le=65535, description="SMTP server port (implicit TLS)")
    smtp_user: Optional[str] = Field(default=None, description="SMTP login user")
    smtp_password: Optional[str] = Field(default=None, description="SMTP login password")
    from_header: Optional[str] = Field(default=None, description="Value of the From header")
    from_address: Optional[str] = Field(default=None, description="Envelope sender address")
    to_address: Optional[str] = Field(default=None, description="Digest recipient address")
    subject: str = Field(default="Core Headlines", description="Digest subject line")
    max_attempts: int = Field(default=2, ge=1, le=5, description="Delivery attempts per run")
    timeout: float = Field(default=30.0, gt=0, le=300, description="SMTP connection timeout in seconds")

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "smtp_host",
        "smtp_user",
        "smtp_password",
        "from_header",
        "from_address",
        "to_address",
    )

    def missing_fields(self) -> List[str]:
        """Names of required delivery fields that are not set."""
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    def validate_delivery(self) -> None:
        """Raise ConfigurationError if the transport cannot be used."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Delivery settings not set: {', '.join(missing)}",
                config_key="delivery",
                error_code=ErrorCode.CONFIG_MISSING,
            )


class EconomicsSettings(BaseModel):
    """Economic indicator enrichment configuration."""
    enabled: bool = Field(default=True, description="Add the indicator block to the digest")
    fred_api_key: Optional[str] = Field(default=None, description="FRED API key")
    request_timeout: float = Field(default=20.0, gt=0, le=120, description="Per-request timeout in seconds")


class ProcessingSettings(BaseModel):
    """Pipeline run configuration."""
    run_timeout: float = Field(default=300.0, gt=0, le=3600, description="Deadline shared by all feed tasks in a run")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/coreheadlines.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=True, description="Use structured JSON logging on the console")
    console_logging: bool = Field(default=True, description="Enable console logging")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        """Accept lower-case level names from the environment."""
        if isinstance(v, str):
            return v.upper()
        return v


class CoreHeadlinesSettings(BaseSettings):
    """Main application settings."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    economics: EconomicsSettings = Field(default_factory=EconomicsSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="CoreHeadlines", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "COREHEADLINES_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate filesystem paths used by the application."""
        errors = []

        try:
            db_path = Path(self.storage.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def is_production_mode(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and os.getenv("ENV", "development").lower() == "production"

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> CoreHeadlinesSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    # Load environment variables from .env file
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = CoreHeadlinesSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[CoreHeadlinesSettings] = None


def get_settings(reload: bool = False) -> CoreHeadlinesSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
