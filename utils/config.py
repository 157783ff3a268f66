"""
Configuration Utility - Runtime Environment and Export Settings

Two layers of configuration:

- RuntimeSettings: process-level knobs read from environment variables / .env
  using pydantic-settings (where the config document lives, staging directory,
  schedule, logging).
- ExportSettings: the export configuration document (database, SFTP server,
  test mode, error reporting). Loaded from a JSON file once per run with
  load_settings() and passed explicitly to every component.

Usage:
    from utils.config import get_runtime_settings, load_settings

    runtime = get_runtime_settings()
    settings = load_settings(runtime.EXPORT_CONFIG_PATH)
    settings.ftp.upload_path
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PROCEDURE = "dbo.ExportPendingOrders"


class RuntimeSettings(BaseSettings):
    """Process settings loaded from environment variables."""

    # Export configuration document
    EXPORT_CONFIG_PATH: str = Field(default="config.json")

    # Staging directory for the transient export file (system temp dir if unset)
    STAGING_DIR: Optional[str] = Field(default=None)

    # Scheduler Configuration
    EXPORT_SCHEDULE_CRON: str = Field(default="*/15 * * * *")
    RUN_ONCE: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    APP_NAME: str = Field(default="order-export")
    APP_VERSION: str = Field(default="0.1.0")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_runtime_settings() -> RuntimeSettings:
    """Get cached runtime settings instance."""
    return RuntimeSettings()


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class DatabaseSettings(_Section):
    connection_string: str = Field(..., alias="connectionString", min_length=1)
    procedure: str = Field(default=DEFAULT_PROCEDURE, min_length=1)


class FtpSettings(_Section):
    server: str = Field(..., min_length=1)
    userid: str = Field(..., min_length=1)
    password: SecretStr
    upload_path: str = Field(default="", alias="uploadPath")
    port: int = Field(default=22)
    known_hosts: Optional[str] = Field(default=None, alias="knownHosts")
    timeout: int = Field(default=15)


class ErrorReportingSettings(_Section):
    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    subject_line: str = Field(default="Order export failed during {stage}", alias="subjectLine")


class EmailSettings(_Section):
    server: str = Field(..., min_length=1)


class ExportSettings(_Section):
    """Export configuration document.

    Immutable once loaded. ``testmode`` is kept as the raw document value;
    utils.naming.is_test_mode decides what counts as "on".
    """

    orders_database: DatabaseSettings = Field(..., alias="ordersDatabase")
    ftp: FtpSettings
    testmode: Any = Field(default=None)
    error_reporting: Optional[ErrorReportingSettings] = Field(default=None, alias="errorReporting")
    email: Optional[EmailSettings] = Field(default=None)

    @property
    def can_email(self) -> bool:
        """True when both the error-reporting and mail-server blocks are present."""
        return self.error_reporting is not None and self.email is not None


def load_settings(path: str | Path) -> ExportSettings:
    """
    Load and validate the export configuration document.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Validated, immutable ExportSettings

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON or fails validation
    """
    config_path = Path(path)

    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        raw = config_path.read_bytes()
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {config_path} - {e}") from e

    try:
        document = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"Configuration file is not valid JSON: {config_path} - {e}") from e

    if not isinstance(document, dict):
        raise ConfigError(f"Configuration root must be an object: {config_path}")

    try:
        settings = ExportSettings.model_validate(document)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    logger.debug("Configuration loaded: path=%s", str(config_path))
    return settings
