"""Configuration management for Hub Bridge using Pydantic.

This module provides type-safe configuration models for the migration tool:
file locations, the Firebase endpoints, performance tuning, logging, and the
table catalog overrides.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# The document store rejects commits with more writes than this
MAX_BATCH_WRITES = 500


class PathConfig(BaseModel):
    """Configuration for file paths."""

    import_dir: str = Field(default="csv-import", description="Directory holding table exports")
    export_extension: str = Field(default=".csv", description="Extension of export files")
    credentials_file: str = Field(
        default="service-account.json",
        description="Service-account JSON used for the identity provider and document store",
    )
    report_dir: str = Field(default="reports", description="Directory for run reports")
    backup_dir: str = Field(default="backups", description="Directory for collection backups")

    @field_validator("export_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Normalize the extension to start with a dot."""
        v = v.strip()
        if not v:
            raise ValueError("Export extension cannot be empty")
        return v if v.startswith(".") else f".{v}"


class FirebaseConfig(BaseModel):
    """Configuration for the identity provider and document store endpoints."""

    project_id: str | None = Field(
        default=None, description="Project ID (defaults to the credential's project_id)"
    )
    database_id: str = Field(default="(default)", description="Document store database ID")
    firestore_url: str = Field(
        default="https://firestore.googleapis.com/v1", description="Document store REST base URL"
    )
    identity_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity provider REST base URL",
    )
    firestore_emulator_host: str | None = Field(
        default=None, description="host:port of a local document store emulator"
    )
    auth_emulator_host: str | None = Field(
        default=None, description="host:port of a local identity provider emulator"
    )
    timeout: int = Field(default=30, ge=1, le=600, description="API request timeout in seconds")

    @field_validator("firestore_url", "identity_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def uses_emulator(self) -> bool:
        """Whether both endpoints point at local emulators."""
        return bool(self.firestore_emulator_host and self.auth_emulator_host)

    def resolved_firestore_url(self) -> str:
        """Document store base URL, honouring the emulator host."""
        if self.firestore_emulator_host:
            return f"http://{self.firestore_emulator_host}/v1"
        return self.firestore_url

    def resolved_identity_url(self) -> str:
        """Identity provider base URL, honouring the emulator host."""
        if self.auth_emulator_host:
            return f"http://{self.auth_emulator_host}/identitytoolkit.googleapis.com/v1"
        return self.identity_url


class PerformanceConfig(BaseModel):
    """Performance tuning configuration.

    Calls are issued one at a time; rate_limit only spaces them out further.
    """

    batch_size: int = Field(
        default=MAX_BATCH_WRITES,
        ge=1,
        le=MAX_BATCH_WRITES,
        description="Writes per atomic commit (document store maximum is 500)",
    )
    rate_limit: int = Field(default=10, ge=1, le=50, description="Requests per second limit")
    account_page_size: int = Field(
        default=1000, ge=1, le=1000, description="Accounts per page when listing identities"
    )
    document_page_size: int = Field(
        default=300, ge=1, le=1000, description="Documents per page when listing a collection"
    )
    retry_attempts: int = Field(
        default=5, ge=1, le=10, description="Attempts per request for transient failures"
    )
    retry_backoff_min: int = Field(
        default=2, ge=0, le=60, description="Minimum backoff time in seconds for retries"
    )
    retry_backoff_max: int = Field(
        default=60, ge=1, le=300, description="Maximum backoff time in seconds for retries"
    )
    http_max_connections: int = Field(
        default=10, ge=1, le=100, description="Maximum number of connections in the pool"
    )
    http_max_keepalive_connections: int = Field(
        default=5, ge=1, le=50, description="Maximum number of keepalive connections"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default="logs/migration.log", description="Log file path")
    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "Passwords, tokens and keys are redacted."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log. Larger payloads will be truncated.",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class TablesConfig(BaseModel):
    """Overrides applied on top of the table catalog."""

    skip_tables: list[str] = Field(
        default_factory=list, description="Catalog tables to skip in the generic table pass"
    )


class MigrationConfig(BaseSettings):
    """Main migration configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HUB_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    paths: PathConfig = Field(default_factory=PathConfig, description="Path configuration")
    firebase: FirebaseConfig = Field(
        default_factory=FirebaseConfig, description="Firebase endpoint configuration"
    )
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    tables: TablesConfig = Field(default_factory=TablesConfig, description="Table overrides")

    save_report: bool = Field(default=True, description="Write JSON/Markdown run reports")


def load_config_from_yaml(config_path: str | Path) -> MigrationConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        MigrationConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    config_data = _expand_env_vars(config_data)

    return MigrationConfig(**config_data)


def _expand_env_vars(data: dict) -> dict:
    """Recursively expand environment variables in config dict.

    Supports ${VAR_NAME} syntax for environment variable substitution.

    Args:
        data: Configuration dictionary

    Returns:
        dict: Dictionary with expanded environment variables
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
