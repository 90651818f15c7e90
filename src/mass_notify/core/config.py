"""Configuration system for mass-notify.

This module implements the main configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages.
"""

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Final

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from mass_notify.core.batching import MAX_BATCH_SIZE
from mass_notify.core.type_registry import DEFAULT_TYPES

# Matches ${VARIABLE_NAME} where VARIABLE_NAME holds letters, digits and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")

EXPO_PUSH_URL: Final[str] = "https://exp.host/--/api/v2/push/send"
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///mass-notify.db"


class GatewayConfig(BaseModel):
    """Configuration for the downstream push gateway."""

    url: Annotated[
        str,
        Field(
            description="Push gateway endpoint accepting a JSON message array",
            pattern=r"^https?://",
        ),
    ] = EXPO_PUSH_URL
    timeout_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Timeout for a single gateway call in seconds",
        ),
    ] = 10.0
    access_token: Annotated[
        str | None,
        Field(
            description="Optional bearer token sent with every gateway call",
        ),
    ] = None
    max_batch_size: Annotated[
        int,
        Field(
            ge=1,
            le=MAX_BATCH_SIZE,
            description="Largest number of messages per gateway call",
        ),
    ] = MAX_BATCH_SIZE


class DispatchConfig(BaseModel):
    """Configuration for audience selection and batch delivery."""

    recency_window_days: Annotated[
        int,
        Field(
            gt=0,
            description="Registrations older than this many days are treated as stale",
        ),
    ] = 30
    max_concurrent_batches: Annotated[
        int,
        Field(
            ge=1,
            description="Gateway calls allowed in flight within one run",
        ),
    ] = 1
    retry_attempts: Annotated[
        int,
        Field(
            ge=0,
            description="Extra attempts for a batch whose gateway call failed",
        ),
    ] = 0
    retry_max_backoff_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Upper bound for one retry backoff delay in seconds",
        ),
    ] = 30.0

    @property
    def recency_window(self) -> timedelta:
        return timedelta(days=self.recency_window_days)


class StorageConfig(BaseModel):
    """Configuration for the relational store holding tokens, stats and schedules."""

    database_url: Annotated[
        str,
        Field(
            min_length=1,
            description="SQLAlchemy database URL",
        ),
    ] = DEFAULT_DATABASE_URL


class NotificationTypeOverride(BaseModel):
    """Per-kind switch applied on top of the built-in type table."""

    enabled: Annotated[
        bool,
        Field(
            description="Whether requests of this kind may be dispatched",
        ),
    ]


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings.

    Defines operational behavior including logging level, dry-run mode,
    and syslog integration.
    """

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    dry_run: Annotated[
        bool,
        Field(
            description="Dry-run mode: log batches instead of calling the gateway",
        ),
    ] = False
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - gateway: Push gateway endpoint and limits
    - dispatch: Audience recency window, parallelism and retry
    - storage: Database location
    - notification_types: Enabled flags per notification kind
    - application: Application-level settings

    Every section has defaults, so an empty file is a valid configuration.
    """

    gateway: Annotated[
        GatewayConfig,
        Field(
            description="Push gateway configuration",
        ),
    ] = GatewayConfig()
    dispatch: Annotated[
        DispatchConfig,
        Field(
            description="Dispatch pipeline configuration",
        ),
    ] = DispatchConfig()
    storage: Annotated[
        StorageConfig,
        Field(
            description="Storage configuration",
        ),
    ] = StorageConfig()
    notification_types: Annotated[
        dict[str, NotificationTypeOverride],
        Field(
            description="Overrides for the built-in notification type table",
        ),
    ] = {}
    application: Annotated[
        ApplicationConfig,
        Field(
            description="Application-level configuration",
        ),
    ] = ApplicationConfig()

    @field_validator("notification_types", mode="after")
    @classmethod
    def validate_notification_type_keys(
        cls,
        v: dict[str, NotificationTypeOverride],
    ) -> dict[str, NotificationTypeOverride]:
        """Reject overrides for kinds that do not exist.

        Raises:
            ValueError: If any key is not a built-in notification type
        """
        known = {descriptor.key for descriptor in DEFAULT_TYPES}
        unknown = set(v) - known
        if unknown:
            msg = (
                f"Unknown notification type(s): {', '.join(sorted(unknown))}. "
                f"Available types: {', '.join(sorted(known))}"
            )
            raise ValueError(msg)
        return v

    def enabled_overrides(self) -> dict[str, bool]:
        """Flatten ``notification_types`` into key → enabled."""
        return {key: override.enabled for key, override in self.notification_types.items()}


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails.

    This exception is raised when a required environment variable is missing.
    It provides clear error messages without exposing secret values.
    """


def resolve_env_var(value: str) -> str:
    """Resolve environment variable references in a string value.

    Parses ${VARIABLE_NAME} syntax and replaces with environment variable values.
    Supports multiple environment variable references in a single string.

    Args:
        value: String potentially containing environment variable references

    Returns:
        String with environment variables resolved

    Raises:
        EnvironmentVariableError: If a required environment variable is missing

    Examples:
        >>> os.environ["EXPO_ACCESS_TOKEN"] = "secret_value"
        >>> resolve_env_var("${EXPO_ACCESS_TOKEN}")
        'secret_value'
        >>> resolve_env_var("no variables here")
        'no variables here'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _resolve_value(value: object) -> object:
    if isinstance(value, str):
        return resolve_env_var(value)
    if isinstance(value, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(value, list):
        return [_resolve_value(item) for item in value]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return value


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving environment variable
    references in string values. Non-string values are preserved as-is.

    Args:
        data: Dictionary potentially containing environment variable references

    Returns:
        New dictionary with environment variables resolved

    Raises:
        EnvironmentVariableError: If a required environment variable is missing
    """
    return {key: _resolve_value(value) for key, value in data.items()}


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails.

    This exception provides detailed, actionable error messages for configuration
    issues including file not found, YAML parsing errors, and validation failures.
    """


def _format_validation_error(error: ValidationError, config_path: Path) -> str:
    error_lines = ["Configuration validation failed:", ""]
    for item in error.errors():
        field_path = " → ".join(str(loc) for loc in item["loc"])
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {item['msg']}")
        error_lines.append(f"  Type: {item['type']}")
        error_lines.append("")

    error_lines.append(f"Configuration file: {config_path}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate main application configuration from YAML file.

    Args:
        config_path: Path to main configuration YAML file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If configuration file cannot be loaded or is invalid
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location.\n"
            f"See config/mass-notify.example.yaml for the file format."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file loads as None and means "all defaults"
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e, config_path)) from e

    return config
