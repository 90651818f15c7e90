"""Unit tests for configuration system.

Tests for Pydantic configuration models, environment variable resolution
and YAML loading with actionable error messages.
"""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from mass_notify.core.config import (
    DEFAULT_DATABASE_URL,
    ENV_VAR_PATTERN,
    EXPO_PUSH_URL,
    ApplicationConfig,
    ConfigurationError,
    DispatchConfig,
    EnvironmentVariableError,
    GatewayConfig,
    MainConfig,
    load_main_config,
    resolve_env_var,
    resolve_env_vars_in_dict,
)


@pytest.mark.unit
class TestGatewayConfig:
    """Test GatewayConfig validation and defaults."""

    def test_default_values(self) -> None:
        """Test defaults point at the public push service."""
        config = GatewayConfig()

        assert config.url == EXPO_PUSH_URL
        assert config.timeout_seconds == 10.0
        assert config.access_token is None
        assert config.max_batch_size == 100

    @pytest.mark.parametrize("size", [0, 101])
    def test_batch_size_bounds(self, size: int) -> None:
        """Test batch size is limited to the gateway ceiling."""
        with pytest.raises(ValidationError):
            _ = GatewayConfig(max_batch_size=size)

    def test_url_must_be_http(self) -> None:
        """Test non-HTTP URLs are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            _ = GatewayConfig(url="ftp://push.example.com")

        assert "url" in str(exc_info.value)

    def test_timeout_must_be_positive(self) -> None:
        """Test zero timeout is rejected."""
        with pytest.raises(ValidationError):
            _ = GatewayConfig(timeout_seconds=0)


@pytest.mark.unit
class TestDispatchConfig:
    """Test DispatchConfig validation and derived values."""

    def test_default_values(self) -> None:
        """Test defaults send batches one at a time without retry."""
        config = DispatchConfig()

        assert config.recency_window_days == 30
        assert config.recency_window == timedelta(days=30)
        assert config.max_concurrent_batches == 1
        assert config.retry_attempts == 0

    def test_negative_retry_rejected(self) -> None:
        """Test retry attempts cannot be negative."""
        with pytest.raises(ValidationError):
            _ = DispatchConfig(retry_attempts=-1)

    def test_zero_concurrency_rejected(self) -> None:
        """Test at least one batch must be allowed in flight."""
        with pytest.raises(ValidationError):
            _ = DispatchConfig(max_concurrent_batches=0)


@pytest.mark.unit
class TestApplicationConfig:
    """Test ApplicationConfig validation."""

    def test_default_values(self) -> None:
        config = ApplicationConfig()

        assert config.log_level == "INFO"
        assert config.dry_run is False
        assert config.syslog_enabled is False

    def test_invalid_log_level(self) -> None:
        """Test log level must be a standard level name."""
        with pytest.raises(ValidationError):
            _ = ApplicationConfig(log_level="VERBOSE")


@pytest.mark.unit
class TestMainConfig:
    """Test MainConfig composition and notification type overrides."""

    def test_empty_config_is_valid(self) -> None:
        """Test every section has defaults."""
        config = MainConfig()

        assert config.storage.database_url == DEFAULT_DATABASE_URL
        assert config.notification_types == {}
        assert config.enabled_overrides() == {}

    def test_notification_type_overrides(self) -> None:
        """Test overrides flatten to a key → enabled mapping."""
        config = MainConfig.model_validate({
            "notification_types": {
                "ORDER_CANCELLED": {"enabled": True},
                "PROMOTION": {"enabled": False},
            }
        })

        assert config.enabled_overrides() == {"ORDER_CANCELLED": True, "PROMOTION": False}

    def test_unknown_notification_type_rejected(self) -> None:
        """Test overrides for kinds that do not exist fail validation."""
        with pytest.raises(ValidationError) as exc_info:
            _ = MainConfig.model_validate({"notification_types": {"FLASH_SALE": {"enabled": True}}})

        assert "Unknown notification type(s): FLASH_SALE" in str(exc_info.value)


@pytest.mark.unit
class TestEnvironmentVariables:
    """Test environment variable resolution."""

    def test_pattern_matches_braced_names(self) -> None:
        match = ENV_VAR_PATTERN.search("Bearer ${EXPO_ACCESS_TOKEN}")
        assert match is not None
        assert match.group(1) == "EXPO_ACCESS_TOKEN"

    def test_resolve_single_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPO_ACCESS_TOKEN", "s3cret")
        assert resolve_env_var("${EXPO_ACCESS_TOKEN}") == "s3cret"

    def test_resolve_multiple_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db")
        monkeypatch.setenv("DB_NAME", "push")
        assert resolve_env_var("postgresql://${DB_HOST}/${DB_NAME}") == "postgresql://db/push"

    def test_plain_string_unchanged(self) -> None:
        assert resolve_env_var("no variables here") == "no variables here"

    def test_missing_variable_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test error names the variable without leaking anything else."""
        monkeypatch.delenv("MISSING_TOKEN", raising=False)

        with pytest.raises(EnvironmentVariableError, match="MISSING_TOKEN"):
            _ = resolve_env_var("${MISSING_TOKEN}")

    def test_resolve_nested_dict(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPO_ACCESS_TOKEN", "tok")

        resolved = resolve_env_vars_in_dict({
            "gateway": {"access_token": "${EXPO_ACCESS_TOKEN}", "timeout_seconds": 5},
            "hosts": ["${EXPO_ACCESS_TOKEN}", 3],
        })

        assert resolved == {
            "gateway": {"access_token": "tok", "timeout_seconds": 5},
            "hosts": ["tok", 3],
        }


@pytest.mark.unit
class TestLoadMainConfig:
    """Test YAML loading and error reporting."""

    def test_load_full_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXPO_ACCESS_TOKEN", "tok")
        config_path = tmp_path / "mass-notify.yaml"
        _ = config_path.write_text(
            "gateway:\n"
            "  access_token: ${EXPO_ACCESS_TOKEN}\n"
            "  max_batch_size: 50\n"
            "dispatch:\n"
            "  recency_window_days: 7\n"
            "  max_concurrent_batches: 4\n"
            "storage:\n"
            "  database_url: sqlite:///tmp.db\n"
            "notification_types:\n"
            "  SYSTEM_UPDATE:\n"
            "    enabled: true\n"
            "application:\n"
            "  log_level: DEBUG\n"
            "  dry_run: true\n"
        )

        config = load_main_config(config_path)

        assert config.gateway.access_token == "tok"
        assert config.gateway.max_batch_size == 50
        assert config.dispatch.recency_window == timedelta(days=7)
        assert config.dispatch.max_concurrent_batches == 4
        assert config.storage.database_url == "sqlite:///tmp.db"
        assert config.enabled_overrides() == {"SYSTEM_UPDATE": True}
        assert config.application.dry_run is True

    def test_example_file_is_valid(self) -> None:
        """Test the shipped example configuration loads."""
        example = Path(__file__).parents[3] / "config" / "mass-notify.example.yaml"

        config = load_main_config(example)

        assert config.enabled_overrides() == {"ORDER_CANCELLED": False, "SYSTEM_UPDATE": False}

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config_path = tmp_path / "empty.yaml"
        _ = config_path.write_text("")

        assert load_main_config(config_path) == MainConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            _ = load_main_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_path = tmp_path / "broken.yaml"
        _ = config_path.write_text("gateway: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            _ = load_main_config(config_path)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        config_path = tmp_path / "list.yaml"
        _ = config_path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="Expected YAML dictionary"):
            _ = load_main_config(config_path)

    def test_missing_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("UNSET_GATEWAY_TOKEN", raising=False)
        config_path = tmp_path / "env.yaml"
        _ = config_path.write_text("gateway:\n  access_token: ${UNSET_GATEWAY_TOKEN}\n")

        with pytest.raises(ConfigurationError, match="UNSET_GATEWAY_TOKEN"):
            _ = load_main_config(config_path)

    def test_validation_error_is_actionable(self, tmp_path: Path) -> None:
        """Test validation errors name the field and the file."""
        config_path = tmp_path / "bad.yaml"
        _ = config_path.write_text("gateway:\n  max_batch_size: 500\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_path)

        message = str(exc_info.value)
        assert "gateway → max_batch_size" in message
        assert str(config_path) in message
