"""Tests for configuration management.

Tests cover:
- Defaults and environment overrides
- Validation of invalid configuration
- Settings cache behavior and fail-fast loading
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from zeebe_http.core.config import (
    DEFAULT_BROKER_ADDRESS,
    ConfigValidationError,
    Settings,
    validate_settings,
)
from zeebe_http.core.settings import clear_settings_cache, get_settings

_ENV_VARS = (
    "BROKER",
    "LOG_LEVEL",
    "WORKER_NAME",
    "WORKER_MAX_JOBS",
    "WORKER_POLL_INTERVAL",
    "WORKER_JOB_TIMEOUT_MS",
    "WORKER_REQUEST_TIMEOUT_MS",
    "PROBE_ENABLED",
    "PROBE_PORT",
    "LOCAL_ENV_VARS_PREFIX",
    "ENV_VARS_URL",
    "ENV_VARS_RELOAD_RATE",
    "ENV_VARS_M2M_BASE_URL",
    "ENV_VARS_M2M_CLIENT_ID",
    "ENV_VARS_M2M_CLIENT_SECRET",
    "ENV_VARS_M2M_AUDIENCE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove worker variables from the environment and reset the cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self):
        """Test the documented defaults."""
        settings = Settings(_env_file=None)

        assert settings.broker == DEFAULT_BROKER_ADDRESS == "0.0.0.0:26500"
        assert settings.log_level == "INFO"
        assert settings.worker_name == "http-go"
        assert settings.worker_max_jobs == 32
        assert settings.probe_enabled is True
        assert settings.probe_port == 8080
        assert settings.local_env_vars_prefix == "ZEEBE_ENV_"
        assert settings.local_env_vars_remove_prefix is True
        assert settings.env_vars_url is None
        assert settings.env_vars_reload_rate == 15_000
        assert settings.env_vars_m2m_base_url is None

    def test_environment_overrides(self, monkeypatch):
        """Test loading values from unprefixed environment variables."""
        monkeypatch.setenv("BROKER", "zeebe-gateway:26500")
        monkeypatch.setenv("WORKER_MAX_JOBS", "4")
        monkeypatch.setenv("PROBE_ENABLED", "false")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.broker == "zeebe-gateway:26500"
        assert settings.worker_max_jobs == 4
        assert settings.probe_enabled is False
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("address", ["zeebe", ":26500", "zeebe:port"])
    def test_invalid_broker_address(self, address):
        """Test that the broker address must be host:port."""
        with pytest.raises(ValidationError, match="host:port"):
            Settings(_env_file=None, broker=address)

    def test_invalid_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError, match="log_level"):
            Settings(_env_file=None, log_level="LOUD")

    def test_max_jobs_bounds(self):
        """Test that the in-flight buffer must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, worker_max_jobs=0)


class TestValidateSettings:
    """Tests for validate_settings()."""

    def test_valid_defaults(self):
        """Test that the defaults pass validation."""
        validate_settings(Settings(_env_file=None))

    def test_request_timeout_must_be_shorter_than_lease(self):
        """Test that a long poll longer than the job lease is rejected."""
        settings = Settings(
            _env_file=None,
            worker_job_timeout_ms=5_000,
            worker_request_timeout_ms=10_000,
        )

        with pytest.raises(ConfigValidationError) as exc_info:
            validate_settings(settings)

        assert exc_info.value.field == "worker_request_timeout_ms"

    def test_empty_prefix_is_rejected(self):
        """Test that the local environment prefix cannot be empty."""
        settings = Settings(_env_file=None, local_env_vars_prefix="")

        with pytest.raises(ConfigValidationError, match="LOCAL_ENV_VARS_PREFIX"):
            validate_settings(settings)

    def test_m2m_requires_client_credentials(self):
        """Test that a token endpoint without client credentials is rejected."""
        settings = Settings(
            _env_file=None,
            env_vars_url="https://config.example/variables",
            env_vars_m2m_base_url="https://auth.example/oauth/token",
            env_vars_m2m_client_id="worker",
        )

        with pytest.raises(ConfigValidationError, match="ENV_VARS_M2M_CLIENT_SECRET"):
            validate_settings(settings)

    def test_m2m_requires_variables_url(self):
        """Test that a token endpoint is only accepted with a variables URL."""
        settings = Settings(
            _env_file=None,
            env_vars_m2m_base_url="https://auth.example/oauth/token",
            env_vars_m2m_client_id="worker",
            env_vars_m2m_client_secret="s3cr3t",
        )

        with pytest.raises(ConfigValidationError) as exc_info:
            validate_settings(settings)

        assert exc_info.value.field == "env_vars_url"

    def test_remote_variables_from_environment(self, monkeypatch):
        """Test loading the remote variables settings from the environment."""
        monkeypatch.setenv("ENV_VARS_URL", "https://config.example/variables")
        monkeypatch.setenv("ENV_VARS_RELOAD_RATE", "60000")
        monkeypatch.setenv("ENV_VARS_M2M_BASE_URL", "https://auth.example/oauth/token")
        monkeypatch.setenv("ENV_VARS_M2M_CLIENT_ID", "worker")
        monkeypatch.setenv("ENV_VARS_M2M_CLIENT_SECRET", "s3cr3t")

        settings = Settings(_env_file=None)
        validate_settings(settings)

        assert settings.env_vars_reload_rate == 60_000
        assert settings.env_vars_m2m_client_secret.get_secret_value() == "s3cr3t"
        assert "s3cr3t" not in repr(settings)


class TestGetSettings:
    """Tests for the cached accessor."""

    def test_settings_are_cached(self, monkeypatch):
        """Test that repeated calls return the same instance until cleared."""
        monkeypatch.setenv("BROKER", "first:26500")
        first = get_settings()
        monkeypatch.setenv("BROKER", "second:26500")

        assert get_settings() is first

        clear_settings_cache()

        assert get_settings().broker == "second:26500"

    def test_invalid_environment_exits(self, monkeypatch):
        """Test fail-fast behavior on invalid configuration."""
        monkeypatch.setenv("WORKER_MAX_JOBS", "not-a-number")

        with pytest.raises(SystemExit) as exc_info:
            get_settings()

        assert exc_info.value.code == 1

    def test_failed_runtime_validation_exits(self, monkeypatch):
        """Test fail-fast behavior when runtime validation fails."""
        monkeypatch.setenv("WORKER_JOB_TIMEOUT_MS", "2000")
        monkeypatch.setenv("WORKER_REQUEST_TIMEOUT_MS", "3000")

        with pytest.raises(SystemExit):
            get_settings()
