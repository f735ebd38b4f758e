"""
Tests for startup configuration loading.

These tests verify:
- PORT, HOST and ENV are copied verbatim
- A missing .env file only produces a warning
- .env values seed the environment without overriding real variables
- Loading is idempotent and the result is immutable
"""

import logging
import os

import pytest
from pydantic import ValidationError

from app_settings import Settings, load_settings


class TestLoadSettings:
    """Test suite for load_settings()."""

    def test_reads_port_host_env(self, monkeypatch: pytest.MonkeyPatch):
        """Test that the three core variables are copied into settings."""
        monkeypatch.setenv("PORT", ":4000")
        monkeypatch.setenv("HOST", "localhost")
        monkeypatch.setenv("ENV", "development")

        settings = load_settings()

        assert settings.port == ":4000"
        assert settings.host == "localhost"
        assert settings.environment == "development"
        assert settings.is_development

    def test_missing_values_are_empty_strings(self):
        """Test that absent variables yield empty values without errors."""
        settings = load_settings()

        assert settings.port == ""
        assert settings.host == ""
        assert settings.environment == ""
        assert not settings.is_development

    def test_unrecognized_environment_is_accepted(self, monkeypatch: pytest.MonkeyPatch):
        """Test that no validation happens on ENV."""
        monkeypatch.setenv("ENV", "production")

        settings = load_settings()

        assert settings.environment == "production"
        assert not settings.is_development

    def test_missing_env_file_logs_warning(self, caplog: pytest.LogCaptureFixture):
        """Test that a missing .env file is reported but not fatal."""
        with caplog.at_level(logging.WARNING, logger="relay.config"):
            settings = load_settings(".env")

        assert isinstance(settings, Settings)
        assert any("Error loading .env file" in r.getMessage() for r in caplog.records)

    def test_no_env_file_skips_warning(self, caplog: pytest.LogCaptureFixture):
        """Test that passing None skips the override file silently."""
        with caplog.at_level(logging.WARNING, logger="relay.config"):
            load_settings(None)

        assert not caplog.records

    def test_env_file_values_loaded(self, isolated_env):
        """Test that key=value pairs from the override file are used."""
        (isolated_env / ".env").write_text("PORT=:5000\nHOST=example.local\nENV=development\n")

        settings = load_settings()

        assert settings.port == ":5000"
        assert settings.host == "example.local"
        assert settings.environment == "development"

    def test_environment_wins_over_env_file(self, isolated_env, monkeypatch: pytest.MonkeyPatch):
        """Test that real environment variables are not overridden by the file."""
        (isolated_env / ".env").write_text("PORT=:5000\nENV=staging\n")
        monkeypatch.setenv("PORT", ":6000")

        settings = load_settings()

        assert settings.port == ":6000"
        assert settings.environment == "staging"

    def test_alternate_env_file_path(self, isolated_env):
        """Test loading an override file from a custom location."""
        config_dir = isolated_env / "config"
        config_dir.mkdir()
        (config_dir / "relay.env").write_text("PORT=:7000\n")

        settings = load_settings(config_dir / "relay.env")

        assert settings.port == ":7000"

    def test_load_is_idempotent(self, monkeypatch: pytest.MonkeyPatch):
        """Test that two loads against the same environment are equal."""
        monkeypatch.setenv("PORT", ":4000")
        monkeypatch.setenv("ENV", "development")

        assert load_settings() == load_settings()

    def test_load_does_not_modify_process_environment(self, isolated_env, monkeypatch: pytest.MonkeyPatch):
        """Test that file values are not written back into os.environ."""
        (isolated_env / ".env").write_text("PORT=:5000\n")

        load_settings()

        assert "PORT" not in os.environ


class TestSettingsDefaults:
    """Test suite for timeout and logging defaults."""

    def test_timeout_defaults(self):
        """Test the read/write/idle/shutdown defaults."""
        settings = load_settings(None)

        assert settings.read_timeout == 10.0
        assert settings.write_timeout == 10.0
        assert settings.idle_timeout == 60.0
        assert settings.shutdown_timeout == 5.0

    def test_timeouts_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        """Test that timeouts can be injected through the environment."""
        monkeypatch.setenv("SHUTDOWN_TIMEOUT", "0.5")
        monkeypatch.setenv("IDLE_TIMEOUT", "15")

        settings = load_settings(None)

        assert settings.shutdown_timeout == 0.5
        assert settings.idle_timeout == 15.0

    def test_logging_defaults(self):
        """Test logging settings defaults."""
        settings = load_settings(None)

        assert settings.log_level == "INFO"
        assert settings.log_json is False

    def test_settings_are_frozen(self):
        """Test that settings cannot be mutated after construction."""
        settings = load_settings(None)

        with pytest.raises(ValidationError):
            settings.port = ":9999"

    def test_model_copy_leaves_original_untouched(self):
        """Test that overrides produce a new value."""
        settings = load_settings(None)
        updated = settings.model_copy(update={"shutdown_timeout": 1.0})

        assert updated.shutdown_timeout == 1.0
        assert settings.shutdown_timeout == 5.0
