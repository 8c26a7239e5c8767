"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for application configs.
"""

import logging
import os
import tempfile

import pytest
import yaml

from boat_fuel_tracker.config.loader import (
    AppConfig,
    DB_PATH_ENV_VAR,
    DatabaseConfig,
    LoggingConfig,
    configure_logging,
    default_config,
    load_config
)
from boat_fuel_tracker.storage.db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT_SECONDS


class TestConfigLoading:
    """Test configuration loading and validation."""

    @pytest.fixture(autouse=True)
    def clear_environment(self, monkeypatch):
        monkeypatch.delenv(DB_PATH_ENV_VAR, raising=False)

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_path = self._write_config({
            "database": {
                "path": "/var/lib/boat/fuel.db",
                "timeout_seconds": 2.5
            },
            "logging": {
                "level": "debug"
            }
        })
        config = load_config(config_path)

        assert config.database.path == "/var/lib/boat/fuel.db"
        assert config.database.timeout_seconds == 2.5
        assert config.logging.level == "DEBUG"

    def test_sections_default_when_omitted(self):
        config = load_config(self._write_config({"logging": {"level": "WARNING"}}))
        assert config.database == DatabaseConfig()
        assert config.logging.level == "WARNING"

    def test_empty_file_gives_defaults(self):
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        assert load_config(config_path) == AppConfig()

    def test_integer_timeout_accepted(self):
        config = load_config(self._write_config({"database": {"timeout_seconds": 3}}))
        assert config.database.timeout_seconds == 3.0

    def test_missing_file_raises_error(self):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config("nonexistent.yaml")

    def test_invalid_yaml_raises_error(self):
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_config(config_path)

    def test_non_mapping_raises_error(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(self._write_config(["database"]))

    def test_unknown_top_level_key_raises_error(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(self._write_config({"budget": {"daily": 1}}))

    def test_unknown_database_key_raises_error(self):
        with pytest.raises(ValueError, match="Unknown keys in database"):
            load_config(self._write_config({"database": {"engine": "postgres"}}))

    def test_unknown_logging_key_raises_error(self):
        with pytest.raises(ValueError, match="Unknown keys in logging"):
            load_config(self._write_config({"logging": {"format": "json"}}))

    def test_database_must_be_mapping(self):
        with pytest.raises(ValueError, match="'database' must be a dictionary"):
            load_config(self._write_config({"database": "fuel.db"}))

    @pytest.mark.parametrize("timeout", [0, -1, "fast", True])
    def test_invalid_timeout_raises_error(self, timeout):
        with pytest.raises(ValueError, match="timeout_seconds"):
            load_config(self._write_config({"database": {"timeout_seconds": timeout}}))

    def test_empty_path_raises_error(self):
        with pytest.raises(ValueError, match="'path' in database"):
            load_config(self._write_config({"database": {"path": ""}}))

    def test_unknown_log_level_raises_error(self):
        with pytest.raises(ValueError, match="log level must be one of"):
            load_config(self._write_config({"logging": {"level": "chatty"}}))

    def test_environment_overrides_database_path(self, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV_VAR, "/tmp/override.db")
        config = load_config(self._write_config({"database": {"path": "fuel.db", "timeout_seconds": 9}}))
        assert config.database.path == "/tmp/override.db"
        assert config.database.timeout_seconds == 9.0


class TestDefaults:
    """Test default configuration."""

    def test_default_config(self, monkeypatch):
        monkeypatch.delenv(DB_PATH_ENV_VAR, raising=False)
        config = default_config()
        assert config.database.path == DEFAULT_DB_PATH
        assert config.database.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
        assert config.logging.level == "INFO"

    def test_default_config_honours_environment(self, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV_VAR, "elsewhere.db")
        assert default_config().database.path == "elsewhere.db"

    def test_config_objects_validate(self):
        with pytest.raises(ValueError):
            DatabaseConfig(path="fuel.db", timeout_seconds=0)
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")


class TestConfigureLogging:
    """Test package logger setup."""

    def test_single_handler_and_level(self):
        logger = configure_logging("DEBUG")
        handlers = list(logger.handlers)
        assert logger.level == logging.DEBUG

        configure_logging("WARNING")
        assert logger.handlers == handlers
        assert logger.level == logging.WARNING
        assert logger.name == "boat_fuel_tracker"
