"""
Configuration management and loading.

Handles application settings and environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml
from rich.console import Console
from rich.logging import RichHandler

from ..storage.db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT_SECONDS

DB_PATH_ENV_VAR = "BOAT_FUEL_DB"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(name)s: %(message)s"

_PACKAGE_LOGGER = "boat_fuel_tracker"


@dataclass(frozen=True)
class DatabaseConfig:
    """Where fuel-ups are stored and how long to wait for locks."""
    path: str = DEFAULT_DB_PATH
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        """Validate database settings."""
        if not self.path:
            raise ValueError("database path cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class LoggingConfig:
    """Log level for the package logger."""
    level: str = "INFO"

    def __post_init__(self):
        """Validate log level is known."""
        if self.level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of: {list(LOG_LEVELS)}")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config() -> AppConfig:
    """Configuration used when no file is given, honouring the environment."""
    return _apply_environment(AppConfig())


def load_config(path: str) -> AppConfig:
    """Load and validate application configuration from YAML file.

    Strict validation ensures no silent misconfigurations. Both sections
    are optional and default when omitted.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'database', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database = _parse_database_config(raw_config.get('database', {}))
    logging_config = _parse_logging_config(raw_config.get('logging', {}))

    return _apply_environment(AppConfig(database=database, logging=logging_config))


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one Rich handler (writing to stderr) to the package logger.

    Calling this again only changes the level.

    Args:
        level: Name of a standard logging level

    Returns:
        The package logger
    """
    logger = logging.getLogger(_PACKAGE_LOGGER)
    if not logger.handlers:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def _parse_database_config(data: Dict) -> DatabaseConfig:
    """Parse and validate the database section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'database' must be a dictionary")

    allowed_keys = {'path', 'timeout_seconds'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in database: {unknown_keys}")

    path = data.get('path', DEFAULT_DB_PATH)
    if not isinstance(path, str) or not path.strip():
        raise ValueError("'path' in database must be a non-empty string")

    timeout = data.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'timeout_seconds' in database must be > 0")

    return DatabaseConfig(path=path, timeout_seconds=float(timeout))


def _parse_logging_config(data: Dict) -> LoggingConfig:
    """Parse and validate the logging section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'logging' must be a dictionary")

    allowed_keys = {'level'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in logging: {unknown_keys}")

    level = data.get('level', 'INFO')
    if not isinstance(level, str):
        raise ValueError("'level' in logging must be a string")

    return LoggingConfig(level=level.upper())


def _apply_environment(config: AppConfig, environ: Optional[Dict[str, str]] = None) -> AppConfig:
    environ = os.environ if environ is None else environ
    db_path = environ.get(DB_PATH_ENV_VAR)
    if not db_path:
        return config
    return AppConfig(
        database=DatabaseConfig(path=db_path, timeout_seconds=config.database.timeout_seconds),
        logging=config.logging
    )
