"""Central Configuration System for the scrapbook archive.

This module is the single source of truth for application configuration.
Every other module that needs settings imports from here.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- Storage location and backend selection
- Logging level and optional log file

Example:
    >>> from scrapbook.config import get_config
    >>>
    >>> cfg = get_config()
    >>> print(cfg.storage.data_dir)

Config File Format (YAML):
    ```yaml
    storage:
      data_dir: ~/.scrapbook/data
      backend: file  # file | memory
      raise_on_write_error: false

    logging:
      level: INFO
      log_file: ~/.scrapbook/logs/scrapbook.log
      quiet_third_party: true

    debug: false
    verbose: false
    ```
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".scrapbook"


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Exception raised for YAML config file issues.

    Raised when a config file was named explicitly but cannot be read.
    """

    pass


# =============================================================================
# Enums
# =============================================================================


class StorageBackend(str, Enum):
    """Where the archive is persisted.

    Attributes:
        FILE: JSON files in ``storage.data_dir``. The default.
        MEMORY: Nothing is written to disk; the archive lives for one session.
    """

    FILE = "file"
    MEMORY = "memory"


# =============================================================================
# Configuration Models
# =============================================================================


class StorageConfig(BaseModel):
    """Configuration for archive persistence.

    Attributes:
        data_dir: Directory holding memories.json, albums.json and achievements.json.
        backend: Persistence substrate.
        raise_on_write_error: Re-raise WriteError to the caller after a mutation
            instead of only recording a warning.
    """

    data_dir: Path = Field(
        default_factory=lambda: DEFAULT_CONFIG_DIR / "data",
        description="Directory for archive records.",
    )
    backend: StorageBackend = Field(
        default=StorageBackend.FILE, description="Persistence substrate."
    )
    raise_on_write_error: bool = Field(
        default=False, description="Surface write failures as exceptions."
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        """Expand ~ and resolve path."""
        if isinstance(v, (str, Path)):
            return Path(v).expanduser().resolve()
        return v


class LoggingConfig(BaseModel):
    """Configuration for log output.

    Attributes:
        level: Log level for the scrapbook package logger.
        log_file: Optional file receiving a copy of all log records.
        quiet_third_party: Hold noisy third-party loggers at WARNING.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Package log level."
    )
    log_file: Path | None = Field(default=None, description="Optional log file.")
    quiet_third_party: bool = Field(default=True, description="Silence noisy libraries.")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_file", mode="before")
    @classmethod
    def expand_log_file(cls, v: Any) -> Path | None:
        if isinstance(v, (str, Path)) and str(v):
            return Path(v).expanduser().resolve()
        return None


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Combines all configuration sections and supports loading from environment
    variables with the SCRAPBOOK_ prefix (nested with ``__``, for example
    ``SCRAPBOOK_STORAGE__DATA_DIR``).

    Configuration priority (highest wins):
    1. Environment variables (SCRAPBOOK_*)
    2. Config file (YAML)
    3. In-code defaults
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")
    verbose: bool = Field(default=False, description="Enable verbose output.")

    model_config = {
        "env_prefix": "SCRAPBOOK_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore unknown fields for forward compatibility
    }

    def effective_log_level(self) -> str:
        """Log level after applying the debug/verbose switches."""
        if self.debug:
            return "DEBUG"
        if self.verbose and self.logging.level in ("WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return self.logging.level


# =============================================================================
# Module-Level Functions
# =============================================================================


def _read_yaml(config_file: Path) -> dict[str, Any]:
    """Parse a YAML config file, returning {} when it is empty or malformed."""
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Cannot read config file {config_file}: {e}") from e

    if not content.strip():
        return {}
    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        return {}
    return loaded


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only (not an error).
    If the config file is malformed, logs a warning and uses defaults.

    Args:
        path: Optional path to config file. If None, searches default locations.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If ``path`` was given explicitly but cannot be read.
    """
    search_paths = [
        path,
        Path("./scrapbook.yaml"),
        Path("./scrapbook.yml"),
        DEFAULT_CONFIG_DIR / "config.yaml",
        DEFAULT_CONFIG_DIR / "config.yml",
    ]

    config_file: Path | None = None
    for search_path in search_paths:
        if search_path is not None and search_path.exists():
            config_file = search_path
            break

    if path is not None and config_file != path:
        raise ConfigFileError(f"Config file not found: {path}")

    config_data = _read_yaml(config_file) if config_file is not None else {}

    # Environment variables take priority over file values, so only pass
    # file sections that the environment does not override.
    env_config = AppConfig()
    try:
        merged = _merge(config_data, env_config.model_dump(exclude_unset=True))
        return AppConfig(**merged)
    except ValueError as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return env_config


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` onto ``base``."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton.

    Loads configuration once and returns the same instance on subsequent calls.
    """
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache for testing."""
    get_config.cache_clear()
