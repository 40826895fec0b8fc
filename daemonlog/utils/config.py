"""
Configuration management for daemonlog.

Handles loading and merging configuration from:
- Default configuration file
- An optional override configuration file
- Environment variables

Sink options live under the ``log_sink`` section and use the option names
the service wrapper passes through (``filename``, ``maxSizeMB``,
``maxFiles``, ``level``, ``compress``, ``tag``).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from daemonlog.core.sink.levels import LogLevel

DEFAULT_MAX_SIZE_MB = 10
DEFAULT_MAX_FILES = 5

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _as_positive_int(value: Any, default: int) -> int:
    """Parse an int option; missing or non-positive values give ``default``."""
    if value is None:
        return default
    number = int(value)
    return number if number > 0 else default


@dataclass
class SinkConfig:
    """
    Construction options for a log sink.

    Attributes:
        filename: Active log file path
        max_size_mb: Rotation threshold in megabytes
        max_files: Number of rotated files to keep
        level: Minimum level name (unrecognized names become INFO)
        compress: Gzip rotated files
        tag: Identifier embedded in every line
    """

    filename: str
    max_size_mb: int = DEFAULT_MAX_SIZE_MB
    max_files: int = DEFAULT_MAX_FILES
    level: str = "INFO"
    compress: bool = False
    tag: str = ""

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        if not self.filename:
            raise ValueError("filename is required")
        self.filename = str(self.filename)
        self.max_size_mb = _as_positive_int(self.max_size_mb, DEFAULT_MAX_SIZE_MB)
        self.max_files = _as_positive_int(self.max_files, DEFAULT_MAX_FILES)
        self.level = LogLevel.from_string(self.level).name
        self.compress = _as_bool(self.compress)
        self.tag = "" if self.tag is None else str(self.tag)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "SinkConfig":
        """
        Build options from a mapping.

        Accepts the wrapper's camelCase names as well as snake_case aliases.

        Args:
            options: Raw option mapping

        Returns:
            Normalized sink options

        Raises:
            ValueError: If ``filename`` is missing
        """
        def pick(*names: str) -> Any:
            for name in names:
                if name in options:
                    return options[name]
            return None

        return cls(
            filename=pick("filename"),
            max_size_mb=pick("maxSizeMB", "max_size_mb"),
            max_files=pick("maxFiles", "max_files"),
            level=pick("level"),
            compress=pick("compress"),
            tag=pick("tag"),
        )


class Config:
    """Configuration manager for daemonlog."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file. If None, uses default.
        """
        self._config: Dict[str, Any] = {}
        self._load_default_config()

        if config_file:
            self._load_config_file(config_file)

        self._apply_env_overrides()

    def _load_default_config(self) -> None:
        """Load default configuration."""
        default_config_path = Path(__file__).parent.parent.parent / "config" / "default.yaml"
        if default_config_path.exists():
            self._load_config_file(str(default_config_path))

    def _load_config_file(self, config_file: str) -> None:
        """
        Load configuration from YAML file.

        Args:
            config_file: Path to YAML configuration file
        """
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}
            self._merge_config(file_config)

    def _merge_config(self, new_config: Dict[str, Any]) -> None:
        """
        Deep merge new configuration into existing configuration.

        Args:
            new_config: Configuration dictionary to merge
        """
        self._config = self._deep_merge(self._config, new_config)

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if filename := os.getenv("LOG_SINK_FILENAME"):
            self.set("log_sink.filename", filename)

        if max_size_mb := os.getenv("LOG_SINK_MAX_SIZE_MB"):
            self.set("log_sink.maxSizeMB", int(max_size_mb))

        if max_files := os.getenv("LOG_SINK_MAX_FILES"):
            self.set("log_sink.maxFiles", int(max_files))

        if sink_level := os.getenv("LOG_SINK_LEVEL"):
            self.set("log_sink.level", sink_level)

        if compress := os.getenv("LOG_SINK_COMPRESS"):
            self.set("log_sink.compress", _as_bool(compress))

        if tag := os.getenv("LOG_SINK_TAG"):
            self.set("log_sink.tag", tag)

        # Diagnostic (structlog) level, not the sink threshold
        if log_level := os.getenv("LOG_LEVEL"):
            self.set("logging.level", log_level)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "log_sink.maxFiles")
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set
        """
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def sink_config(self) -> SinkConfig:
        """
        Build sink options from the ``log_sink`` section.

        Raises:
            ValueError: If no filename is configured
        """
        return SinkConfig.from_mapping(self.get("log_sink", {}))

    def to_dict(self) -> Dict[str, Any]:
        """
        Get entire configuration as dictionary.

        Returns:
            Configuration dictionary
        """
        return self._config.copy()


# Global configuration instance
_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Optional configuration file path

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
