"""
daemonlog - A size-bounded, rotating log sink for long-running processes.

This package provides an append-only log file for a background daemon with:
- Level filtering before any I/O
- Size-based rotation to timestamped files
- Background gzip compression of rotated files
- Count-based retention of rotated files
- A bridge for the standard logging module
"""

__version__ = "0.1.0"

from daemonlog.core.sink import (
    LevelFilter,
    LogLevel,
    LogSink,
    LogSinkError,
    RotationError,
    SinkConfigurationError,
    SinkHandler,
    SinkUnavailableError,
)
from daemonlog.utils.config import SinkConfig

__all__ = [
    "LevelFilter",
    "LogLevel",
    "LogSink",
    "LogSinkError",
    "RotationError",
    "SinkConfig",
    "SinkConfigurationError",
    "SinkHandler",
    "SinkUnavailableError",
]
