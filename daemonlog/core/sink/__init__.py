"""
Rotating log sink implementation.

This package provides an append-only log file with:
- Minimum-level gating
- Size-based rotation under a single lock
- Fire-and-forget gzip compression of rotated files
- Count-based retention of rotated files
"""

from daemonlog.core.sink.compression import SegmentCompressor, compress_file
from daemonlog.core.sink.errors import (
    DiskFullError,
    LogSinkError,
    RotationError,
    SinkConfigurationError,
    SinkUnavailableError,
)
from daemonlog.core.sink.handler import SinkHandler
from daemonlog.core.sink.levels import LevelFilter, LogLevel
from daemonlog.core.sink.retention import RetentionManager, RotatedSegment
from daemonlog.core.sink.rotation import Rotator
from daemonlog.core.sink.sink import LogSink

__all__ = [
    "DiskFullError",
    "LevelFilter",
    "LogLevel",
    "LogSink",
    "LogSinkError",
    "RetentionManager",
    "RotatedSegment",
    "RotationError",
    "Rotator",
    "SegmentCompressor",
    "SinkConfigurationError",
    "SinkHandler",
    "SinkUnavailableError",
    "compress_file",
]
