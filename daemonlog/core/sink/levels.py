"""
Severity levels and the level gate applied before any I/O.
"""

from enum import IntEnum
from typing import Optional


class LogLevel(IntEnum):
    """Ordered log severities."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def from_string(cls, name: Optional[str]) -> "LogLevel":
        """
        Parse a level name, case-insensitively.

        Unrecognized names fall back to INFO rather than raising, so a
        mistyped configuration value never prevents the sink from starting.

        Args:
            name: Level name such as "debug" or "WARN"

        Returns:
            Parsed level
        """
        if not name:
            return cls.INFO
        return cls.__members__.get(name.strip().upper(), cls.INFO)


class LevelFilter:
    """
    Gates log calls by minimum severity.

    Attributes:
        threshold: Minimum level that produces output
    """

    def __init__(self, threshold: LogLevel = LogLevel.INFO):
        self.threshold = LogLevel(threshold)

    @classmethod
    def from_string(cls, name: Optional[str]) -> "LevelFilter":
        return cls(LogLevel.from_string(name))

    def allows(self, level: LogLevel) -> bool:
        """Check whether a call at ``level`` should be written."""
        return level >= self.threshold

    def __repr__(self) -> str:
        return f"LevelFilter(threshold={self.threshold.name})"
