"""Core components for log file storage."""

from daemonlog.core import sink

__all__ = ["sink"]
