"""Exceptions raised by the log sink."""


class LogSinkError(Exception):
    """Base class for log sink failures."""
    pass


class SinkConfigurationError(LogSinkError):
    """Raised when the sink cannot be constructed (directory or file unusable)."""
    pass


class SinkUnavailableError(LogSinkError):
    """Raised when writing to a sink that has no active file."""
    pass


class RotationError(LogSinkError):
    """
    Raised when a rotation step fails.

    Attributes:
        step: Name of the failed step ("close", "rename" or "open")
        path: Active file path being rotated
    """

    def __init__(self, step: str, path: str, error: OSError):
        self.step = step
        self.path = path
        super().__init__(f"Rotation failed during {step} of {path}: {error}")


class DiskFullError(LogSinkError):
    """Raised when the disk is full while appending."""
    pass
