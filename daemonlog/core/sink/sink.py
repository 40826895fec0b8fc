"""
Size-bounded, append-only log sink.

The sink owns the active file descriptor and the running byte count. A single
lock covers the size check, rotation, retention and the append itself, so
concurrent producers see every write land whole in exactly one file.

Rotated files are compressed on a background worker when enabled; that is the
only work that happens outside the lock.
"""

import errno
import os
import threading
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from daemonlog.core.sink.compression import SegmentCompressor
from daemonlog.core.sink.errors import (
    DiskFullError,
    LogSinkError,
    SinkConfigurationError,
    SinkUnavailableError,
)
from daemonlog.core.sink.levels import LevelFilter, LogLevel
from daemonlog.core.sink.retention import RetentionManager
from daemonlog.core.sink.rotation import Rotator, open_append
from daemonlog.utils.logging import get_logger

if TYPE_CHECKING:
    from daemonlog.utils.config import SinkConfig

logger = get_logger(__name__)

DEFAULT_MAX_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_FILES = 5

LINE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_message(message: Any, args: tuple) -> str:
    """
    Merge ``%``-style arguments into a message, the way stdlib logging does.

    Arguments that do not fit the message are appended instead of raising.
    """
    message = str(message)
    if not args:
        return message

    if len(args) == 1 and isinstance(args[0], Mapping) and args[0]:
        args = args[0]

    try:
        return message % args
    except (TypeError, ValueError, KeyError):
        return f"{message} {args!r}"


class LogSink:
    """
    Append-only log file with size-based rotation.

    Attributes:
        path: Active log file
        max_size: Rotation threshold in bytes
        max_files: Number of rotated files kept
        compress: Whether rotated files are gzip-compressed
        tag: Identifier embedded in every formatted line
    """

    def __init__(
        self,
        filename: Union[str, Path],
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        max_files: int = DEFAULT_MAX_FILES,
        level: Union[LogLevel, str] = LogLevel.INFO,
        compress: bool = False,
        tag: str = "",
        error_logger: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Open (or resume) a log sink.

        Args:
            filename: Active log file path; its directory is created if missing
            max_size_bytes: Rotation threshold in bytes (<= 0 = 10 MB)
            max_files: Rotated files to keep (<= 0 = 5)
            level: Minimum level written by ``log``
            compress: Gzip rotated files in the background
            tag: Identifier embedded in every formatted line
            error_logger: Receiver of out-of-band failure notices
                (structlog-style ``error``); defaults to this module's
                structlog logger
            clock: Time source for line and rotation timestamps

        Raises:
            SinkConfigurationError: If the directory or file cannot be opened
        """
        self.path = Path(filename)
        self.max_size = max_size_bytes if max_size_bytes > 0 else DEFAULT_MAX_SIZE_BYTES
        self.max_files = max_files if max_files > 0 else DEFAULT_MAX_FILES
        self.compress = compress
        self.tag = tag

        if isinstance(level, str):
            self._filter = LevelFilter.from_string(level)
        else:
            self._filter = LevelFilter(level)

        self._error_logger = error_logger or logger
        self._clock = clock or datetime.now

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SinkConfigurationError(
                f"Failed to create log directory {directory}: {e}"
            ) from e

        try:
            self._fd: Optional[int] = open_append(self.path)
        except OSError as e:
            raise SinkConfigurationError(f"Failed to open log file {self.path}: {e}") from e

        try:
            self._size = os.fstat(self._fd).st_size
        except OSError as e:
            os.close(self._fd)
            raise SinkConfigurationError(f"Failed to stat log file {self.path}: {e}") from e

        self._lock = threading.Lock()
        self._rotations = 0

        self._rotator = Rotator(self.path, clock=self._clock)
        self._retention = RetentionManager(
            self.path,
            self.max_files,
            error_logger=self._error_logger,
        )
        self._compressor = (
            SegmentCompressor(error_logger=self._error_logger) if compress else None
        )

        logger.info(
            "Opened log sink",
            path=str(self.path),
            size=self._size,
            max_size=self.max_size,
            max_files=self.max_files,
            level=self._filter.threshold.name,
            compress=compress,
        )

    @classmethod
    def from_config(
        cls,
        config: "SinkConfig",
        error_logger: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "LogSink":
        """
        Build a sink from a ``SinkConfig``.

        Args:
            config: Parsed sink options
            error_logger: Receiver of out-of-band failure notices
            clock: Time source for timestamps

        Returns:
            Open sink
        """
        return cls(
            filename=config.filename,
            max_size_bytes=config.max_size_mb * 1024 * 1024,
            max_files=config.max_files,
            level=config.level,
            compress=config.compress,
            tag=config.tag,
            error_logger=error_logger,
            clock=clock,
        )

    @property
    def level(self) -> LogLevel:
        return self._filter.threshold

    def write(self, data: bytes) -> int:
        """
        Append raw bytes, rotating first if they would reach the threshold.

        Args:
            data: Bytes to append

        Returns:
            Number of bytes written

        Raises:
            SinkUnavailableError: If an earlier rotation failed or the sink is closed
            RotationError: If the rotation triggered by this write fails
            DiskFullError: If the disk is full
            OSError: If the append fails otherwise
        """
        with self._lock:
            if self._fd is None:
                raise SinkUnavailableError(f"No active log file for {self.path}")

            if self._rotator.should_rotate(self._size, len(data), self.max_size):
                self._rotate()

            return self._append(data)

    def _rotate(self) -> None:
        """Rotate the active file. Caller must hold the lock."""
        fd, self._fd = self._fd, None

        # On failure the sink stays without an active file until re-created.
        new_fd, rotated = self._rotator.rotate(fd)

        self._fd = new_fd
        self._size = 0
        self._rotations += 1

        if self._compressor is not None:
            self._compressor.submit(rotated)

        self._retention.apply()

    def _append(self, data: bytes) -> int:
        """Write all of ``data`` to the active file. Caller must hold the lock."""
        view = memoryview(data)
        written = 0

        try:
            while written < len(view):
                n = os.write(self._fd, view[written:])
                if n == 0:
                    raise IOError(
                        f"Short write: expected {len(view)} bytes, wrote {written} bytes"
                    )
                written += n
        except OSError as e:
            if e.errno == errno.ENOSPC:
                raise DiskFullError(f"Disk is full, cannot append to {self.path}") from e
            raise
        finally:
            self._size += written

        return written

    def format_record(self, level: LogLevel, message: Any, args: tuple = ()) -> str:
        """
        Render one log line.

        Returns:
            ``[<timestamp>] [<LEVEL>] [<tag>] <message>`` plus a newline
        """
        timestamp = self._clock().strftime(LINE_TIMESTAMP_FORMAT)
        text = render_message(message, args)
        return f"[{timestamp}] [{LogLevel(level).name}] [{self.tag}] {text}\n"

    def enabled_for(self, level: LogLevel) -> bool:
        return self._filter.allows(level)

    def log(self, level: LogLevel, message: Any, *args: Any) -> None:
        """
        Format and write a record if ``level`` passes the threshold.

        Failures are reported to the error logger and never raised.

        Args:
            level: Record severity
            message: Message, optionally with ``%`` placeholders
            *args: Values for the placeholders
        """
        level = LogLevel(level)
        if not self._filter.allows(level):
            return

        line = self.format_record(level, message, args)

        try:
            self.write(line.encode("utf-8"))
        except (LogSinkError, OSError) as e:
            self._error_logger.error(
                "Failed to write log record",
                path=str(self.path),
                level=level.name,
                error=str(e),
            )

    def debug(self, message: Any, *args: Any) -> None:
        self.log(LogLevel.DEBUG, message, *args)

    def info(self, message: Any, *args: Any) -> None:
        self.log(LogLevel.INFO, message, *args)

    def warn(self, message: Any, *args: Any) -> None:
        self.log(LogLevel.WARN, message, *args)

    def error(self, message: Any, *args: Any) -> None:
        self.log(LogLevel.ERROR, message, *args)

    def fatal(self, message: Any, *args: Any) -> None:
        """Log at FATAL. Does not terminate the process."""
        self.log(LogLevel.FATAL, message, *args)

    def size(self) -> int:
        """
        Get bytes appended to the active file since it was opened or rotated.

        Returns:
            Size in bytes
        """
        with self._lock:
            return self._size

    def rotation_count(self) -> int:
        """Number of rotations performed by this instance."""
        with self._lock:
            return self._rotations

    def is_active(self) -> bool:
        """Check whether the sink has an open active file."""
        with self._lock:
            return self._fd is not None

    def wait_for_compression(self, timeout: Optional[float] = None) -> bool:
        """
        Block until background compressions finish.

        Only meant for shutdown and tests; writes never wait on compression.

        Returns:
            True if no compression is pending
        """
        if self._compressor is None:
            return True
        return self._compressor.wait(timeout)

    def close(self) -> None:
        """
        Close the active file and stop the compression worker.

        In-flight compressions are allowed to finish.
        """
        with self._lock:
            fd, self._fd = self._fd, None

        try:
            if fd is not None:
                os.close(fd)
        finally:
            if self._compressor is not None:
                self._compressor.shutdown(wait=True)

        logger.info("Closed log sink", path=str(self.path), rotations=self._rotations)

    def __enter__(self) -> "LogSink":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return (
            f"LogSink(path={str(self.path)!r}, "
            f"size={self._size}, "
            f"max_size={self.max_size}, "
            f"max_files={self.max_files})"
        )
