"""
Rotation of the active log file.

A rotation retires the active file under a timestamped name and starts a
fresh, empty file at the original path:

    app.log  ->  app.log.20261019-142501
    (new)        app.log

The sequence runs while the sink holds its lock and is not retried.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple

from daemonlog.core.sink.errors import RotationError
from daemonlog.utils.logging import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
COMPRESSED_SUFFIX = ".gz"

OPEN_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_APPEND
FILE_MODE = 0o644


def open_append(path: Path) -> int:
    """
    Open (creating if needed) a file for appending.

    Args:
        path: File to open

    Returns:
        OS-level file descriptor
    """
    return os.open(path, OPEN_FLAGS, FILE_MODE)


def rotated_path_for(path: Path, now: datetime) -> Path:
    """
    Build the name a rotated file will be moved to.

    Two rotations within the same second would map to the same name, so an
    increasing numeric suffix is appended until the name is free in both its
    plain and compressed form.

    Args:
        path: Active file path
        now: Rotation time

    Returns:
        Unused rotated path
    """
    stem = f"{path}.{now.strftime(TIMESTAMP_FORMAT)}"
    candidate = Path(stem)
    counter = 0

    while candidate.exists() or Path(f"{candidate}{COMPRESSED_SUFFIX}").exists():
        counter += 1
        candidate = Path(f"{stem}.{counter}")

    return candidate


class Rotator:
    """
    Performs the close/rename/reopen sequence for one active file.

    Attributes:
        path: Active file path
    """

    def __init__(
        self,
        path: Path,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize a rotator.

        Args:
            path: Active file path
            clock: Source of the rotation timestamp (default: local time)
        """
        self.path = Path(path)
        self._clock = clock or datetime.now

    def should_rotate(self, current_size: int, incoming: int, max_size: int) -> bool:
        """
        Check whether appending ``incoming`` bytes meets or exceeds the limit.

        Args:
            current_size: Bytes already in the active file
            incoming: Bytes about to be appended
            max_size: Size threshold in bytes

        Returns:
            True if the active file must be rotated first
        """
        return current_size + incoming >= max_size

    def rotate(self, fd: int) -> Tuple[int, Path]:
        """
        Retire the active file and open a fresh one.

        The caller owns ``fd``; it is closed here whether or not the later
        steps succeed. Nothing is reopened on failure.

        Args:
            fd: Descriptor of the active file

        Returns:
            Tuple of (descriptor of the new active file, rotated path)

        Raises:
            RotationError: If closing, renaming or reopening fails
        """
        try:
            os.close(fd)
        except OSError as e:
            raise RotationError("close", str(self.path), e) from e

        rotated = rotated_path_for(self.path, self._clock())

        try:
            os.rename(self.path, rotated)
        except OSError as e:
            raise RotationError("rename", str(self.path), e) from e

        try:
            new_fd = open_append(self.path)
        except OSError as e:
            raise RotationError("open", str(self.path), e) from e

        logger.info(
            "Rotated log file",
            path=str(self.path),
            rotated=str(rotated),
        )

        return new_fd, rotated
