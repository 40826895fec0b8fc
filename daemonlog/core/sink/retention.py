"""
Count-based retention of rotated log files.

After each rotation the directory is scanned for siblings named
``<base>.<suffix>`` and everything beyond the newest ``max_files`` is removed.

A rotated file and its compressed twin (``<base>.<suffix>.gz``) count as one
segment. While a compression is in flight both may exist for a moment; they
are counted once and always deleted together, so a running compressor never
inflates the count or leaves an orphan behind. The segment's age is taken
from the plain file whenever it exists.

A stray ``<base>.gz`` is a segment of its own and never resolves to the
active file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from daemonlog.core.sink.rotation import COMPRESSED_SUFFIX
from daemonlog.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RotatedSegment:
    """
    One rotated log, in plain and/or compressed form.

    Attributes:
        path: Uncompressed rotated path (may no longer exist)
        plain_mtime_ns: Modification time of ``path``, if it exists
        compressed_mtime_ns: Modification time of the ``.gz`` form, if it exists
        files: Existing files making up the segment
    """

    path: Path
    plain_mtime_ns: Optional[int] = None
    compressed_mtime_ns: Optional[int] = None
    files: List[Path] = field(default_factory=list)

    @property
    def compressed_path(self) -> Path:
        return Path(f"{self.path}{COMPRESSED_SUFFIX}")

    @property
    def mtime_ns(self) -> int:
        """
        Age used for ordering.

        A ``.gz`` still being written carries the current time, so the plain
        file wins while it exists.
        """
        if self.plain_mtime_ns is not None:
            return self.plain_mtime_ns
        return self.compressed_mtime_ns or 0


class RetentionManager:
    """
    Keeps at most ``max_files`` rotated segments next to the active file.

    Attributes:
        path: Active file path
        max_files: Number of rotated segments to keep
    """

    def __init__(self, path: Path, max_files: int, error_logger: Any = None):
        """
        Initialize retention manager.

        Args:
            path: Active file path; rotated siblings share its base name
            max_files: Number of rotated segments to keep
            error_logger: Receiver of failure notices (structlog-style ``error``)
        """
        self.path = Path(path)
        self.max_files = max_files
        self._error_logger = error_logger or logger
        self._prefix = f"{self.path.name}."

    def rotated_segments(self) -> List[RotatedSegment]:
        """
        List rotated segments, newest first.

        Segments with equal modification times are ordered by name.

        Returns:
            Rotated segments sorted by modification time, descending

        Raises:
            OSError: If the directory cannot be listed
        """
        directory = self.path.parent
        segments: Dict[str, RotatedSegment] = {}

        with os.scandir(directory) as entries:
            for entry in entries:
                if not entry.name.startswith(self._prefix):
                    continue

                try:
                    if not entry.is_file():
                        continue
                    mtime_ns = entry.stat().st_mtime_ns
                except FileNotFoundError:
                    # Compression replaced the file mid-scan.
                    continue

                name = entry.name
                compressed = False
                if name.endswith(COMPRESSED_SUFFIX):
                    stripped = name[: -len(COMPRESSED_SUFFIX)]
                    if stripped != self.path.name:
                        name = stripped
                        compressed = True

                segment = segments.get(name)
                if segment is None:
                    segment = RotatedSegment(path=directory / name)
                    segments[name] = segment

                if compressed:
                    segment.compressed_mtime_ns = mtime_ns
                else:
                    segment.plain_mtime_ns = mtime_ns
                segment.files.append(Path(entry.path))

        return sorted(
            segments.values(),
            key=lambda s: (s.mtime_ns, s.path.name),
            reverse=True,
        )

    def segments_to_delete(self, segments: List[RotatedSegment]) -> List[RotatedSegment]:
        """
        Select segments beyond the retention count.

        Args:
            segments: Segments sorted newest first

        Returns:
            Segments to delete
        """
        if len(segments) <= self.max_files:
            return []
        return segments[self.max_files:]

    def delete_segments(self, segments: List[RotatedSegment]) -> int:
        """
        Delete segments in both their plain and compressed forms.

        A failure on one file is reported and does not stop the rest.

        Args:
            segments: Segments to delete

        Returns:
            Number of segments fully deleted
        """
        deleted_count = 0

        for segment in segments:
            ok = True

            for path in (segment.path, segment.compressed_path):
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    ok = False
                    self._error_logger.error(
                        "Failed to delete rotated log",
                        path=str(path),
                        error=str(e),
                    )

            if ok:
                deleted_count += 1
                logger.info("Deleted rotated log", path=str(segment.path))

        return deleted_count

    def apply(self) -> int:
        """
        Enforce the retention count once.

        A directory listing failure aborts this cycle only.

        Returns:
            Number of segments deleted
        """
        try:
            segments = self.rotated_segments()
        except OSError as e:
            self._error_logger.error(
                "Failed to list rotated logs",
                directory=str(self.path.parent),
                error=str(e),
            )
            return 0

        to_delete = self.segments_to_delete(segments)

        if not to_delete:
            return 0

        deleted = self.delete_segments(to_delete)

        logger.info(
            "Applied retention policy",
            segments_deleted=deleted,
            segments_remaining=len(segments) - deleted,
            max_files=self.max_files,
        )

        return deleted

    def __repr__(self) -> str:
        return f"RetentionManager(path={str(self.path)!r}, max_files={self.max_files})"
