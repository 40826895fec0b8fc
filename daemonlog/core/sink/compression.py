"""
Background gzip compression of rotated log files.

Compression is best effort: each rotated file is handed to a worker thread,
never awaited by the sink, and any failure is reported and dropped. The
uncompressed file is only removed once its ``.gz`` twin is complete.
"""

import gzip
import os
import shutil
import threading
from concurrent import futures
from pathlib import Path
from typing import Any, Optional, Set

from daemonlog.core.sink.rotation import COMPRESSED_SUFFIX
from daemonlog.utils.logging import get_logger

logger = get_logger(__name__)

PARTIAL_SUFFIX = ".tmp"


def compressed_path_for(source: Path) -> Path:
    """Return the ``.gz`` path for a rotated file."""
    return Path(f"{source}{COMPRESSED_SUFFIX}")


def compress_file(source: Path, compresslevel: int = 6) -> Path:
    """
    Stream a file into its gzip twin.

    The source is left untouched. Output goes to a hidden temporary file that
    is renamed into place once complete, so the ``.gz`` never appears half
    written; the temporary file is removed if copying fails. The source
    modification time is copied onto the result so retention keeps ordering
    segments the same way after compression.

    Args:
        source: File to compress
        compresslevel: gzip compression level

    Returns:
        Path of the compressed file

    Raises:
        OSError: If reading the source or writing the result fails
    """
    source = Path(source)
    dest = compressed_path_for(source)
    # Leading dot keeps the partial file out of the rotated-name scan.
    partial = dest.with_name(f".{dest.name}{PARTIAL_SUFFIX}")

    with open(source, "rb") as src:
        stat = os.fstat(src.fileno())
        try:
            with gzip.open(partial, "wb", compresslevel=compresslevel) as out:
                shutil.copyfileobj(src, out)
            os.utime(partial, ns=(stat.st_atime_ns, stat.st_mtime_ns))
            os.replace(partial, dest)
        except Exception:
            partial.unlink(missing_ok=True)
            raise

    return dest


class SegmentCompressor:
    """
    Runs fire-and-forget compression of rotated files on a worker pool.

    The sink submits a rotated path and moves on; it never waits for the
    result. Tests and shutdown can use ``wait`` to let pending work finish.
    """

    def __init__(self, error_logger: Any = None, max_workers: int = 1):
        """
        Initialize the compressor.

        Args:
            error_logger: Receiver of failure notices (structlog-style ``error``)
            max_workers: Number of compression threads
        """
        self._error_logger = error_logger or logger
        self._executor = futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="log-compress",
        )
        self._pending: Set[futures.Future] = set()
        self._pending_lock = threading.Lock()

    def submit(self, source: Path) -> futures.Future:
        """
        Schedule compression of a rotated file.

        Args:
            source: Rotated file, already closed and renamed

        Returns:
            Future of the task (callers are not expected to wait on it)
        """
        with self._pending_lock:
            future = self._executor.submit(self._compress, Path(source))
            self._pending.add(future)
        future.add_done_callback(self._discard)

        return future

    def _discard(self, future: futures.Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _compress(self, source: Path) -> Optional[Path]:
        try:
            dest = compress_file(source)
        except FileNotFoundError:
            logger.info("Rotated log removed before compression", path=str(source))
            return None
        except Exception as e:
            self._error_logger.error(
                "Failed to compress rotated log",
                path=str(source),
                error=str(e),
            )
            return None

        try:
            source.unlink()
        except FileNotFoundError:
            # Retention dropped this segment while it was being compressed.
            dest.unlink(missing_ok=True)
            logger.info("Discarded compressed copy of removed log", path=str(dest))
            return None
        except OSError as e:
            self._error_logger.error(
                "Failed to remove compressed source log",
                path=str(source),
                error=str(e),
            )
            return dest

        logger.debug("Compressed rotated log", source=str(source), dest=str(dest))

        return dest

    def pending(self) -> int:
        """Number of compressions not yet finished."""
        with self._pending_lock:
            return len(self._pending)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until all submitted compressions finish.

        Args:
            timeout: Maximum seconds to wait (None = forever)

        Returns:
            True if nothing is left pending
        """
        with self._pending_lock:
            pending = list(self._pending)

        _, not_done = futures.wait(pending, timeout=timeout)

        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work, optionally waiting for running tasks."""
        self._executor.shutdown(wait=wait)
