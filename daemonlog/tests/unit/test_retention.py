"""Tests for count-based retention of rotated logs."""

import os
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest import mock

import pytest

from daemonlog.core.sink.retention import RetentionManager
from daemonlog.core.sink.sink import LogSink


def make_rotated(directory: Path, name: str, age_seconds: int) -> Path:
    """Create a rotated file with a modification time ``age_seconds`` ago."""
    path = directory / name
    path.write_bytes(name.encode())
    mtime = time.time() - age_seconds
    os.utime(path, (mtime, mtime))
    return path


class TestRetentionManager:
    """Test RetentionManager."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_lists_only_rotated_siblings(self, temp_dir):
        """Test that only files named after the active file are considered."""
        (temp_dir / "app.log").touch()
        (temp_dir / "other.log.20261019-000000").touch()
        (temp_dir / "app.logger").touch()
        (temp_dir / "app.log.d").mkdir()
        make_rotated(temp_dir, "app.log.20261019-000001", 10)

        manager = RetentionManager(temp_dir / "app.log", max_files=5)
        segments = manager.rotated_segments()

        assert [s.path.name for s in segments] == ["app.log.20261019-000001"]

    def test_newest_first(self, temp_dir):
        """Test ordering by modification time, newest first."""
        make_rotated(temp_dir, "app.log.a", 30)
        make_rotated(temp_dir, "app.log.b", 10)
        make_rotated(temp_dir, "app.log.c", 20)

        manager = RetentionManager(temp_dir / "app.log", max_files=5)

        assert [s.path.name for s in manager.rotated_segments()] == [
            "app.log.b",
            "app.log.c",
            "app.log.a",
        ]

    def test_deletes_oldest_beyond_count(self, temp_dir):
        """Test that everything past the retention count is removed."""
        for age in range(1, 6):
            make_rotated(temp_dir, f"app.log.{age}", age * 10)

        manager = RetentionManager(temp_dir / "app.log", max_files=2)
        deleted = manager.apply()

        assert deleted == 3
        remaining = sorted(p.name for p in temp_dir.iterdir())
        assert remaining == ["app.log.1", "app.log.2"]

    def test_nothing_to_delete(self, temp_dir):
        """Test a directory within the retention count."""
        make_rotated(temp_dir, "app.log.1", 10)

        manager = RetentionManager(temp_dir / "app.log", max_files=2)

        assert manager.apply() == 0
        assert (temp_dir / "app.log.1").exists()

    def test_compressed_twin_counts_once(self, temp_dir):
        """Test that a plain file and its .gz count as one segment."""
        make_rotated(temp_dir, "app.log.1", 10)
        make_rotated(temp_dir, "app.log.1.gz", 10)
        make_rotated(temp_dir, "app.log.2.gz", 20)

        manager = RetentionManager(temp_dir / "app.log", max_files=2)
        segments = manager.rotated_segments()

        assert [s.path.name for s in segments] == ["app.log.1", "app.log.2"]
        assert len(segments[0].files) == 2
        assert manager.apply() == 0

    def test_deletes_both_forms(self, temp_dir):
        """Test that dropping a segment removes its plain and compressed forms."""
        make_rotated(temp_dir, "app.log.new", 10)
        make_rotated(temp_dir, "app.log.old", 20)
        make_rotated(temp_dir, "app.log.old.gz", 20)

        manager = RetentionManager(temp_dir / "app.log", max_files=1)

        assert manager.apply() == 1
        assert sorted(p.name for p in temp_dir.iterdir()) == ["app.log.new"]

    def test_stray_gz_of_active_file_is_own_segment(self, temp_dir):
        """Test that <base>.gz is never grouped with the active file."""
        active = temp_dir / "app.log"
        active.write_bytes(b"live data\n")
        make_rotated(temp_dir, "app.log.gz", 60)
        make_rotated(temp_dir, "app.log.20261019-000001", 10)

        manager = RetentionManager(active, max_files=1)
        segments = manager.rotated_segments()

        assert [s.path.name for s in segments] == [
            "app.log.20261019-000001",
            "app.log.gz",
        ]
        assert manager.apply() == 1
        assert active.read_bytes() == b"live data\n"
        assert sorted(p.name for p in temp_dir.iterdir()) == [
            "app.log",
            "app.log.20261019-000001",
        ]

    def test_fresh_gz_does_not_make_segment_newer(self, temp_dir):
        """Test that a segment is aged by its plain file while both forms exist."""
        make_rotated(temp_dir, "app.log.A", 30)
        make_rotated(temp_dir, "app.log.A.gz", 0)
        make_rotated(temp_dir, "app.log.B", 5)

        manager = RetentionManager(temp_dir / "app.log", max_files=1)

        assert [s.path.name for s in manager.rotated_segments()] == [
            "app.log.B",
            "app.log.A",
        ]
        assert manager.apply() == 1
        assert sorted(p.name for p in temp_dir.iterdir()) == ["app.log.B"]

    def test_gz_only_segment_uses_gz_mtime(self, temp_dir):
        """Test ordering of segments that exist only in compressed form."""
        make_rotated(temp_dir, "app.log.A.gz", 30)
        make_rotated(temp_dir, "app.log.B", 20)
        make_rotated(temp_dir, "app.log.C.gz", 10)

        manager = RetentionManager(temp_dir / "app.log", max_files=5)

        assert [s.path.name for s in manager.rotated_segments()] == [
            "app.log.C",
            "app.log.B",
            "app.log.A",
        ]

    def test_delete_failure_continues(self, temp_dir, monkeypatch):
        """Test that one failed delete does not stop the others."""
        make_rotated(temp_dir, "app.log.1", 10)
        make_rotated(temp_dir, "app.log.2", 20)
        make_rotated(temp_dir, "app.log.3", 30)

        real_unlink = Path.unlink

        def flaky_unlink(self, missing_ok=False):
            if self.name == "app.log.2":
                raise PermissionError("Permission denied")
            return real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)

        error_logger = mock.Mock()
        manager = RetentionManager(temp_dir / "app.log", max_files=1, error_logger=error_logger)
        deleted = manager.apply()

        monkeypatch.undo()

        assert deleted == 1
        assert not (temp_dir / "app.log.3").exists()
        assert (temp_dir / "app.log.2").exists()
        error_logger.error.assert_called_once()

    def test_listing_failure_aborts_cycle(self, temp_dir):
        """Test that an unreadable directory is reported and skipped."""
        error_logger = mock.Mock()
        manager = RetentionManager(
            temp_dir / "missing" / "app.log",
            max_files=1,
            error_logger=error_logger,
        )

        assert manager.apply() == 0
        error_logger.error.assert_called_once()
        assert error_logger.error.call_args[0][0] == "Failed to list rotated logs"


class TestSinkRetention:
    """Test retention applied by the sink on rotation."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_keeps_newest_rotations(self, temp_dir):
        """Test that after N > max_files rotations only the newest remain."""
        start = datetime(2026, 10, 19, 14, 0, 0)
        ticks = iter(range(1000))

        def clock():
            return start + timedelta(seconds=next(ticks))

        sink = LogSink(temp_dir / "app.log", max_size_bytes=100, max_files=3, clock=clock)
        created = []

        sink.write(b"x" * 60)
        for i in range(6):
            # Keep modification times of successive rotations distinct.
            time.sleep(0.05)
            before = {p.name for p in temp_dir.iterdir()}
            sink.write(f"{i:<59}\n".encode())
            after = {p.name for p in temp_dir.iterdir()}
            created.extend(sorted(after - before))

        assert sink.rotation_count() == 6
        assert len(created) == 6

        rotated = sorted(p.name for p in temp_dir.iterdir() if p.name != "app.log")
        assert rotated == sorted(created[-3:])

        sink.close()

    def test_keeps_newest_rotations_with_compression(self, temp_dir):
        """Test retention while rotated files are compressed in the background."""
        start = datetime(2026, 10, 19, 14, 0, 0)
        ticks = iter(range(1000))

        def clock():
            return start + timedelta(seconds=next(ticks))

        sink = LogSink(
            temp_dir / "app.log",
            max_size_bytes=100,
            max_files=2,
            compress=True,
            clock=clock,
        )

        sink.write(b"x" * 60)
        for i in range(5):
            time.sleep(0.05)
            sink.write(f"{i:<59}\n".encode())

        sink.close()

        # Rotation k is named after clock tick k.
        expected = [
            f"app.log.{(start + timedelta(seconds=k)):%Y%m%d-%H%M%S}.gz" for k in (3, 4)
        ]
        rotated = sorted(p.name for p in temp_dir.iterdir() if p.name != "app.log")
        assert sink.rotation_count() == 5
        assert rotated == expected
        assert (temp_dir / "app.log").read_bytes() == f"{4:<59}\n".encode()
