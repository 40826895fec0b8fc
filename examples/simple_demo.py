#!/usr/bin/env python3
"""
Simple demo of the daemonlog rotating sink.

Writes enough log lines to force several rotations with compression and
retention, then lists what ended up on disk.
"""

import logging
import sys
import tempfile
from pathlib import Path

from daemonlog import LogSink, SinkHandler
from daemonlog.utils.logging import configure_logging


def main():
    configure_logging(log_level="INFO", log_format="console")

    print("=" * 60)
    print("daemonlog - Rotating Sink Demo")
    print("=" * 60)

    log_dir = Path(tempfile.mkdtemp(prefix="daemonlog-demo-"))

    # Create sink with a small threshold so the demo rotates quickly
    print("\n[1] Creating sink...")
    sink = LogSink(
        log_dir / "daemon.log",
        max_size_bytes=2048,
        max_files=3,
        level="debug",
        compress=True,
        tag="demo",
    )
    print(f"✅ Sink writing to {sink.path}")

    # Log through the sink directly
    print("\n[2] Writing 200 records...")
    for i in range(200):
        sink.info("processed job %d with payload %s", i, "x" * 16)
    sink.debug("debug records pass the DEBUG threshold")
    print(f"✅ {sink.rotation_count()} rotations so far")

    # Route stdlib logging into the sink
    print("\n[3] Bridging the logging module...")
    worker_logger = logging.getLogger("demo.worker")
    worker_logger.propagate = False
    worker_logger.addHandler(SinkHandler(sink))
    worker_logger.warning("queue depth %d above limit", 512)
    print("✅ Bridged record written")

    # Close, letting compression finish
    print("\n[4] Closing sink...")
    sink.close()

    print("\nFiles on disk:")
    for path in sorted(log_dir.iterdir()):
        print(f"  {path.name:40} {path.stat().st_size:>8} bytes")

    return 0


if __name__ == "__main__":
    sys.exit(main())
