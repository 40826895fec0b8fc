"""
Bridge from the standard ``logging`` module into a ``LogSink``.

Lets a host route its existing ``logging`` calls into the rotated file:

    handler = SinkHandler(sink)
    logging.getLogger("worker").addHandler(handler)
"""

import logging

from daemonlog.core.sink.levels import LogLevel
from daemonlog.core.sink.sink import LogSink


def level_for_record(levelno: int) -> LogLevel:
    """
    Map a stdlib level number onto the sink's levels.

    Custom levels between the standard ones map to the level below them.
    """
    if levelno >= logging.CRITICAL:
        return LogLevel.FATAL
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARN
    if levelno >= logging.INFO:
        return LogLevel.INFO
    return LogLevel.DEBUG


class SinkHandler(logging.Handler):
    """
    Logging handler that writes formatted records through a sink.

    The sink applies its own level threshold and line layout; the handler's
    formatter only renders the message text (and traceback, if any).
    """

    def __init__(self, sink: LogSink, level: int = logging.NOTSET):
        super().__init__(level)
        self.sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.sink.log(level_for_record(record.levelno), message)
        except Exception:
            self.handleError(record)
