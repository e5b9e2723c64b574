"""Debug logging with an in-memory ring buffer.

Captures Python logging records from the plugin process so they can be dumped
to a file when diagnosing a misbehaving add-on.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

MAX_LOG_LINES = 2000
MAX_LOG_MESSAGE_LENGTH = 10_000
TRACE_LOGGER = "gateway_addon.ipc.trace"


@dataclass(slots=True)
class LogEntry:
    """A captured log entry."""

    group: str  # Level name (DEBUG, INFO, WARNING, ERROR, etc.)
    logger: str
    message: str
    timestamp: float


# Global log buffer (ring buffer)
log_buffer: deque[LogEntry] = deque(maxlen=MAX_LOG_LINES)

# Track generation to detect buffer clears
_buffer_generation: int = 0


class DebugLogHandler(logging.Handler):
    """Logging handler that captures logs to the debug buffer."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            if len(msg) > MAX_LOG_MESSAGE_LENGTH:
                msg = msg[:MAX_LOG_MESSAGE_LENGTH] + "... [truncated]"
            log_buffer.append(
                LogEntry(
                    group=record.levelname,
                    logger=record.name,
                    message=msg,
                    timestamp=record.created,
                )
            )
        except Exception:
            self.handleError(record)


_debug_handler: DebugLogHandler | None = None


def setup_debug_logging(*, verbose: bool = False, trace_messages: bool = False) -> DebugLogHandler:
    """Attach the ring-buffer handler to the ``gateway_addon`` logger.

    Idempotent: later calls only adjust levels.  ``trace_messages`` turns on
    the ``Sending:``/``Rcvd:`` wire trace.
    """
    global _debug_handler

    package_logger = logging.getLogger("gateway_addon")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger(TRACE_LOGGER).setLevel(logging.DEBUG if trace_messages else logging.WARNING)

    if _debug_handler is None:
        _debug_handler = DebugLogHandler()
        _debug_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        package_logger.addHandler(_debug_handler)
        package_logger.info("Debug logging initialized")

    return _debug_handler


def clear_log_buffer() -> None:
    """Clear the log buffer."""
    global _buffer_generation
    log_buffer.clear()
    _buffer_generation += 1


def get_buffer_generation() -> int:
    """Get the current buffer generation (incremented on clear)."""
    return _buffer_generation


def export_logs_to_file(file_path: str | Path) -> int:
    """Export all logs from the buffer to a file.

    Args:
        file_path: Path to write the log file to

    Returns:
        Number of log entries written
    """
    output_path = Path(file_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    entries = list(log_buffer)
    with output_path.open("w", encoding="utf-8") as f:
        f.write("# gateway-addon debug log export\n")
        f.write(f"# Total entries: {len(entries)}\n")
        f.write(f"# Buffer generation: {_buffer_generation}\n")
        f.write("# " + "=" * 76 + "\n\n")

        for entry in entries:
            ts = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
            f.write(f"{ts} [{entry.group}] {entry.message}\n")

    return len(entries)


__all__ = [
    "MAX_LOG_LINES",
    "DebugLogHandler",
    "LogEntry",
    "clear_log_buffer",
    "export_logs_to_file",
    "get_buffer_generation",
    "log_buffer",
    "setup_debug_logging",
]
