"""Logging configuration using loguru, plus per-operation log buffers."""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType

from loguru import logger

# Levels kept in an operation's buffer; anything lower goes straight to loguru.
BUFFERED_LEVELS = ("WARNING", "ERROR", "CRITICAL")


def format_record(record: dict) -> str:
    """Format log record, prefixing the operation name when one is bound."""
    operation = record["extra"].get("operation")
    context_str = f"[{operation}] " if operation else ""

    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        f"{context_str}"
        "<level>{message}</level>\n"
        "{exception}"
    )


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> None:
    """Configure loguru for the library.

    Args:
        json_logs: If True, output logs as JSON
        log_level: Minimum log level to output
    """
    logger.remove()

    if json_logs:
        logger.add(
            sys.stderr,
            format="{message}",
            level=log_level,
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=format_record,
            level=log_level,
            colorize=True,
        )


@dataclass(frozen=True)
class LogEntry:
    """A buffered warning or error."""

    level: str
    message: str


LogSink = Callable[[list[LogEntry]], None]


class OperationLog:
    """Log owned by a single export or import run.

    Messages are forwarded to loguru immediately. Warnings and errors are
    also kept in a buffer that is handed to ``sink`` whenever it reaches
    ``flush_threshold`` entries and once more when the operation ends,
    whether it succeeded or failed. Use it as a context manager.
    """

    def __init__(
        self,
        operation: str,
        sink: LogSink | None = None,
        flush_threshold: int = 50,
    ) -> None:
        self.operation = operation
        self._sink = sink
        self._flush_threshold = max(1, flush_threshold)
        self._buffer: list[LogEntry] = []
        self._history: list[LogEntry] = []
        self._logger = logger.bind(operation=operation)

    def __enter__(self) -> OperationLog:
        self._logger.debug("Operation started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None:
            self._logger.opt(exception=exc).error(f"Operation failed: {exc}")
            self._record("ERROR", str(exc))
        else:
            self._logger.debug("Operation finished")
        self.flush()

    @property
    def warnings(self) -> list[str]:
        return [e.message for e in self._history if e.level == "WARNING"]

    @property
    def errors(self) -> list[str]:
        return [e.message for e in self._history if e.level in ("ERROR", "CRITICAL")]

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)
        self._record("WARNING", message)

    def error(self, message: str) -> None:
        self._logger.error(message)
        self._record("ERROR", message)

    def exception(self, message: str, exc: BaseException) -> None:
        """Log an error with its traceback; only the message is buffered."""
        self._logger.opt(exception=exc).error(message)
        self._record("ERROR", message)

    def flush(self) -> None:
        """Hand buffered entries to the sink and clear the buffer."""
        if not self._buffer:
            return
        pending, self._buffer = self._buffer, []
        if self._sink is not None:
            self._sink(pending)

    def _record(self, level: str, message: str) -> None:
        entry = LogEntry(level, message)
        self._history.append(entry)
        if level in BUFFERED_LEVELS:
            self._buffer.append(entry)
            if len(self._buffer) >= self._flush_threshold:
                self.flush()


def ensure_log(log: OperationLog | None, operation: str = "presetsheet") -> OperationLog:
    """Return ``log`` or a fresh, sink-less log for standalone calls."""
    return log if log is not None else OperationLog(operation)


__all__ = [
    "LogEntry",
    "OperationLog",
    "ensure_log",
    "logger",
    "setup_logging",
]
