"""Logging configuration and the per-process run log."""

from __future__ import annotations

import json
import logging
import sys
import threading
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, TextIO

from .config import settings


# Name of the test case currently running, if any
current_test_case: ContextVar[Optional[str]] = ContextVar("test_case", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        test_case = current_test_case.get()
        if test_case:
            log_data["test_case"] = test_case

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def format(self, record: logging.LogRecord) -> str:
        test_case = current_test_case.get()
        case = f"[{test_case}] " if test_case else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} {record.levelname:8} {case}{record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure harness logging on stderr."""
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stdout stays free for the harness report
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level))

    if log_format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the rocket_tester prefix."""
    return logging.getLogger(f"rocket_tester.{name}")


class RunLog:
    """
    Append-only text log shared by every test case of a run.

    Each entry is mirrored to stderr as it is written, so diagnostics from the
    harness interleave with the output of the spawned service. Writers may
    live on different threads; a lock serializes appends.
    """

    def __init__(self, stream: TextIO | None = None):
        self._lock = threading.Lock()
        self._chunks: list[str] = []
        self._stream = stream

    def log_str(self, text: str) -> None:
        """Append a line and mirror it to stderr."""
        with self._lock:
            stream = self._stream or sys.stderr
            print(text, file=stream, flush=True)
            self._chunks.append(text + "\n")

    def log_err(self, error: object) -> None:
        """Append an error, with its traceback when it is an exception."""
        if isinstance(error, BaseException) and error.__traceback__ is not None:
            text = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ).rstrip()
        else:
            text = repr(error)
        self.log_str(text)

    @contextmanager
    def log_exceptions(self) -> Iterator[None]:
        """
        Log any exception raised inside the block, then re-raise it.

        Usage:
            with ctx.log.log_exceptions():
                await session.buy_ticket(ticket)
        """
        try:
            yield
        except Exception as exc:
            self.log_err(exc)
            raise

    def to_string(self) -> str:
        """Snapshot of everything logged so far."""
        with self._lock:
            return "".join(self._chunks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)
