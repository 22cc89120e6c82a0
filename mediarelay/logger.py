"""Minimal thread-safe logging to standard error."""

from __future__ import annotations

import sys
import threading
import time
from enum import Enum

__all__ = ["LogLevel", "log", "debug", "info", "warn", "error"]

_lock = threading.Lock()


class LogLevel(Enum):
    """Severity of a log line."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    def __str__(self) -> str:
        return self.value


def log(level: LogLevel, message: str) -> None:
    """Write one line: local time, bracketed level, then the message."""
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
    line = f"{stamp} [{LogLevel(level).value}] {message}\n"
    with _lock:
        stream = sys.stderr
        stream.write(line)
        stream.flush()


def debug(message: str) -> None:
    log(LogLevel.DEBUG, message)


def info(message: str) -> None:
    log(LogLevel.INFO, message)


def warn(message: str) -> None:
    log(LogLevel.WARN, message)


def error(message: str) -> None:
    log(LogLevel.ERROR, message)