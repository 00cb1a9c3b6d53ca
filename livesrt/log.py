"""Levelled logging to standard output and an optional file."""

from __future__ import annotations

import sys
import threading
import time
from enum import IntEnum
from typing import IO, Optional

APP_NAME = "SLS"


class LogLevel(IntEnum):
    FATAL = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


class Logger:
    """Writes timestamped lines at or below the configured level."""

    def __init__(self, level: LogLevel = LogLevel.INFO, stream: Optional[IO[str]] = None) -> None:
        self.level = LogLevel(level)
        self._stream = stream
        self._lock = threading.Lock()
        self._file_name = ""
        self._file: Optional[IO[str]] = None

    @property
    def stream(self) -> IO[str]:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def file_name(self) -> str:
        return self._file_name

    def log(self, level: int, fmt: str, *args: object) -> Optional[str]:
        """Emit a message if *level* passes the filter; return the line written."""
        if level > self.level:
            return None
        message = fmt % args if args else fmt
        now = time.time()
        seconds = int(now)
        millis = int((now - seconds) * 1000)
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(seconds))
        line = f"{stamp}:{millis:03d} {APP_NAME} {LogLevel(level).name}: {message}\n"
        with self._lock:
            self.stream.write(line)
            if self._file is not None:
                self._file.write(line)
                self._file.flush()
        return line

    def set_level(self, name: str) -> LogLevel:
        """Set the level by name, case-insensitively; unknown names keep the current one."""
        upper = name.upper()
        try:
            self.level = LogLevel[upper]
        except KeyError:
            self.stream.write(f"!!!wrong log level '{upper}', set default '{self.level.name}'.\n")
        else:
            self.stream.write(f"set log level='{upper}'.\n")
        return self.level

    def set_file(self, file_name: str) -> None:
        """Append log lines to *file_name*; ignored once a file is set."""
        with self._lock:
            if self._file_name:
                return
            self._file_name = file_name
            self._file = open(file_name, "a", encoding="utf-8")

    def close(self) -> None:
        """Close the log file, if one is open."""
        with self._lock:
            if self._file is not None:
                self._file.close()
            self._file = None
            self._file_name = ""


_instance: Optional[Logger] = None
_instance_lock = threading.Lock()


def get_logger() -> Logger:
    """Return the process-wide logger, creating it on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = Logger()
        return _instance