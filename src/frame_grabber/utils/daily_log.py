"""Date-rotating log files and the logging context used by the capture loop.

Each `DailyFileWriter` appends to `<dir>/<prefix>-<YYYY-MM-DD>.log` and moves
to a new file the first time it is written to on a new calendar day (local
time). Rotation and the write itself happen under the writer's lock, so
concurrent callers see one rotation decision and their bytes never interleave.
"""

from __future__ import annotations

import datetime as _dt
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional

INFO_PREFIX = "app"
ERROR_PREFIX = "error"


class DailyFileWriter:
    def __init__(
        self,
        directory: Path | str,
        prefix: str,
        today: Optional[Callable[[], _dt.date]] = None,
    ):
        self.directory = Path(directory)
        self.prefix = prefix
        self._today = today or _dt.date.today
        self._lock = threading.Lock()
        self._date: Optional[str] = None
        self._file: Optional[BinaryIO] = None

    def path_for(self, date_str: str) -> Path:
        return self.directory / f"{self.prefix}-{date_str}.log"

    @property
    def current_path(self) -> Optional[Path]:
        with self._lock:
            if self._date is None:
                return None
            return self.path_for(self._date)

    def write(self, data: bytes) -> int:
        with self._lock:
            today = self._today().strftime("%Y-%m-%d")
            if self._file is None or self._date != today:
                self._close_current()
                # Raises OSError to the caller when the file cannot be opened.
                self._file = open(self.path_for(today), "ab")
                self._date = today
            written = self._file.write(data)
            self._file.flush()
            return written

    def close(self) -> None:
        with self._lock:
            self._close_current()

    def _close_current(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                pass
        self._file = None
        self._date = None


class LineFormatter(logging.Formatter):
    """`LEVEL 2006/01/02 15:04:05.000000 message`"""

    def __init__(self):
        super().__init__("%(levelname)s %(asctime)s %(message)s")

    def formatTime(self, record, datefmt=None):
        return _dt.datetime.fromtimestamp(record.created).strftime("%Y/%m/%d %H:%M:%S.%f")


class DailyFileHandler(logging.Handler):
    """Logging handler that hands each formatted record to a DailyFileWriter
    as a single write."""

    def __init__(self, writer: DailyFileWriter):
        super().__init__()
        self.writer = writer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record) + "\n"
            self.writer.write(line.encode("utf-8"))
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            self.writer.close()
        finally:
            super().close()


@dataclass
class LogContext:
    """The pair of loggers passed to the scheduler, capturer and deliverer."""

    info: logging.Logger
    error: logging.Logger
    log_dir: Optional[Path] = None
    writers: List[DailyFileWriter] = field(default_factory=list)

    @property
    def uses_files(self) -> bool:
        return self.log_dir is not None

    def close(self) -> None:
        for logger in (self.info, self.error):
            for handler in list(logger.handlers):
                handler.flush()
                if isinstance(handler, DailyFileHandler):
                    handler.close()
                    logger.removeHandler(handler)


def _make_logger(name: str, level: int, handler: logging.Handler) -> logging.Logger:
    # Not registered with logging.getLogger: each context owns its loggers.
    logger = logging.Logger(name, level)
    logger.propagate = False
    handler.setFormatter(LineFormatter())
    logger.addHandler(handler)
    return logger


def level_from_name(name: str | None) -> int:
    level = getattr(logging, (name or "").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def fallback_logging(level: str | None = None) -> LogContext:
    numeric = level_from_name(level)
    return LogContext(
        info=_make_logger("frame_grabber.info", numeric, logging.StreamHandler(sys.stdout)),
        error=_make_logger("frame_grabber.error", numeric, logging.StreamHandler(sys.stderr)),
    )


def resolve_log_dir(log_dir: str | Path | None, cwd: Path) -> Path:
    if not log_dir:
        return cwd
    path = Path(log_dir)
    return path if path.is_absolute() else cwd / path


def setup_logging(
    log_dir: str | Path | None,
    level: str | None = None,
    today: Optional[Callable[[], _dt.date]] = None,
) -> LogContext:
    """Create the info/error loggers writing to daily files under `log_dir`.

    `level` is a logging level name ("DEBUG", "INFO", ...); unknown names
    mean INFO. Falls back to stdout/stderr when the working directory cannot be
    determined or the log directory cannot be created.
    """

    try:
        cwd = Path(os.getcwd())
    except OSError:
        return fallback_logging(level)

    directory = resolve_log_dir(log_dir, cwd)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        return fallback_logging(level)

    numeric = level_from_name(level)
    info_writer = DailyFileWriter(directory, INFO_PREFIX, today=today)
    error_writer = DailyFileWriter(directory, ERROR_PREFIX, today=today)
    return LogContext(
        info=_make_logger("frame_grabber.info", numeric, DailyFileHandler(info_writer)),
        error=_make_logger("frame_grabber.error", numeric, DailyFileHandler(error_writer)),
        log_dir=directory,
        writers=[info_writer, error_writer],
    )
