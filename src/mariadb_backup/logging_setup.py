#
# logging_setup.py
# MariaDB Backup Script
#
# Configures the per-run log file handler and, for interactive sessions, a colorized terminal handler shared by the scaffold.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Logging configuration helpers.

Every record is appended to ``<log_dir>/<tool>_<YYYYMMDD_HHMMSS>.log`` as
``[timestamp] [pid] [LEVEL] message``. When all standard streams are
terminals the same record is echoed to stdout as a colored
``[timestamp] [LEVEL] message`` line. VERBOSE records are filtered out by the
logger level unless verbose mode is on, so they never reach either handler.
"""
import logging
import os
import sys
from logging.handlers import WatchedFileHandler
from pathlib import Path
from typing import Optional

from .config import BackupConfig

LOGGER_NAME = "mariadb_backup"

VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

RECORD_DATEFMT = "%Y-%m-%d %H:%M:%S"
FILE_FORMAT = "[%(asctime)s] [%(process)d] [%(level_label)s] %(message)s"
TERMINAL_FORMAT = "[%(asctime)s] [%(level_label)s] %(message)s"

LEVEL_LABELS = {
    logging.CRITICAL: "ERROR",
    logging.ERROR: "ERROR",
    logging.WARNING: "WARN",
    logging.INFO: "INFO",
    VERBOSE: "VERBOSE",
}

COLOR_RED = "\033[0;31m"
COLOR_GREEN = "\033[0;32m"
COLOR_YELLOW = "\033[1;33m"
COLOR_BLUE = "\033[0;34m"
COLOR_RESET = "\033[0m"

LEVEL_COLORS = {
    "ERROR": COLOR_RED,
    "WARN": COLOR_YELLOW,
    "INFO": COLOR_GREEN,
    "VERBOSE": COLOR_BLUE,
}


class LogSetupError(RuntimeError):
    """The log directory or log file cannot be created or written."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot write to log file: {path} ({reason})")
        self.path = path
        self.reason = reason


class RecordFormatter(logging.Formatter):
    """Formatter that renders the short level labels (WARN, VERBOSE)."""

    def __init__(self, fmt: str = FILE_FORMAT):
        super().__init__(fmt, datefmt=RECORD_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        record.level_label = LEVEL_LABELS.get(record.levelno, record.levelname)
        return super().format(record)


class ColorFormatter(RecordFormatter):
    def __init__(self, fmt: str = TERMINAL_FORMAT):
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = LEVEL_COLORS.get(record.level_label, "")
        return f"{color}{line}{COLOR_RESET}"


class AppendFileHandler(WatchedFileHandler):
    """
    Append records to the log file, flushing after each one.

    WatchedFileHandler reopens the file when it was removed or replaced; the
    parent directory is recreated first if needed. Write failures are dropped.
    """

    def __init__(self, filename):
        super().__init__(str(filename), mode="a", encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord):
        try:
            Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
            super().emit(record)
        except Exception:
            # reopenIfNeeded() can raise outside the base class's own guard.
            self.handleError(record)

    def handleError(self, record):
        # Logging must never crash the program.
        pass


class TerminalHandler(logging.StreamHandler):
    def handleError(self, record):
        pass


class RunLogger(logging.LoggerAdapter):
    """Logger facade exposing the four levels used by the scaffold."""

    def __init__(self, logger: logging.Logger, config: BackupConfig):
        super().__init__(logger, {})
        self.log_file = config.paths.log_file

    def verbose(self, msg, *args, **kwargs):
        self.log(VERBOSE, msg, *args, **kwargs)

    def warn(self, msg, *args, **kwargs):
        self.warning(msg, *args, **kwargs)


def _probe_log_file(config: BackupConfig):
    paths = config.paths
    try:
        paths.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LogSetupError(paths.log_dir, f"cannot create log directory: {e}") from e
    try:
        paths.log_file.touch(exist_ok=True)
    except OSError as e:
        raise LogSetupError(paths.log_file, str(e)) from e


def setup_logging(config: BackupConfig, logger_name: str = LOGGER_NAME, stream=None) -> RunLogger:
    """
    Configure the log file handler + (interactive only) terminal handler.

    Safe to call multiple times; handlers already writing to the same log
    file are reused. Raises LogSetupError when the log file is unwritable.
    """
    _probe_log_file(config)

    logger = logging.getLogger(logger_name)
    log_file = os.path.abspath(str(config.paths.log_file))
    current = [h for h in logger.handlers if isinstance(h, AppendFileHandler)]
    if not (current and current[0].baseFilename == log_file):
        teardown_logging(logger)

        fh = AppendFileHandler(log_file)
        fh.setFormatter(RecordFormatter())
        logger.addHandler(fh)

        # Terminal output only when stdin/stdout/stderr are all TTYs.
        if config.settings.interactive:
            ch = TerminalHandler(stream if stream is not None else sys.stdout)
            ch.setFormatter(ColorFormatter())
            logger.addHandler(ch)

    logger.setLevel(VERBOSE if config.settings.verbose else logging.INFO)
    logger.propagate = False
    return RunLogger(logger, config)


def teardown_logging(logger: Optional[logging.Logger] = None):
    """Detach and close every handler of the scaffold logger."""
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    logger = logger or logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        try:
            h.close()
        except Exception:
            pass


__all__ = [
    "LOGGER_NAME",
    "VERBOSE",
    "LogSetupError",
    "RecordFormatter",
    "ColorFormatter",
    "AppendFileHandler",
    "TerminalHandler",
    "RunLogger",
    "setup_logging",
    "teardown_logging",
]
