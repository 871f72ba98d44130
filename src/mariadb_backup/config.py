#
# config.py
# MariaDB Backup Script
#
# Defines dataclasses for log/lock paths and runtime settings so a single run context is built once and handed to every component.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Configuration objects for the MariaDB backup scaffold.

A BackupConfig bundles filesystem paths and runtime settings for one
process. It is built once at startup (see ``build_config``) and passed to the
logger and the lock manager, making it easy to reuse with temporary roots
during testing.
"""
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

TOOL_NAME = "mariadb-backup"
TOOL_VERSION = "1.0"

DEFAULT_LOG_DIR = Path("/var/log/mariadb-backup")
DEFAULT_LOCK_FILE = Path("/var/lock/mariadb-backup/mariadb-backup.lock")

# Used in the log file name; the human-readable record timestamp lives in logging_setup.
FILE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def detect_interactive(streams=None) -> bool:
    """True only when stdin, stdout and stderr are all attached to a terminal."""
    streams = streams if streams is not None else (sys.stdin, sys.stdout, sys.stderr)
    for stream in streams:
        try:
            if stream is None or not stream.isatty():
                return False
        except (AttributeError, ValueError):
            # Closed or replaced streams count as non-terminals.
            return False
    return True


@dataclass
class Paths:
    log_dir: Path = DEFAULT_LOG_DIR
    lock_file: Path = DEFAULT_LOCK_FILE
    tool_name: str = TOOL_NAME
    started_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        # Normalize inputs to Path objects even when callers pass strings.
        self.log_dir = Path(self.log_dir)
        self.lock_file = Path(self.lock_file)

    @property
    def log_file(self) -> Path:
        # Derived on access so a log_dir override before setup is picked up;
        # started_at never changes, so the name is stable for the process.
        stamp = self.started_at.strftime(FILE_TIMESTAMP_FORMAT)
        return self.log_dir / f"{self.tool_name}_{stamp}.log"


@dataclass
class Settings:
    verbose: bool = False
    interactive: bool = False
    version: str = TOOL_VERSION


@dataclass
class BackupConfig:
    paths: Paths = field(default_factory=Paths)
    settings: Settings = field(default_factory=Settings)
    pid: int = field(default_factory=os.getpid)


def build_config(
    log_dir: Optional[Path] = None,
    lock_file: Optional[Path] = None,
    verbose: bool = False,
    interactive: Optional[bool] = None,
) -> BackupConfig:
    """Build the per-run configuration, detecting interactivity when not given."""
    paths = Paths(
        log_dir=log_dir if log_dir is not None else DEFAULT_LOG_DIR,
        lock_file=lock_file if lock_file is not None else DEFAULT_LOCK_FILE,
    )
    if interactive is None:
        interactive = detect_interactive()
    settings = Settings(verbose=verbose, interactive=interactive)
    return BackupConfig(paths=paths, settings=settings)


__all__ = [
    "TOOL_NAME",
    "TOOL_VERSION",
    "DEFAULT_LOG_DIR",
    "DEFAULT_LOCK_FILE",
    "Paths",
    "Settings",
    "BackupConfig",
    "build_config",
    "detect_interactive",
]
