#
# __init__.py
# MariaDB Backup Script
#
# Package initializer exporting the config dataclass, the lock manager entry points and the single-run entry point.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""MariaDB backup supervision package."""
# Re-export the main configuration and runner for the entry-point wrapper.
from .config import BackupConfig, build_config
from .locks import LockError, LockHandle, acquire_lock, held_lock, release_lock
from .logging_setup import LogSetupError, setup_logging
from .runner import run_once

__all__ = [
    "BackupConfig",
    "build_config",
    "LockError",
    "LockHandle",
    "acquire_lock",
    "held_lock",
    "release_lock",
    "LogSetupError",
    "setup_logging",
    "run_once",
]
