#
# runner.py
# MariaDB Backup Script
#
# Coordinates one supervised run: logging setup, exit handlers, single-instance lock, banner, and hand-off to the backup workflow.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Run a single supervised backup cycle."""
from __future__ import annotations

import sys
from typing import Callable, Optional

from .banner import log_environment, log_options, show_banner
from .config import BackupConfig
from .lifecycle import install_exit_handlers, register_release, restore_handlers
from .locks import LockError, held_lock
from .logging_setup import LogSetupError, RunLogger, setup_logging

Workflow = Callable[[BackupConfig, RunLogger], None]

RC_OK = 0
RC_FATAL = 1


def run_once(config: BackupConfig, workflow: Optional[Workflow] = None, logger: Optional[RunLogger] = None) -> int:
    """
    Initialize logging, take the lock and run ``workflow`` while holding it.

    Returns the process exit code: 0 on success, 1 on any fatal
    initialization error (unwritable log, lock already held) or when the
    workflow raises.
    """
    try:
        log = logger or setup_logging(config)
    except LogSetupError as e:
        # No log file to write to; stderr is all that is left.
        print(f"ERROR: {e}", file=sys.stderr)
        print("FATAL: Failed to initialize logging", file=sys.stderr)
        return RC_FATAL

    log_options(config, log)

    # Handlers go in before acquisition so a signal can never strand the lock.
    previous = install_exit_handlers(log)
    unregister = None
    try:
        with held_lock(config.paths.lock_file, logger=log, pid=config.pid) as handle:
            # atexit fallback stays registered until the scoped release has run.
            unregister = register_release(handle, logger=log)
            show_banner(config, log)
            log_environment(config, log)
            log.info("Initialization completed successfully")
            log.verbose("Ready to proceed with MariaDB backup operations")

            if workflow is not None:
                try:
                    workflow(config, log)
                except Exception as e:
                    log.error("[FATAL] %s", e)
                    return RC_FATAL
    except LockError as e:
        log.error("%s", e)
        return RC_FATAL
    finally:
        if unregister is not None:
            unregister()
        restore_handlers(previous)
    return RC_OK


__all__ = ["RC_OK", "RC_FATAL", "Workflow", "run_once"]
