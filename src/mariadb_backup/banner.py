#
# banner.py
# MariaDB Backup Script
#
# Prints the interactive startup banner and logs the execution-context diagnostics shown in verbose mode.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Startup banner and environment diagnostics."""
from __future__ import annotations

import os
import sys
from pathlib import Path

from .config import DEFAULT_LOCK_FILE, DEFAULT_LOG_DIR, BackupConfig

RULE = "=" * 80


def _mode_label(config: BackupConfig) -> str:
    return "Interactive" if config.settings.interactive else "Non-interactive"


def _tty_label(stream) -> str:
    try:
        return "TTY" if stream is not None and stream.isatty() else "pipe"
    except (AttributeError, ValueError):
        return "pipe"


def parent_process_name(ppid=None) -> str:
    ppid = ppid if ppid is not None else os.getppid()
    try:
        return Path(f"/proc/{ppid}/comm").read_text(encoding="utf-8").strip() or "unknown"
    except OSError:
        return "unknown"


def show_banner(config: BackupConfig, logger, stream=None):
    settings = config.settings
    if settings.interactive:
        out = stream if stream is not None else sys.stdout
        out.write(f"{RULE}\n")
        out.write(f" MariaDB Backup Script with Mariabackup v{settings.version}\n")
        out.write(f" PID: {config.pid} | Log: {config.paths.log_file}\n")
        out.write(
            f" Mode: {_mode_label(config)} | Verbose: {'Enabled' if settings.verbose else 'Disabled'}\n"
        )
        out.write(f"{RULE}\n")
        out.flush()

    if settings.verbose:
        logger.verbose("Script started - PID: %d, Mode: %s", config.pid, _mode_label(config))
    else:
        logger.info("Script started - PID: %d", config.pid)


def log_options(config: BackupConfig, logger):
    """Verbose records for the command-line choices that differ from the defaults."""
    paths = config.paths
    if config.settings.verbose:
        logger.verbose("Verbose mode enabled - will provide detailed information")
    if paths.log_dir != DEFAULT_LOG_DIR:
        logger.verbose("Custom log directory set: %s", paths.log_dir)
    if paths.lock_file != DEFAULT_LOCK_FILE:
        logger.verbose("Custom lock file set: %s", paths.lock_file)


def log_environment(config: BackupConfig, logger, script_dir=None):
    """Verbose-only snapshot of where and how the process was started."""
    if not config.settings.verbose:
        return
    script_dir = script_dir or Path(sys.argv[0]).resolve().parent
    logger.verbose("Script directory: %s", script_dir)
    logger.verbose("Log file: %s", config.paths.log_file)
    logger.verbose("Lock file: %s", config.paths.lock_file)
    logger.verbose("Interactive mode: %s", config.settings.interactive)
    logger.verbose(
        "Terminal detection: stdin=%s, stdout=%s, stderr=%s",
        _tty_label(sys.stdin),
        _tty_label(sys.stdout),
        _tty_label(sys.stderr),
    )
    logger.verbose("Parent process: %s", parent_process_name())
    logger.verbose(
        "Environment: USER=%s, TERM=%s",
        os.environ.get("USER", "unknown"),
        os.environ.get("TERM", "unknown"),
    )


__all__ = ["show_banner", "log_options", "log_environment", "parent_process_name"]
