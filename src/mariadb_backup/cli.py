#
# cli.py
# MariaDB Backup Script
#
# Parses the command line (verbose, log directory, lock file) with the exit-code contract expected by cron/systemd callers.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Command-line interface.

Exit codes: 0 on success or ``--help``; 1 on any initialization failure,
including argument errors (argparse's own default would be 2).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_LOCK_FILE, DEFAULT_LOG_DIR, TOOL_NAME, build_config
from .logging_setup import LogSetupError, setup_logging, teardown_logging
from .runner import RC_FATAL, Workflow, run_once

EPILOG = f"""\
execution modes:
  Interactive:        {TOOL_NAME} (colors, terminal output)
  Non-interactive:    cron, systemd, etc. (logs only, no colors)

examples:
  {TOOL_NAME} --verbose
  {TOOL_NAME} --log-dir /custom/log/path
  {TOOL_NAME} --lock-file /run/{TOOL_NAME}.lock
"""


def _path_argument(value: str) -> Path:
    if not value.strip():
        raise argparse.ArgumentTypeError("requires a non-empty path")
    return Path(value)


def _requested_log_dir(argv: List[str]) -> Optional[Path]:
    """Best-effort scan for --log-dir in arguments argparse rejected."""
    found = None
    for i, arg in enumerate(argv):
        if arg in ("-l", "--log-dir"):
            value = argv[i + 1] if i + 1 < len(argv) else ""
        elif arg.startswith("--log-dir="):
            value = arg.split("=", 1)[1]
        else:
            continue
        if value.strip() and not value.startswith("-"):
            found = Path(value)
    return found


def report_usage_error(message: str, argv: List[str]):
    """
    Record a command-line error like any other fatal error: in the log file
    and, when interactive, in red on the terminal. Falls back to plain stderr
    when the log file cannot be opened.
    """
    config = build_config(log_dir=_requested_log_dir(argv))
    try:
        logger = setup_logging(config)
    except LogSetupError:
        logger = None

    if logger is not None:
        logger.error("%s", message)
        teardown_logging(logger)
    if logger is None or not config.settings.interactive:
        sys.stderr.write(f"ERROR: {message}\n")


class ArgumentParser(argparse.ArgumentParser):
    raw_args: List[str] = []

    def parse_args(self, args=None, namespace=None):
        self.raw_args = list(args) if args is not None else sys.argv[1:]
        return super().parse_args(args, namespace)

    def error(self, message):
        report_usage_error(message, self.raw_args)
        sys.stderr.write("\n")
        self.print_help(sys.stderr)
        self.exit(RC_FATAL)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog=TOOL_NAME,
        description="MariaDB Backup Script with Mariabackup",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="help", help="Show this help message")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose mode (more detailed output)")
    parser.add_argument("-l", "--log-dir", type=_path_argument, metavar="DIR",
                        help=f"Set log directory (default: {DEFAULT_LOG_DIR})")
    parser.add_argument("--lock-file", type=_path_argument, metavar="FILE",
                        help=f"Set lock file path (default: {DEFAULT_LOCK_FILE})")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: Optional[List[str]] = None, workflow: Optional[Workflow] = None) -> int:
    args = parse_arguments(argv)
    config = build_config(log_dir=args.log_dir, lock_file=args.lock_file, verbose=args.verbose)
    return run_once(config, workflow=workflow)


__all__ = ["build_parser", "parse_arguments", "report_usage_error", "main"]
