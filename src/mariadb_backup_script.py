#!/usr/bin/env python3
#
# mariadb_backup_script.py
# MariaDB Backup Script
#
# Entry-point wrapper that parses the command line and runs a single supervised backup cycle under the single-instance lock.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""
Thin wrapper kept so cron/systemd units can call the script directly.
"""
from __future__ import annotations

import sys

from mariadb_backup.cli import main


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
