#
# conftest.py
# MariaDB Backup Script
#
# Creates reusable pytest fixtures that set up a temporary run configuration (log dir + lock file) and reset the scaffold logger between tests.
#
# Thales Matheus Mendonça Santos - November 2025
#
import subprocess
import sys

import pytest

from mariadb_backup.config import BackupConfig, Paths, Settings
from mariadb_backup.logging_setup import teardown_logging


@pytest.fixture
def temp_config(tmp_path):
    paths = Paths(log_dir=tmp_path / "logs", lock_file=tmp_path / "run" / "tool.lock", tool_name="tool")
    settings = Settings(verbose=False, interactive=False)
    return BackupConfig(paths=paths, settings=settings)


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # Handlers point at per-test tmp files; drop them so tests stay independent.
    teardown_logging()


@pytest.fixture
def dead_pid():
    # A child that has been reaped leaves a PID with no live process behind it.
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid
