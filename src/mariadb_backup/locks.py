#
# locks.py
# MariaDB Backup Script
#
# Implements the single-instance file lock: non-blocking flock acquisition, stale-lock diagnostics and owner-only cleanup of the lock file.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""File lock utilities to avoid overlapping runs.

``flock`` on the open descriptor is the only source of exclusion. The PID
written into the file is diagnostic: it lets a losing process tell whether
the holder is alive, and lets the owner avoid deleting a file that a newer
owner has since rewritten.
"""
from __future__ import annotations

import fcntl
import logging
import os
import re
import signal
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .logging_setup import LOGGER_NAME, VERBOSE

ALREADY_RUNNING = "already_running"
IO_FAILURE = "io_failure"

LOCK_ACTIVE = "active"
LOCK_STALE = "stale"
LOCK_INVALID = "invalid"
LOCK_UNREADABLE = "unreadable"

_PID_RE = re.compile(r"[0-9]+")

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class LockError(RuntimeError):
    def __init__(self, kind: str, path: Path, detail: str = ""):
        if kind == ALREADY_RUNNING:
            message = f"Another instance is already running (lock file: {path})"
        else:
            message = f"Cannot open lock file: {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.kind = kind
        self.path = path


@dataclass
class LockHandle:
    path: Path
    owner_pid: int
    fd: Optional[int] = None

    @property
    def state(self) -> str:
        return "locked" if self.fd is not None else "released"


def _read_first_line(path: Path) -> str:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.readline().strip()


def _same_file(fd: int, path: Path) -> bool:
    try:
        held = os.fstat(fd)
        current = os.stat(path)
    except OSError:
        return False
    return (held.st_dev, held.st_ino) == (current.st_dev, current.st_ino)


@contextmanager
def _signals_deferred():
    # Termination signals stay pending until the release is complete.
    try:
        previous = signal.pthread_sigmask(signal.SIG_BLOCK, TERMINATION_SIGNALS)
    except (AttributeError, OSError, ValueError):
        previous = None
    try:
        yield
    finally:
        if previous is not None:
            signal.pthread_sigmask(signal.SIG_SETMASK, previous)


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    # Signal 0 only checks existence/permissions, nothing is delivered.
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else.
        return True
    return True


def inspect_lock(lock_path: Path, logger=None) -> str:
    """
    Report who holds ``lock_path`` without touching the file.

    Returns one of ``active``, ``stale``, ``invalid`` or ``unreadable``.
    """
    log = logger or logging.getLogger(LOGGER_NAME)
    lock_path = Path(lock_path)
    try:
        content = _read_first_line(lock_path)
    except OSError as e:
        log.warning("Cannot read lock file %s: %s", lock_path, e)
        return LOCK_UNREADABLE

    if not _PID_RE.fullmatch(content):
        log.warning("Lock file %s has invalid content: %r", lock_path, content)
        return LOCK_INVALID

    pid = int(content)
    if pid_alive(pid):
        log.info("Lock is held by a running process (PID %d)", pid)
        return LOCK_ACTIVE

    # Left in place: the file may already belong to a new legitimate owner.
    log.warning("Stale lock detected: %s references PID %d which is no longer running", lock_path, pid)
    return LOCK_STALE


def acquire_lock(lock_path: Path, logger=None, pid: Optional[int] = None) -> LockHandle:
    log = logger or logging.getLogger(LOGGER_NAME)
    lock_path = Path(lock_path)
    owner_pid = pid if pid is not None else os.getpid()

    try:
        # Create parent directories to avoid race on first run.
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        # No O_TRUNC: the current holder's PID must stay readable for inspect_lock.
        fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o644)
    except OSError as e:
        raise LockError(IO_FAILURE, lock_path, str(e)) from e

    try:
        # Non-blocking exclusive lock: fail fast, schedulers own the retry cadence.
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        inspect_lock(lock_path, logger=log)
        raise LockError(ALREADY_RUNNING, lock_path)
    except OSError as e:
        os.close(fd)
        raise LockError(IO_FAILURE, lock_path, str(e)) from e

    if not _same_file(fd, lock_path):
        # The previous owner unlinked the file between our open and flock; the
        # lock we hold is on an orphaned inode, so the path is still contended.
        os.close(fd)
        log.log(VERBOSE, "Lock file %s was replaced while acquiring", lock_path)
        raise LockError(ALREADY_RUNNING, lock_path)

    try:
        os.ftruncate(fd, 0)
        os.lseek(fd, 0, os.SEEK_SET)
        os.write(fd, str(owner_pid).encode("ascii"))
        os.fsync(fd)
    except OSError as e:
        release_lock(LockHandle(lock_path, owner_pid, fd), logger=log)
        raise LockError(IO_FAILURE, lock_path, str(e)) from e

    log.log(VERBOSE, "Lock acquired: %s (PID %d)", lock_path, owner_pid)
    return LockHandle(path=lock_path, owner_pid=owner_pid, fd=fd)


def cleanup_lock(lock_path: Path, owner_pid: int, logger=None) -> bool:
    """Delete ``lock_path`` only when it still records ``owner_pid``."""
    log = logger or logging.getLogger(LOGGER_NAME)
    lock_path = Path(lock_path)
    try:
        content = _read_first_line(lock_path)
    except OSError:
        return False

    if content != str(owner_pid):
        log.log(VERBOSE, "Lock file %s now belongs to PID %r; leaving it in place", lock_path, content)
        return False

    try:
        lock_path.unlink()
    except OSError as e:
        log.log(VERBOSE, "Failed to remove lock file %s: %s", lock_path, e)
        return False
    log.log(VERBOSE, "Lock file removed: %s", lock_path)
    return True


def release_lock(handle: Optional[LockHandle], logger=None):
    """
    Clean up, unlock and close. Safe to call repeatedly or with None.

    The file is removed while the flock is still held, so no other process
    can lock it in between and then lose it to our unlink. Termination
    signals are deferred until the release has finished.
    """
    if handle is None:
        return
    log = logger or logging.getLogger(LOGGER_NAME)

    with _signals_deferred():
        cleanup_lock(handle.path, handle.owner_pid, logger=log)

        if handle.fd is not None:
            fd, handle.fd = handle.fd, None
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            except OSError as e:
                log.log(VERBOSE, "Failed to unlock %s: %s", handle.path, e)
            try:
                os.close(fd)
            except OSError as e:
                log.log(VERBOSE, "Failed to close lock descriptor for %s: %s", handle.path, e)


@contextmanager
def held_lock(lock_path: Path, logger=None, pid: Optional[int] = None):
    """
    Hold the lock for the duration of the ``with`` block.

    Release runs on normal exit, on exceptions and on the SystemExit raised
    by the termination signal handlers.
    """
    handle = acquire_lock(lock_path, logger=logger, pid=pid)
    try:
        yield handle
    finally:
        release_lock(handle, logger=logger)


__all__ = [
    "ALREADY_RUNNING",
    "IO_FAILURE",
    "LockError",
    "LockHandle",
    "TERMINATION_SIGNALS",
    "pid_alive",
    "inspect_lock",
    "acquire_lock",
    "cleanup_lock",
    "release_lock",
    "held_lock",
]
