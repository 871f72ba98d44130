#
# test_locks.py
# MariaDB Backup Script
#
# Exercises the single-instance lock: mutual exclusion, owner-only cleanup, idempotent release and stale/invalid lock diagnostics.
#
# Thales Matheus Mendonça Santos - November 2025
#
import fcntl
import os
import time

import pytest

from mariadb_backup import locks
from mariadb_backup.locks import (
    ALREADY_RUNNING,
    IO_FAILURE,
    LockError,
    LockHandle,
    acquire_lock,
    cleanup_lock,
    held_lock,
    inspect_lock,
    release_lock,
)
from mariadb_backup.logging_setup import setup_logging


def test_acquire_writes_pid_and_creates_parent(temp_config):
    lock_path = temp_config.paths.lock_file
    assert not lock_path.parent.exists()

    handle = acquire_lock(lock_path)
    try:
        assert handle.state == "locked"
        assert handle.owner_pid == os.getpid()
        assert lock_path.read_text() == str(os.getpid())
    finally:
        release_lock(handle)

    assert handle.state == "released"
    assert not lock_path.exists()


def test_second_acquire_fails_fast(temp_config):
    lock_path = temp_config.paths.lock_file
    handle = acquire_lock(lock_path)
    try:
        start = time.monotonic()
        with pytest.raises(LockError) as exc:
            acquire_lock(lock_path)
        assert exc.value.kind == ALREADY_RUNNING
        assert time.monotonic() - start < 1.0
        # The losing attempt must not clobber the holder's PID.
        assert lock_path.read_text() == str(os.getpid())
    finally:
        release_lock(handle)


def test_acquire_io_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(LockError) as exc:
        acquire_lock(blocker / "sub" / "tool.lock")
    assert exc.value.kind == IO_FAILURE


def test_release_is_idempotent(temp_config):
    handle = acquire_lock(temp_config.paths.lock_file)
    release_lock(handle)
    release_lock(handle)
    release_lock(None)
    assert not temp_config.paths.lock_file.exists()


def test_release_keeps_file_rewritten_by_other_owner(temp_config):
    lock_path = temp_config.paths.lock_file
    handle = acquire_lock(lock_path)
    lock_path.write_text("999999")

    release_lock(handle)
    assert lock_path.read_text() == "999999"


def test_cleanup_only_for_recorded_owner(tmp_path):
    lock_path = tmp_path / "tool.lock"
    lock_path.write_text("1234\n")

    assert cleanup_lock(lock_path, 4321) is False
    assert lock_path.exists()

    assert cleanup_lock(lock_path, 1234) is True
    assert not lock_path.exists()

    # Missing file is not an error.
    assert cleanup_lock(lock_path, 1234) is False


def test_cleanup_uses_pid_from_handle(temp_config):
    lock_path = temp_config.paths.lock_file
    handle = acquire_lock(lock_path, pid=4242)
    assert lock_path.read_text() == "4242"

    release_lock(handle)
    assert not lock_path.exists()


def test_inspect_active(tmp_path):
    lock_path = tmp_path / "tool.lock"
    lock_path.write_text(f"{os.getpid()}\n")
    assert inspect_lock(lock_path) == "active"


def test_inspect_stale_leaves_file(tmp_path, temp_config, dead_pid):
    logger = setup_logging(temp_config)
    lock_path = tmp_path / "tool.lock"
    lock_path.write_text(f"{dead_pid}\n")

    assert inspect_lock(lock_path, logger=logger) == "stale"
    assert lock_path.read_text() == f"{dead_pid}\n"
    log_text = temp_config.paths.log_file.read_text()
    assert "[WARN] Stale lock detected" in log_text


def test_inspect_invalid_content(tmp_path, temp_config):
    logger = setup_logging(temp_config)
    lock_path = tmp_path / "tool.lock"
    lock_path.write_text("abc\n")

    assert inspect_lock(lock_path, logger=logger) == "invalid"
    assert lock_path.read_text() == "abc\n"
    assert "invalid content" in temp_config.paths.log_file.read_text()


def test_inspect_missing_file(tmp_path):
    assert inspect_lock(tmp_path / "missing.lock") == "unreadable"


def test_failed_acquire_logs_holder_state(temp_config):
    logger = setup_logging(temp_config)
    handle = acquire_lock(temp_config.paths.lock_file, logger=logger)
    try:
        with pytest.raises(LockError):
            acquire_lock(temp_config.paths.lock_file, logger=logger)
    finally:
        release_lock(handle, logger=logger)

    assert "[INFO] Lock is held by a running process" in temp_config.paths.log_file.read_text()


def test_held_lock_releases_on_exception(temp_config):
    lock_path = temp_config.paths.lock_file
    with pytest.raises(ValueError):
        with held_lock(lock_path) as handle:
            assert isinstance(handle, LockHandle)
            assert lock_path.exists()
            raise ValueError("workflow failed")

    assert handle.state == "released"
    assert not lock_path.exists()
    # Lock is free again.
    release_lock(acquire_lock(lock_path))


def test_acquire_rejects_lock_on_unlinked_file(temp_config, monkeypatch):
    lock_path = temp_config.paths.lock_file
    holder = acquire_lock(lock_path, pid=111)
    real_open = os.open

    def open_then_holder_exits(path, flags, mode=0o777):
        # The holder finishes between our open() and our flock().
        fd = real_open(path, flags, mode)
        release_lock(holder)
        return fd

    monkeypatch.setattr(locks.os, "open", open_then_holder_exits)
    with pytest.raises(LockError) as exc:
        acquire_lock(lock_path, pid=222)
    monkeypatch.undo()

    assert exc.value.kind == ALREADY_RUNNING
    # The next run gets a fresh file and is the only holder.
    handle = acquire_lock(lock_path, pid=333)
    try:
        assert lock_path.read_text() == "333"
        with pytest.raises(LockError):
            acquire_lock(lock_path, pid=444)
    finally:
        release_lock(handle)


def test_lock_file_removed_before_flock_is_dropped(temp_config, monkeypatch):
    lock_path = temp_config.paths.lock_file
    holder = acquire_lock(lock_path, pid=111)
    real_cleanup = locks.cleanup_lock
    contender = {}

    def cleanup_with_contender(path, owner_pid, logger=None):
        # Another process tries to lock the file while the owner removes it.
        fd = os.open(str(path), os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            contender["locked"] = True
        except BlockingIOError:
            contender["locked"] = False
        finally:
            os.close(fd)
        return real_cleanup(path, owner_pid, logger=logger)

    monkeypatch.setattr(locks, "cleanup_lock", cleanup_with_contender)
    release_lock(holder)
    monkeypatch.undo()

    assert contender["locked"] is False
    assert not lock_path.exists()
