#
# lifecycle.py
# MariaDB Backup Script
#
# Routes interrupt/termination signals and interpreter exit into the same lock release path used on normal completion.
#
# Thales Matheus Mendonça Santos - November 2025
#
"""Exit handlers for the backup scaffold."""
from __future__ import annotations

import atexit
import logging
import signal
from typing import Callable, Dict, Optional

from .locks import TERMINATION_SIGNALS, LockHandle, release_lock
from .logging_setup import LOGGER_NAME


class _SignalExit:
    """Signal handler that converts the first termination signal into SystemExit."""

    def __init__(self, logger):
        self.log = logger
        self.received: Optional[int] = None

    def __call__(self, signum, _frame):
        if self.received is not None:
            # Already unwinding; let the release in progress finish.
            self.log.warning("Signal %d received during shutdown; ignoring", signum)
            return
        self.received = signum
        self.log.warning("Signal %s received; releasing lock and exiting", signal.Signals(signum).name)
        raise SystemExit(128 + signum)


def install_exit_handlers(logger=None) -> Dict[int, object]:
    """
    Install handlers for SIGINT/SIGTERM/SIGHUP and return the previous ones.

    The handler raises SystemExit, so a surrounding ``held_lock`` scope runs
    its release in ``finally`` exactly as on a normal return.
    """
    log = logger or logging.getLogger(LOGGER_NAME)
    handler = _SignalExit(log)
    previous = {}
    for signum in TERMINATION_SIGNALS:
        try:
            previous[signum] = signal.signal(signum, handler)
        except (OSError, ValueError) as e:
            # ValueError: not called from the main thread.
            log.warning("Cannot install handler for signal %d: %s", signum, e)
    return previous


def restore_handlers(previous: Dict[int, object]):
    for signum, handler in previous.items():
        try:
            signal.signal(signum, handler)
        except (OSError, ValueError, TypeError):
            pass


def register_release(handle: LockHandle, logger=None) -> Callable[[], None]:
    """
    Register an atexit fallback for ``handle`` and return an unregister callable.

    release_lock is idempotent, so when the scoped release already ran this
    call does nothing.
    """
    def _release():
        release_lock(handle, logger=logger)

    atexit.register(_release)

    def _unregister():
        atexit.unregister(_release)

    return _unregister


__all__ = ["TERMINATION_SIGNALS", "install_exit_handlers", "restore_handlers", "register_release"]
