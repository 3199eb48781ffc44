"""Advisory single-writer lock for a project's state directory."""

from __future__ import annotations

import atexit
import logging
import os
import signal
import socket
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ValidationError

from docledger.errors import IOFailure, LockContention

logger = logging.getLogger(__name__)

# Attempts at creating the lock file when racing another process for it
_ACQUIRE_ATTEMPTS = 3


class LockRecord(BaseModel):
    """Contents of the lock file."""

    pid: int
    hostname: str
    started_at: str

    @classmethod
    def for_current_process(cls) -> LockRecord:
        return cls(
            pid=os.getpid(),
            hostname=socket.gethostname(),
            started_at=datetime.now(timezone.utc).isoformat(),
        )

    def is_ours(self) -> bool:
        return self.pid == os.getpid() and self.hostname == socket.gethostname()


def is_process_running(pid: int) -> bool:
    """Check whether *pid* refers to a live process on this host."""
    if pid <= 0:
        return False
    if os.name == "nt":
        # os.kill would terminate the target on Windows; assume it is alive
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    return True


class ProcessLock:
    """File-based lock recording the owner's pid, host and start time.

    ``acquire()`` never blocks: it either creates the lock file or raises
    ``LockContention`` naming the live owner. A lock whose owner process is
    gone is removed and treated as absent.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._record: LockRecord | None = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def info(self) -> LockRecord | None:
        """Read the current lock record, or None if absent or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to read lock file %s: %s", self.path, e)
            return None
        try:
            return LockRecord.model_validate_json(raw)
        except ValidationError:
            return None

    def is_stale(self) -> bool:
        """True when there is no lock, or its owner is no longer running."""
        record = self.info()
        if record is None:
            return True
        return not self._owner_alive(record)

    def is_held(self) -> bool:
        """True when a live owner holds the lock."""
        return self.path.exists() and not self.is_stale()

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    def acquire(self) -> LockRecord:
        """Take the lock for the current process."""
        for _ in range(_ACQUIRE_ATTEMPTS):
            if self.path.exists():
                current = self.info()
                if current is not None and self._owner_alive(current):
                    raise LockContention(current.pid, current.hostname, current.started_at)
                self._remove_stale(current)

            record = LockRecord.for_current_process()
            if self._create(record):
                self._record = record
                logger.debug("Acquired lock %s (PID %d)", self.path, record.pid)
                return record

        current = self.info()
        if current is None:
            raise LockContention(-1, "unknown", "unknown")
        raise LockContention(current.pid, current.hostname, current.started_at)

    def release(self) -> None:
        """Remove the lock file, but only if this process still owns it."""
        self._record = None
        record = self.info()
        if record is None or not record.is_ours():
            return
        try:
            self.path.unlink(missing_ok=True)
            logger.debug("Released lock %s", self.path)
        except OSError as e:
            logger.warning("Failed to release lock %s: %s", self.path, e)

    def break_stale(self) -> bool:
        """Remove the lock file if its owner is dead. Returns True if removed."""
        if not self.path.exists() or not self.is_stale():
            return False
        self._remove_stale(self.info())
        return not self.path.exists()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _owner_alive(self, record: LockRecord) -> bool:
        if record.hostname != socket.gethostname():
            # Cannot signal a process on another machine
            return True
        return is_process_running(record.pid)

    def _remove_stale(self, observed: LockRecord | None) -> None:
        # Only delete the file we judged stale, not one a racing process just wrote
        if self.info() != observed:
            return
        if observed is not None:
            logger.warning(
                "Removing stale lock %s held by dead process %d (started %s)",
                self.path,
                observed.pid,
                observed.started_at,
            )
        else:
            logger.warning("Removing unreadable lock file %s", self.path)
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailure(str(self.path), e) from e

    def _create(self, record: LockRecord) -> bool:
        """Atomically publish a complete lock file. False if one already exists."""
        tmp = self.path.with_name(f"{self.path.name}.{record.pid}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            try:
                os.link(tmp, self.path)
            except FileExistsError:
                return False
            return True
        except OSError as e:
            raise IOFailure(str(self.path), e) from e
        finally:
            tmp.unlink(missing_ok=True)


class RunScope:
    """Holds a ProcessLock for the duration of a ``with`` block.

    While active, SIGINT/SIGTERM and interpreter exit release the lock.
    Leaving the block, by any path, releases the lock once and puts the
    previous signal handlers back.
    """

    def __init__(
        self,
        lock: ProcessLock,
        signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        self.lock = lock
        self._signals = signals
        self._previous: dict[signal.Signals, object] = {}
        self._released = True

    def __enter__(self) -> RunScope:
        self.lock.acquire()
        self._released = False
        self._install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._uninstall()
        self.cleanup()

    @property
    def active(self) -> bool:
        return not self._released

    def cleanup(self) -> None:
        """Release the lock; safe to call any number of times."""
        if self._released:
            return
        self._released = True
        self.lock.release()

    def _handle_signal(self, signum: int, frame) -> None:
        logger.warning("Received %s, releasing lock", signal.Signals(signum).name)
        self.cleanup()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def _install(self) -> None:
        atexit.register(self.cleanup)
        # signal.signal only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in self._signals:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)

    def _uninstall(self) -> None:
        atexit.unregister(self.cleanup)
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
