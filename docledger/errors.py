"""Error taxonomy shared by the processor, the retry executor and the run controller.

Every error carries explicit ``retryable`` / ``rate_limited`` flags so callers
classify by attribute rather than by subclass.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    TERMINAL = "terminal"
    IO = "io"
    LOCK_CONTENTION = "lock_contention"
    STALE_PRIOR_RUN = "stale_prior_run"


class LedgerError(Exception):
    """Base class for all docledger errors."""

    kind: ErrorKind = ErrorKind.TERMINAL
    retryable: bool = False
    rate_limited: bool = False
    retry_after: float | None = None


class RateLimited(LedgerError):
    """The external service refused the call because of quota or rate limits."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True
    rate_limited = True

    def __init__(self, message: str = "rate limited", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransientServiceError(LedgerError):
    """A service-side failure; ``retryable`` is decided by the collaborator."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self, message: str, retryable: bool = False, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class TerminalRequestError(LedgerError):
    """A client-side condition that will fail the same way on every attempt."""

    kind = ErrorKind.TERMINAL


class IOFailure(LedgerError):
    """Reading, hashing or persisting a file failed."""

    kind = ErrorKind.IO

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        self.path = str(path)
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"I/O failure on {self.path}{detail}")
        if cause is not None:
            self.__cause__ = cause


class LockContention(LedgerError):
    """Another live process holds the project lock."""

    kind = ErrorKind.LOCK_CONTENTION

    def __init__(self, pid: int, hostname: str, started_at: str) -> None:
        self.pid = pid
        self.hostname = hostname
        self.started_at = started_at
        super().__init__(
            f"Another update is in progress (PID: {pid}, host: {hostname}, started: {started_at})"
        )


class StalePriorRun(LedgerError):
    """A staging log from an interrupted run no longer matches the tree."""

    kind = ErrorKind.STALE_PRIOR_RUN

    def __init__(self, staged_root: str, current_root: str) -> None:
        self.staged_root = staged_root
        self.current_root = current_root
        super().__init__(
            f"Staging log from an interrupted run is stale "
            f"(staged root {staged_root[:12]}, current root {current_root[:12]})"
        )


def describe_error(exc: BaseException) -> str:
    """Short ``Type: message`` string used as a failure reason."""
    name = exc.__class__.__name__
    message = str(exc)
    return f"{name}: {message}" if message else name
