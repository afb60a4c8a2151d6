"""Exclusive lock around a local state file."""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from seff.engine.errors import StateLockError

if TYPE_CHECKING:
    from types import TracebackType

try:
    import fcntl  # type: ignore[attr-defined]
except ImportError:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


class StateLock:
    """Exclusive lock on ``<state>.lock``, held while a transition runs.

    With ``timeout=None`` acquisition waits indefinitely; otherwise a
    ``StateLockError`` is raised once *timeout* seconds have passed.
    """

    def __init__(self, state_path: Path, *, timeout: float | None = None) -> None:
        self._lock_path = Path(str(state_path) + ".lock")
        self._timeout = timeout
        self._file = None

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    def __enter__(self) -> StateLock:
        # Keep fd open for lifetime of the lock.
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._lock_path.open("a+", encoding="utf-8")
        deadline = None if self._timeout is None else time.monotonic() + self._timeout
        try:
            while not self._try_acquire():
                if deadline is not None and time.monotonic() >= deadline:
                    raise StateLockError(
                        f"Timed out waiting for state lock {self._lock_path} "
                        f"(held by pid {self._holder() or 'unknown'})"
                    )
                time.sleep(_POLL_INTERVAL)
        except Exception as e:
            try:
                self._file.close()
            finally:
                self._file = None
            if isinstance(e, StateLockError):
                raise
            raise StateLockError(str(e)) from e

        self._file.seek(0)
        self._file.truncate()
        self._file.write(str(os.getpid()))
        self._file.flush()
        logger.debug("Acquired state lock %s", self._lock_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            self._file.seek(0)
            self._file.truncate()
            self._release()
        finally:
            self._file.close()
            self._file = None
        logger.debug("Released state lock %s", self._lock_path)

    def _holder(self) -> str:
        try:
            return self._lock_path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def _try_acquire(self) -> bool:
        if self._file is None:
            raise StateLockError("Lock file is not open")

        if fcntl is not None:
            try:
                fcntl.flock(self._file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return False
            return True

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            try:
                msvcrt.locking(self._file.fileno(), msvcrt.LK_NBLCK, 1)
            except OSError:
                return False
            return True

        raise StateLockError("State locking is not supported on this platform")

    def _release(self) -> None:
        if self._file is None:
            return

        if fcntl is not None:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            return

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            msvcrt.locking(self._file.fileno(), msvcrt.LK_UNLCK, 1)
