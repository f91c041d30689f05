"""PID lockfile serializing overlapping poll cycles on one state directory."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)

LOCK_FILE = ".cycle.lock"

# An owner writes its pid right after creating the file; an empty or
# unreadable lock younger than this is still being set up.
UNREADABLE_LOCK_GRACE_SECONDS = 60.0


class LockHeldError(RuntimeError):
    """Another live process holds the cycle lock."""


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class CycleLock:
    """Lockfile holding the owner's PID; a lock left by a dead PID is taken over."""

    def __init__(
        self,
        path: str | Path,
        unreadable_grace_seconds: float = UNREADABLE_LOCK_GRACE_SECONDS,
    ) -> None:
        self.path = Path(path)
        self.unreadable_grace_seconds = unreadable_grace_seconds
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if not self._clear_if_stale():
                    raise LockHeldError(f"Poll cycle already running (lock: {self.path})") from None
                continue
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            self._held = True
            return
        raise LockHeldError(f"Could not acquire lock {self.path}")

    def _clear_if_stale(self) -> bool:
        try:
            pid = int(self.path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return True
        except (OSError, ValueError):
            pid = None
        if pid is not None and _pid_alive(pid):
            return False
        if pid is None and not self._older_than_grace():
            return False
        logger.warning("Removing stale cycle lock %s (pid %s)", self.path, pid)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        return True

    def _older_than_grace(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > self.unreadable_grace_seconds

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        self._held = False

    def __enter__(self) -> CycleLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
