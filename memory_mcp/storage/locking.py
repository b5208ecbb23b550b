"""
Cross-process lock backends.

Both backends wrap ``filelock`` and expose the same non-blocking
``try_acquire`` / ``release`` pair; the coordinator owns the retry loop.

    marker  - SoftFileLock: atomic O_CREAT|O_EXCL marker file. The holder sets
              the marker mtime to its own expiry (now + stale threshold); a
              marker past its expiry belongs to a crashed or hung holder and
              is reclaimed by the next acquirer.
    os      - FileLock: flock / LockFileEx advisory lock. The kernel drops it
              when the holder dies, so no reclamation is needed.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from filelock import FileLock, SoftFileLock, Timeout

logger = logging.getLogger(__name__)

LOCK_BACKENDS = ("marker", "os")

# A just-created marker still carries its creation mtime until the holder
# stamps the expiry; never reclaim inside this window.
RECLAIM_GRACE_SECONDS = 1.0


def _identity_of(path: Path) -> tuple[int, int] | None:
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return None
    return st.st_dev, st.st_ino


class LockBackend(Protocol):
    """Exclusive, cooperative lock on a single lock file."""

    path: Path

    def try_acquire(self) -> bool:
        """Take the lock if free. Never blocks."""
        ...

    def release(self) -> None:
        """Give the lock back."""
        ...


class MarkerLock:
    """
    Lock-file protocol with stale-marker reclamation.

    Args:
        path: Marker file
        stale_seconds: How long this holder may keep the lock before others
            may treat it as abandoned
    """

    def __init__(self, path: Path, stale_seconds: float) -> None:
        self.path = path
        self.stale_seconds = stale_seconds
        self._lock = SoftFileLock(str(path))
        self._marker: tuple[int, int] | None = None

    def try_acquire(self) -> bool:
        if self._try_once():
            return True
        if self._reclaim_if_stale():
            return self._try_once()
        return False

    def release(self) -> None:
        # SoftFileLock only unlinks the marker while it is still the inode we
        # created, so a successor that reclaimed an overrun lease keeps its lock.
        if self._marker is not None and _identity_of(self.path) != self._marker:
            logger.warning(f"Lock {self.path.name} was reclaimed while held; lease overran")
        self._marker = None
        self._lock.release()

    def _try_once(self) -> bool:
        try:
            self._lock.acquire(timeout=0)
        except Timeout:
            return False
        expires_at = time.time() + self.stale_seconds
        try:
            os.utime(self.path, (expires_at, expires_at))
            self._marker = _identity_of(self.path)
        except OSError:
            self._lock.release()
            raise
        return True

    def _reclaim_if_stale(self) -> bool:
        """
        Move an abandoned marker aside.

        The marker is renamed away and then re-checked: if the file taken is
        not the expired one that was inspected (another waiter reclaimed it and
        created a fresh marker in between), it is linked back and the live
        holder keeps its lock.
        """
        try:
            seen = os.lstat(self.path)
        except FileNotFoundError:
            return True
        overdue = time.time() - seen.st_mtime
        if overdue < RECLAIM_GRACE_SECONDS:
            return False

        graveyard = self.path.with_name(f"{self.path.name}.stale.{uuid4().hex}")
        try:
            os.rename(self.path, graveyard)
        except FileNotFoundError:
            return True

        taken = os.lstat(graveyard)
        if (taken.st_dev, taken.st_ino, taken.st_mtime_ns) != (seen.st_dev, seen.st_ino, seen.st_mtime_ns):
            self._put_back(graveyard)
            return False

        graveyard.unlink(missing_ok=True)
        logger.warning(f"Reclaimed stale lock {self.path.name} ({overdue:.1f}s past expiry)")
        return True

    def _put_back(self, graveyard: Path) -> None:
        """Restore a live marker taken by mistake; link never replaces a newer one."""
        try:
            os.link(graveyard, self.path)
        except FileExistsError:
            logger.warning(f"Could not restore live lock {self.path.name}: replaced by another waiter")
        finally:
            graveyard.unlink(missing_ok=True)


class OSLock:
    """
    OS-level advisory lock; crash cleanup is handled by the kernel.

    The lock file stays on disk after release (unlinking it would let a
    waiter lock an orphaned inode), so the lock directory keeps one file per
    distinct lock target ever used.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = FileLock(str(path))

    def try_acquire(self) -> bool:
        try:
            self._lock.acquire(timeout=0)
        except Timeout:
            return False
        return True

    def release(self) -> None:
        self._lock.release()


def make_lock(backend: str, path: Path, stale_seconds: float) -> LockBackend:
    """Build a lock for ``path`` using the named backend."""
    if backend == "marker":
        return MarkerLock(path, stale_seconds)
    if backend == "os":
        return OSLock(path)
    raise ValueError(f"Unknown lock backend: {backend}. Use one of: {', '.join(LOCK_BACKENDS)}")
