"""
Concurrency Coordinator

Serializes operations on the same filesystem entity across processes and
detects lost updates with a pre-lock mtime snapshot.

Per call:
    compute lock target -> snapshot (writes) -> wait for lock -> verify
    snapshot (writes) -> run body -> release

The lock is exclusive for readers and writers alike. The mode only decides
whether the snapshot check gates the body and how long the caller may wait.
Conflicts and timeouts are raised, never retried here.
"""

from __future__ import annotations

import asyncio
import functools
import hashlib
import logging
import os
import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack, contextmanager
from enum import Enum
from pathlib import Path
from typing import TypeVar

from memory_mcp.errors import ConflictError, LockTimeoutError
from memory_mcp.storage.locking import LOCK_BACKENDS, LockBackend, make_lock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LockMode(str, Enum):
    """Whether a coordinated call mutates its target."""

    READ = "read"
    WRITE = "write"


class Coordinator:
    """
    Hybrid lock + optimistic-check coordinator for one storage root.

    Lock files live in ``lock_dir`` (outside the memory namespace) and are
    named by a digest of the lock target's physical path.

    Example:
        >>> coordinator = Coordinator(root / ".locks")
        >>> text = coordinator.run(path, LockMode.READ, path.read_text)
        >>> await coordinator.with_coordination(path, LockMode.WRITE, _write)
    """

    def __init__(
        self,
        lock_dir: Path | str,
        *,
        backend: str = "marker",
        read_stale_seconds: float = 5.0,
        write_stale_seconds: float = 10.0,
        backoff_min_seconds: float = 0.01,
        backoff_max_seconds: float = 0.25,
        describe: Callable[[Path], str] = str,
        max_workers: int = 32,
    ) -> None:
        if backend not in LOCK_BACKENDS:
            raise ValueError(
                f"Unknown lock backend: {backend}. Use one of: {', '.join(LOCK_BACKENDS)}"
            )
        self.lock_dir = Path(lock_dir)
        self.backend = backend
        self.read_stale_seconds = read_stale_seconds
        self.write_stale_seconds = write_stale_seconds
        self.backoff_min_seconds = backoff_min_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.describe = describe
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        # Lock waits park a worker for up to the stale threshold; keep them
        # off asyncio's shared default executor.
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="memory-mcp-lock")

    def close(self) -> None:
        """Stop the worker pool; running calls finish first."""
        self._executor.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Targets and snapshots
    # -------------------------------------------------------------------------

    @staticmethod
    def lock_target(path: Path) -> Path:
        """Return path if it exists, else its nearest existing ancestor."""
        candidate = Path(path)
        while not candidate.exists():
            parent = candidate.parent
            if parent == candidate:
                break
            candidate = parent
        return candidate

    @staticmethod
    def snapshot(path: Path) -> int | None:
        """Last-modified time in nanoseconds, or None if absent."""
        try:
            return os.stat(path).st_mtime_ns
        except FileNotFoundError:
            return None

    def lock_file_for(self, target: Path) -> Path:
        digest = hashlib.sha256(os.fsencode(os.path.abspath(target))).hexdigest()[:32]
        return self.lock_dir / f"{digest}.lock"

    def stale_seconds(self, mode: LockMode) -> float:
        return self.write_stale_seconds if mode is LockMode.WRITE else self.read_stale_seconds

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def _acquire(self, lock: LockBackend, target: Path, deadline: float, budget: float) -> None:
        delay = self.backoff_min_seconds
        while not lock.try_acquire():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Lock wait on {target} exceeded {budget:g}s")
                raise LockTimeoutError(self.describe(target), budget)
            time.sleep(min(delay, remaining))
            delay = min(delay * 2, self.backoff_max_seconds)

    @contextmanager
    def hold(self, targets: Iterable[Path], mode: LockMode) -> Iterator[None]:
        """
        Hold exclusive locks on every lock target for the duration of the block.

        Lock files are taken in sorted order so two callers locking the same
        pair can never deadlock. Anything acquired is released on every exit
        path, including a timeout on a later lock.
        """
        budget = self.stale_seconds(mode)
        by_file = {self.lock_file_for(target): target for target in targets}
        deadline = time.monotonic() + budget

        with ExitStack() as stack:
            for lock_file in sorted(by_file):
                lock = make_lock(self.backend, lock_file, budget)
                self._acquire(lock, by_file[lock_file], deadline, budget)
                stack.callback(lock.release)
            yield

    # -------------------------------------------------------------------------
    # Coordinated execution
    # -------------------------------------------------------------------------

    def run(self, target: Path, mode: LockMode, fn: Callable[[], T]) -> T:
        """Run fn under the target's lock; writers are gated on an unchanged snapshot."""
        lock_target = self.lock_target(target)
        before = self.snapshot(target) if mode is LockMode.WRITE else None

        with self.hold([lock_target], mode):
            if mode is LockMode.WRITE and self.snapshot(target) != before:
                raise ConflictError(self.describe(target))
            return fn()

    def run_pair(self, source: Path, destination: Path, fn: Callable[[], T]) -> T:
        """Write-coordinate over two targets; the source snapshot gates the body."""
        targets = [self.lock_target(source), self.lock_target(destination)]
        before = self.snapshot(source)

        with self.hold(targets, LockMode.WRITE):
            if self.snapshot(source) != before:
                raise ConflictError(self.describe(source))
            return fn()

    async def with_coordination(self, target: Path, mode: LockMode, fn: Callable[[], T]) -> T:
        """Async wrapper: blocking lock waits and file I/O run on the coordinator's pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(self.run, target, mode, fn))

    async def with_rename_coordination(
        self, source: Path, destination: Path, fn: Callable[[], T]
    ) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, functools.partial(self.run_pair, source, destination, fn)
        )
