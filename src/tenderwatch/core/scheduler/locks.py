"""
Run lock management for overlap protection.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from tenderwatch.core.models import utcnow


@dataclass(frozen=True)
class RunLock:
    lock_name: str
    holder_id: str
    acquired_at: datetime


class RunLockRegistry:
    """In-process registry of named run locks.

    Methods never await, so acquire/release are atomic on the event loop.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or utcnow
        self._locks: dict[str, RunLock] = {}

    def acquire(self, lock_name: str, holder_id: str) -> bool:
        """Acquire lock. Returns True if acquired, False if held by another."""
        lock = self._locks.get(lock_name)
        if lock is not None and lock.holder_id != holder_id:
            return False

        self._locks[lock_name] = RunLock(
            lock_name=lock_name,
            holder_id=holder_id,
            acquired_at=self._clock(),
        )
        return True

    def release(self, lock_name: str, holder_id: str) -> bool:
        """Release lock. Returns True if released, False if not held by us."""
        lock = self._locks.get(lock_name)
        if lock is None or lock.holder_id != holder_id:
            return False

        del self._locks[lock_name]
        return True

    def is_locked(self, lock_name: str) -> bool:
        return lock_name in self._locks

    def holder(self, lock_name: str) -> str | None:
        lock = self._locks.get(lock_name)
        return lock.holder_id if lock else None
