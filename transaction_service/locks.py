"""
Per-account mutual exclusion.

A unit of work touching several accounts takes their locks in one global
order (sorted account id), so two transfers moving money in opposite
directions between the same pair can never deadlock.

    with registry.hold(from_id, to_id):
        ...  # read, check and write both accounts
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional


class AccountLockRegistry:
    """Hands out one lock per account id; locks live as long as the registry"""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, *account_ids: Optional[str]) -> Iterator[List[str]]:
        """Acquire the locks of all given (non-empty) ids in sorted order"""
        ordered = sorted({account_id for account_id in account_ids if account_id})
        acquired: List[threading.Lock] = []
        try:
            for account_id in ordered:
                lock = self._lock_for(account_id)
                lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
