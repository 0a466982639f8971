"""
Concurrency management for the enrollment service.

Commands touching the same course or enrollment are serialized in-process by
named locks. This narrows races inside one process only; across processes the
database constraints, the checked insert and the versioned save in
``EnrollmentRepository`` keep the data consistent. A stale save surfaces as
``ConcurrencyError`` and is retried against freshly loaded state.
"""

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """Information about a held lock."""
    lock_id: str
    resource_id: str
    holder_id: str
    acquired_at: float


class ConcurrencyManager:
    """Hands out per-resource locks and retries work that lost a lock race."""

    def __init__(self, lock_timeout: float = 5.0):
        self._lock_timeout = lock_timeout
        self._resource_locks: Dict[str, threading.Lock] = {}
        self._resource_users: Dict[str, int] = {}
        self._lock_holders: Dict[str, LockInfo] = {}
        self._lock = threading.RLock()
        self._stats = {'acquired': 0, 'timeouts': 0, 'retries': 0}

    def _checkout(self, resource_id: str) -> threading.Lock:
        """Get the resource's lock, counting the caller as a user until checked in."""
        with self._lock:
            if resource_id not in self._resource_locks:
                self._resource_locks[resource_id] = threading.Lock()
                self._resource_users[resource_id] = 0
            self._resource_users[resource_id] += 1
            return self._resource_locks[resource_id]

    def _checkin(self, resource_id: str) -> None:
        # Caller holds self._lock
        self._resource_users[resource_id] -= 1
        if not self._resource_users[resource_id]:
            del self._resource_users[resource_id]
            del self._resource_locks[resource_id]

    def acquire_lock(self, resource_id: str, holder_id: Optional[str] = None,
                     timeout: Optional[float] = None) -> str:
        """Acquire a lock on a resource, waiting at most ``timeout`` seconds."""
        wait = self._lock_timeout if timeout is None else timeout
        if not self._checkout(resource_id).acquire(timeout=wait):
            with self._lock:
                self._checkin(resource_id)
                self._stats['timeouts'] += 1
            raise ConcurrencyError(
                f"Timeout acquiring lock on {resource_id}",
                details={'resource_id': resource_id, 'timeout': wait}
            )

        lock_id = str(uuid.uuid4())
        with self._lock:
            self._lock_holders[lock_id] = LockInfo(
                lock_id=lock_id,
                resource_id=resource_id,
                holder_id=holder_id or f"thread_{threading.get_ident()}",
                acquired_at=time.time()
            )
            self._stats['acquired'] += 1
        return lock_id

    def release_lock(self, lock_id: str) -> bool:
        """Release a lock, dropping the resource entry once nobody holds or waits on it."""
        with self._lock:
            lock_info = self._lock_holders.pop(lock_id, None)
            if lock_info is None:
                return False
            self._resource_locks[lock_info.resource_id].release()
            self._checkin(lock_info.resource_id)
            return True

    @contextmanager
    def lock(self, resource_id: str, holder_id: Optional[str] = None,
             timeout: Optional[float] = None):
        """Context manager for acquiring and releasing locks."""
        lock_id = self.acquire_lock(resource_id, holder_id, timeout)
        try:
            yield lock_id
        finally:
            self.release_lock(lock_id)

    def execute_with_retry(self, func: Callable[[], Any], max_retries: int = 3,
                           backoff_factor: float = 0.05) -> Any:
        """Run ``func``, retrying only when it fails with ConcurrencyError."""
        for attempt in range(max_retries + 1):
            try:
                return func()
            except ConcurrencyError:
                if attempt >= max_retries:
                    raise
                with self._lock:
                    self._stats['retries'] += 1
                delay = backoff_factor * (2 ** attempt)
                logger.warning("Concurrency conflict, retrying in %.2fs (attempt %d/%d)",
                               delay, attempt + 1, max_retries)
                time.sleep(delay)

    def get_lock_info(self, resource_id: str) -> List[LockInfo]:
        """Get information about the locks held on a resource."""
        with self._lock:
            return [info for info in self._lock_holders.values() if info.resource_id == resource_id]

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            stats['held_locks'] = len(self._lock_holders)
            stats['tracked_resources'] = len(self._resource_locks)
            return stats
