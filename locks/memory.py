"""In-process exclusion lock with lease expiry."""

import threading
import time
import uuid
from typing import Dict, Optional, Tuple

from .base import LockProvider


class MemoryLockProvider(LockProvider):
    """Per-key lease table guarded by a threading lock.

    A lease older than ``ttl_seconds`` counts as free, so a holder that never
    released cannot wedge its key.
    """

    def __init__(self, ttl_seconds: float = 30) -> None:
        self.ttl_seconds = ttl_seconds
        # key -> (owner token, monotonic expiry)
        self._leases: Dict[str, Tuple[str, float]] = {}
        self._mutex = threading.Lock()

    async def try_acquire(self, key: str) -> Optional[str]:
        now = time.monotonic()
        with self._mutex:
            lease = self._leases.get(key)
            if lease is not None and lease[1] > now:
                return None
            token = uuid.uuid4().hex
            self._leases[key] = (token, now + self.ttl_seconds)
            return token

    async def release(self, key: str, token: str) -> None:
        with self._mutex:
            lease = self._leases.get(key)
            if lease is not None and lease[0] == token:
                del self._leases[key]

    async def purge_expired(self) -> int:
        now = time.monotonic()
        with self._mutex:
            expired = [key for key, (_, expires_at) in self._leases.items() if expires_at <= now]
            for key in expired:
                del self._leases[key]
        return len(expired)

    def is_held(self, key: str) -> bool:
        with self._mutex:
            lease = self._leases.get(key)
            return lease is not None and lease[1] > time.monotonic()
