"""Exclusion lock contract."""

from abc import ABC, abstractmethod
from typing import Optional


class LockProvider(ABC):
    """Named, string-keyed mutual exclusion that fails fast.

    ``try_acquire`` never waits: a key that is already held reports None
    immediately. Held keys are leases that expire after the provider's TTL,
    and each lease carries a token so only the holder that took it can give
    it back.
    """

    @abstractmethod
    async def try_acquire(self, key: str) -> Optional[str]:
        """Take the lease on ``key``. Returns its owner token, or None if someone else holds it."""

    @abstractmethod
    async def release(self, key: str, token: str) -> None:
        """Give up the lease on ``key`` if ``token`` still owns it.

        Releasing a free key, or a lease since taken over by another holder,
        is a no-op.
        """

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop expired leases and return how many were dropped."""

    async def close(self) -> None:
        """Release any resources held by the provider."""
