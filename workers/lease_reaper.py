"""Worker that clears expired exclusion lock leases."""

import asyncio
import logging
import traceback
from typing import Optional

from locks import LockProvider, close_lock_provider, get_lock_provider

from .state import WorkerState, WorkerStateError

logger = logging.getLogger(__name__)


class LeaseReaper:
    """Periodically drops expired lock leases.

    Expired leases already count as free when acquiring, so reaping only
    keeps the lease table from growing with keys nobody touches again.
    """

    def __init__(self, lock_provider: LockProvider, interval: float = 60):
        """Initialize the reaper.

        Args:
            lock_provider: Provider whose expired leases get purged
            interval: Seconds between passes
        """
        self.lock_provider = lock_provider
        self.interval = interval
        self._state = WorkerState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> WorkerState:
        return self._state

    def start(self) -> None:
        """Start the reap loop on the running event loop."""
        if self._state is not WorkerState.IDLE:
            raise WorkerStateError('lease reaper', self._state, 'start')
        self._task = asyncio.create_task(self._run())
        self._state = WorkerState.RUNNING
        logger.info(f"Lease reaper started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the reap loop and wait for it to finish."""
        if self._state is WorkerState.STOPPED:
            raise WorkerStateError('lease reaper', self._state, 'stop')

        task, self._task = self._task, None
        self._state = WorkerState.STOPPED
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Lease reaper stopped")

    async def reap_once(self) -> int:
        """Run a single pass and return how many leases were purged."""
        purged = await self.lock_provider.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired lock leases")
        return purged

    async def _run(self) -> None:
        while True:
            try:
                await self.reap_once()
            except Exception as e:
                logger.error(f"Error in lease reaper loop: {str(e)}")
                logger.error(traceback.format_exc())
            await asyncio.sleep(self.interval)


async def run_worker():
    """Run the reaper standalone until interrupted."""
    from config import settings_conf

    reaper = LeaseReaper(await get_lock_provider(), settings_conf['lease_reap_interval'])
    reaper.start()
    try:
        await asyncio.Event().wait()
    finally:
        await reaper.stop()
        await close_lock_provider()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Lease reaper shutting down")
