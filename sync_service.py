"""
Background sync service

Keeps cached discovery payloads fresh:
- Periodic triggers always run (unless a sync is already in progress)
- Initial/Resume triggers are skipped within the threshold of the last sync
- Listeners get the finished payloads; failures are logged, never raised
"""

import time
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from discovery import DiscoveryAggregator, DiscoveryCancelled, DiscoveryError
from models import DiscoveryPayload

logger = logging.getLogger(__name__)

PERIODIC = 'Periodic'
RESUME = 'Resume'
INITIAL = 'Initial'
MANUAL = 'Manual'

SYNC_THRESHOLD = 5 * 60  # 5 minutes

CompleteCallback = Callable[[Dict[str, DiscoveryPayload]], None]


class SyncService:
    def __init__(self, aggregators: Sequence[DiscoveryAggregator],
                 threshold: float = SYNC_THRESHOLD,
                 clock: Callable[[], float] = time.time):
        self.aggregators = list(aggregators)
        self.threshold = threshold
        self.clock = clock
        self.last_sync_time: Optional[float] = None
        self._running = False
        self._stopped: Optional[asyncio.Event] = None
        self._listeners: List[CompleteCallback] = []

    def on_complete(self, callback: CompleteCallback):
        """Register a listener for finished syncs (the UI's sync-complete event)."""
        self._listeners.append(callback)
        return callback

    @property
    def is_busy(self) -> bool:
        return self._running or any(a.is_running for a in self.aggregators)

    def should_sync(self, reason: str) -> bool:
        if reason != PERIODIC and self.last_sync_time is not None:
            elapsed = self.clock() - self.last_sync_time
            if elapsed < self.threshold:
                logger.info(f"[Sync] Skipping {reason} sync: last sync was {round(elapsed)}s ago")
                return False
        if self.is_busy:
            logger.info(f"[Sync] Skipping {reason} sync: a sync is already running")
            return False
        return True

    async def trigger(self, reason: str = MANUAL) -> Optional[Dict[str, DiscoveryPayload]]:
        """Run every aggregator once; returns the payloads that completed, or None if skipped."""
        if not self.should_sync(reason):
            return None

        logger.info(f"[Sync] Triggering {reason} sync...")
        self._running = True
        self.last_sync_time = self.clock()
        payloads: Dict[str, DiscoveryPayload] = {}
        try:
            for aggregator in self.aggregators:
                name = aggregator.site.key
                try:
                    payloads[name] = await aggregator.run(
                        lambda task, current, total: logger.debug(f"[Sync] Progress: {task} ({current}/{total})")
                    )
                except (DiscoveryError, DiscoveryCancelled) as e:
                    logger.error(f"[Sync] {reason} sync failed for {name}: {e}")
        finally:
            self._running = False

        if payloads:
            logger.info(f"[Sync] {reason} sync completed: {', '.join(payloads)}")
            for callback in self._listeners:
                try:
                    callback(payloads)
                except Exception as e:
                    logger.error(f"[Sync] Listener {getattr(callback, '__name__', callback)} failed: {e}")
        return payloads

    async def run_periodic(self, interval: Optional[float] = None):
        """Initial sync, then a periodic one every interval seconds until stop()."""
        interval = interval if interval is not None else self.threshold
        self._stopped = asyncio.Event()
        logger.info(f"[Sync] Starting automatic sync service (every {interval}s)")
        await self.trigger(INITIAL)
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except asyncio.TimeoutError:
                await self.trigger(PERIODIC)
        logger.info("[Sync] Automatic sync service stopped")

    def stop(self):
        if self._stopped is not None:
            self._stopped.set()
