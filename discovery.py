"""
Discovery aggregator

Runs every category of a site (home sections, ranked and paginated listings)
and folds the results into one DiscoveryPayload.

State machine: Idle -> Running -> Completed | Failed | Cancelled

- A category that fails to fetch or parse yields empty buckets; the run only
  fails when every bucket is empty.
- Paginated categories stop as soon as a page returns fewer records than the
  threshold; the unused page budget is credited to the progress counter.
- Results are merged in declared category order even when pages are fetched
  concurrently, so first-populated-field-wins stays deterministic.
- On Completed the payload replaces the site's cache entry wholesale.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from client import SourceClient
from document import ParseError
from fetcher import FetchError
from models import DiscoveryPayload, NormalizedRecord, SyncState, SyncStatus
from sites import Category

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]
CategoryResult = Dict[str, List[NormalizedRecord]]


class DiscoveryError(Exception):
    """Every category came back empty."""


class DiscoveryCancelled(Exception):
    """The run was cancelled between page fetches."""


class DiscoveryAggregator:
    def __init__(self, client: SourceClient, cache=None,
                 bucket_caps: Optional[Dict[str, int]] = None,
                 concurrency: int = 1,
                 on_progress: Optional[ProgressCallback] = None):
        self.client = client
        self.cache = cache
        self.bucket_caps = dict(client.site.bucket_caps)
        self.bucket_caps.update(bucket_caps or {})
        self.concurrency = max(1, concurrency)
        self.on_progress = on_progress
        self.state = SyncState()
        self._cancelled = False

    @property
    def site(self):
        return self.client.site

    @property
    def is_running(self) -> bool:
        return self.state.status == SyncStatus.RUNNING

    def cancel(self):
        """Request cooperative cancellation; honoured before the next page fetch,
        including by a run that has not started yet."""
        if self.is_running:
            logger.info(f"[Discovery] Cancellation requested for {self.site.name}")
        self._cancelled = True

    # === Progress ===

    def _report(self, task: str, advance: int = 1):
        self.state.current_task = task
        self.state.completed_count = min(self.state.completed_count + advance, self.state.total_count)
        if self.on_progress is not None:
            self.on_progress(task, self.state.completed_count, self.state.total_count)

    # === Per-category work ===

    def _page_threshold(self, category: Category) -> int:
        if category.min_page_records is not None:
            return category.min_page_records
        return self.site.page_size

    async def _collect(self, category: Category, semaphore: asyncio.Semaphore) -> CategoryResult:
        """All pages of one category. Errors end the category, never the run."""
        collected: CategoryResult = {bucket: [] for bucket in category.buckets}
        budget = category.page_budget

        for page in range(1, budget + 1):
            stop = False
            async with semaphore:
                if self._cancelled:
                    break
                try:
                    results = await self.client.fetch_category_page(category, page)
                except (FetchError, ParseError) as e:
                    logger.warning(f"[Discovery] {category.task} page {page}: {e}")
                    results = {}
                    stop = True
                except Exception as e:
                    logger.warning(f"[Discovery] {category.task} page {page} failed unexpectedly: {e}")
                    results = {}
                    stop = True

            count = 0
            for bucket, records in results.items():
                collected.setdefault(bucket, []).extend(records)
                count = max(count, len(records))

            if category.paginated and count < self._page_threshold(category):
                stop = True
            if stop and page < budget:
                logger.debug(f"[Discovery] {category.task}: stopping after page {page} ({count} records)")
                self._report(category.task, advance=budget - page + 1)
                break
            self._report(category.task)

        logger.info(f"[Discovery] {category.task}: " +
                    ', '.join(f"{b}={len(r)}" for b, r in collected.items()))
        return collected

    def _merge(self, results: List[CategoryResult]) -> DiscoveryPayload:
        payload = DiscoveryPayload()
        for bucket in self.site.buckets:
            payload.bucket(bucket)
        for category, result in zip(self.site.categories, results):
            for bucket, records in result.items():
                payload.bucket(bucket).extend(records)
            if category.ranked:
                for bucket in category.buckets:
                    payload.bucket(bucket).sort_by_rank()
        for bucket, cap in self.bucket_caps.items():
            if bucket in payload.buckets:
                payload.buckets[bucket].truncate(cap)
        return payload

    # === Run ===

    async def run(self, on_progress: Optional[ProgressCallback] = None) -> DiscoveryPayload:
        """One discovery sync. Raises DiscoveryError or DiscoveryCancelled."""
        if on_progress is not None:
            self.on_progress = on_progress
        categories = self.site.categories
        self.state = SyncState(
            status=SyncStatus.RUNNING,
            current_task='Starting',
            total_count=sum(c.page_budget for c in categories),
        )
        logger.info(f"[Discovery] Sync started for {self.site.name}: "
                    f"{len(categories)} categories, {self.state.total_count} pages")

        semaphore = asyncio.Semaphore(self.concurrency)
        try:
            results = await asyncio.gather(*(self._collect(c, semaphore) for c in categories))
            cancelled = self._cancelled
        finally:
            # A cancel() issued before or during this run is consumed by it
            self._cancelled = False

        if cancelled:
            self.state.status = SyncStatus.CANCELLED
            self.state.error = 'cancelled'
            logger.info(f"[Discovery] Sync cancelled for {self.site.name}")
            raise DiscoveryCancelled(f"Discovery sync for {self.site.name} was cancelled")

        payload = self._merge(results)

        if payload.is_empty():
            self.state.status = SyncStatus.FAILED
            self.state.error = f"No content could be extracted from {self.site.name}"
            logger.warning(f"[Discovery] {self.state.error}")
            raise DiscoveryError(self.state.error)

        self.state.status = SyncStatus.COMPLETED
        self.state.current_task = 'Done'
        if self.cache is not None and self.site.cache_key:
            self.cache.set(self.site.cache_key, payload.to_dict())
        logger.info(f"[Discovery] Sync completed for {self.site.name}: " +
                    ', '.join(f"{name}={len(b)}" for name, b in payload.buckets.items()))
        return payload

    def load_cached(self) -> Optional[DiscoveryPayload]:
        if self.cache is None or not self.site.cache_key:
            return None
        data = self.cache.get(self.site.cache_key)
        if not isinstance(data, dict):
            return None
        return DiscoveryPayload.from_dict(data)
