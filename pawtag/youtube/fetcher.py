"""
Metadata fetching for pawtag.

Resolves remote ids to MetadataRecords, consulting the cache first and
falling back through the fetch tiers for everything that is missing.

Tiers (per id, first success wins):
    android+cookies -> tvhtml5+cookies -> web+cookies -> android -> web

    Without a cookie source the credentialed tiers run anonymously and
    collapse onto their anonymous twins: android -> tvhtml5 -> web.

Modes:
    per-id  One yt-dlp process per (id, tier), ids spread over a thread
            pool. Robust: one bad id cannot affect another.
    batch   One yt-dlp process per tier covering every id still missing.
            Far fewer process starts on large playlists; ids the tier did
            not return move on to the next tier.

Failures are per id and never abort the run: the id is logged, counted,
and left out of the result.

Usage:
    fetcher = MetadataFetcher(retriever, cache, workers=8)
    records = fetcher.fetch_many(["abc123", "def456"])
    print(fetcher.last_stats.fetched, fetcher.last_stats.failed)
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable

from pawtag.core.cache import MetadataCache
from pawtag.core.config import FETCH_MODES
from pawtag.core.exceptions import FetchError, RetrievalError
from pawtag.core.logger import get_logger
from pawtag.core.progress import FetchProgressBar
from pawtag.youtube.models import FETCH_TIERS, AccessTier, MetadataRecord, effective_tiers
from pawtag.youtube.retriever import Retriever

logger = get_logger(__name__)


DEFAULT_WORKERS = 8


@dataclass
class FetchStats:
    """
    Statistics from one fetch_many() call.

    Attributes:
        requested: Unique ids asked for.
        cached: Ids answered from the cache.
        fetched: Ids fetched from the remote platform.
        failed_ids: Ids that failed on every tier.
    """

    requested: int = 0
    cached: int = 0
    fetched: int = 0
    failed_ids: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_ids)


class MetadataFetcher:
    """
    Tiered, concurrent metadata retrieval backed by the cache.

    Attributes:
        retriever: Retriever used for every call.
        cache: Cache consulted before and filled after fetching.
        workers: Default thread pool size (per-id mode).
        mode: "per-id" or "batch".
        show_progress: Draw a progress bar while fetching.
        last_stats: Statistics of the most recent fetch_many() call.

    Thread Safety:
        fetch_one() runs in worker threads; it only touches the retriever
        (stateless) and the cache (locked).
    """

    def __init__(
        self,
        retriever: Retriever,
        cache: MetadataCache,
        workers: int = DEFAULT_WORKERS,
        mode: str = "per-id",
        tiers: tuple[AccessTier, ...] = FETCH_TIERS,
        show_progress: bool = True
    ) -> None:
        if mode not in FETCH_MODES:
            raise ValueError(f"Unknown fetch mode: {mode}")
        self.retriever = retriever
        self.cache = cache
        self.workers = workers
        self.mode = mode
        self.tiers = effective_tiers(tiers, retriever.has_credentials)
        self.show_progress = show_progress
        self.last_stats = FetchStats()

    def fetch_one(self, remote_id: str) -> MetadataRecord:
        """
        Fetch one id through the tiers and store it in the cache.

        Raises:
            FetchError: If every tier failed.
        """
        failures: dict[str, str] = {}
        for tier in self.tiers:
            try:
                info = self.retriever.fetch_one(remote_id, tier)
            except RetrievalError as e:
                logger.debug(f"{remote_id}: tier {tier.label} failed: {e.message}")
                failures[tier.label] = e.message
                continue

            record = MetadataRecord.from_info(info)
            self.cache.put(remote_id, record)
            logger.debug(f"{remote_id}: fetched via {tier.label}")
            return record

        raise FetchError(
            f"All {len(failures)} tiers failed for {remote_id}",
            details={"remote_id": remote_id, "tiers": failures}
        )

    def fetch_many(
        self,
        remote_ids: Iterable[str],
        concurrency_limit: int | None = None
    ) -> dict[str, MetadataRecord]:
        """
        Resolve many ids, cache first.

        Args:
            remote_ids: Ids to resolve (duplicates are ignored).
            concurrency_limit: Override the worker count for this call.

        Returns:
            id -> record for every id that is cached or was fetched.
            Ids that failed on every tier are absent.

        Behavior:
            1. Answer cached ids without any retrieval call
            2. Fetch the misses in the configured mode
            3. Record statistics in last_stats
        """
        unique_ids = list(dict.fromkeys(remote_ids))
        stats = FetchStats(requested=len(unique_ids))
        self.last_stats = stats

        results: dict[str, MetadataRecord] = {}
        misses: list[str] = []
        for remote_id in unique_ids:
            record = self.cache.get(remote_id)
            if record is not None:
                results[remote_id] = record
            else:
                misses.append(remote_id)
        stats.cached = len(results)

        if not misses:
            logger.info(f"All {len(unique_ids)} items already cached")
            return results

        logger.info(f"Fetching metadata for {len(misses)} items ({stats.cached} cached, {self.mode} mode)")

        if self.mode == "batch":
            fetched = self._fetch_batch(misses)
        else:
            workers = concurrency_limit if concurrency_limit is not None else self.workers
            fetched = self._fetch_per_id(misses, max(1, workers))

        results.update(fetched)
        stats.fetched = len(fetched)
        stats.failed_ids = [remote_id for remote_id in misses if remote_id not in fetched]

        logger.info(
            f"Fetch complete: {stats.fetched}/{len(misses)} fetched, {stats.failed} failed"
        )
        return results

    def _fetch_per_id(self, remote_ids: list[str], workers: int) -> dict[str, MetadataRecord]:
        fetched: dict[str, MetadataRecord] = {}

        with FetchProgressBar(total=len(remote_ids), enabled=self.show_progress) as progress:
            executor = ThreadPoolExecutor(max_workers=min(workers, len(remote_ids)))
            try:
                future_to_id = {
                    executor.submit(self.fetch_one, remote_id): remote_id
                    for remote_id in remote_ids
                }

                for future in as_completed(future_to_id):
                    remote_id = future_to_id[future]
                    try:
                        fetched[remote_id] = future.result()
                        progress.update(success=True)
                    except FetchError as e:
                        progress.update(success=False)
                        logger.warning(f"{remote_id}: {e.message}")
                    except Exception as e:
                        progress.update(success=False)
                        logger.error(f"Unexpected error fetching {remote_id}: {e}")
            except KeyboardInterrupt:
                # Drop queued ids; running processes finish on their own timeout
                executor.shutdown(wait=False, cancel_futures=True)
                raise
            else:
                executor.shutdown(wait=True)

        return fetched

    def _fetch_batch(self, remote_ids: list[str]) -> dict[str, MetadataRecord]:
        fetched: dict[str, MetadataRecord] = {}
        remaining = list(remote_ids)

        with FetchProgressBar(total=len(remote_ids), enabled=self.show_progress) as progress:
            for tier in self.tiers:
                if not remaining:
                    break
                try:
                    documents = self.retriever.fetch_batch(remaining, tier)
                except RetrievalError as e:
                    logger.warning(f"Batch tier {tier.label} failed: {e.message}")
                    continue

                wanted = set(remaining)
                resolved = 0
                for info in documents:
                    remote_id = info.get("id")
                    if remote_id not in wanted or remote_id in fetched:
                        continue
                    record = MetadataRecord.from_info(info)
                    self.cache.put(remote_id, record)
                    fetched[remote_id] = record
                    resolved += 1

                remaining = [remote_id for remote_id in remaining if remote_id not in fetched]
                if resolved:
                    progress.update(success=True, count=resolved)
                logger.debug(f"Batch tier {tier.label}: {resolved} resolved, {len(remaining)} remaining")

            if remaining:
                progress.update(success=False, count=len(remaining))
                for remote_id in remaining:
                    logger.warning(f"{remote_id}: all batch tiers failed")

        return fetched
