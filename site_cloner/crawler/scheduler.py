"""
Crawl scheduler that drives a clone job layer by layer.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from .url_frontier import CrawlJob, CrawlPhase, CrawlState, FileStatus, LocalFileRecord
from .url_classifier import ResourceKind
from .path_mapper import map_path
from .fetcher import WebFetcher, FetchResult
from .rewriter import ContentRewriter, ResourceRef
from ..errors import FetchError, ParseError
from ..storage.mirror_store import MirrorStore
from ..utils.config import Config
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


@dataclass
class CrawlStats:
    """Statistics for one clone job."""
    start_time: float
    pages_saved: int = 0
    assets_saved: int = 0
    failures: int = 0
    bytes_written: int = 0
    deepest_layer: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


@dataclass
class CrawlReport:
    """Outcome of a finished crawl."""
    job: CrawlJob
    stats: CrawlStats
    records: Dict[str, LocalFileRecord] = field(default_factory=dict)

    @property
    def failed_urls(self) -> List[str]:
        return sorted(url for url, r in self.records.items() if r.status == FileStatus.FAILED)

    @property
    def saved_paths(self) -> List[str]:
        return sorted(r.local_path for r in self.records.values()
                      if r.status == FileStatus.DOWNLOADED)


class CrawlerScheduler:
    """
    Runs the crawl-and-rewrite pipeline for a job.

    Each depth layer is processed concurrently: every frontier page is
    fetched, rewritten and persisted together with its assets. The next
    layer starts only after every task of the current one has settled.
    Failures of single resources are logged once and skipped; failure of
    the root page, or any filesystem error, aborts the job.
    """

    def __init__(self, config: Config, fetcher: Optional[WebFetcher] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.fetcher = fetcher
        self.monitor = monitor or CrawlerMonitor()
        self._owns_fetcher = fetcher is None

    def _build_fetcher(self) -> WebFetcher:
        crawler = self.config.crawler
        return WebFetcher(
            user_agent=crawler.user_agent,
            request_timeout=crawler.request_timeout,
            max_concurrent_requests=crawler.max_concurrent_requests,
            allow_insecure_ssl=crawler.allow_insecure_ssl,
            retry_attempts=crawler.retry_attempts,
            retry_backoff=crawler.retry_backoff,
            max_content_bytes=crawler.max_content_bytes
        )

    async def run(self, job: CrawlJob) -> CrawlReport:
        """
        Crawl ``job`` until the frontier empties or the depth budget runs out.

        Returns only after every write of the last layer has completed.

        Raises:
            FetchError: the root page could not be fetched
            ParseError: the root page could not be parsed
            FilesystemError: the mirror could not be written
        """
        state = CrawlState(job=job)
        stats = CrawlStats(start_time=state.start_time)
        store = MirrorStore(job.output_root)
        rewriter = ContentRewriter(job.target_host, assign_kind=state.assign_kind)
        log = get_crawler_logger(__name__, job=job.target_url)

        await store.initialize()

        if self.fetcher is None:
            self.fetcher = self._build_fetcher()
        await self.fetcher.start()

        log.info(f"Cloning {job.target_url} (max depth {job.max_depth}) into {job.output_root}")

        try:
            while True:
                state.phase = CrawlPhase.EXPANDING
                stats.deepest_layer = state.depth
                self.monitor.update_layer(state.depth, len(state.frontier))
                log.info(f"Depth {state.depth}: {len(state.frontier)} pages")

                results = await asyncio.gather(
                    *(self._process_page(url, state, store, rewriter, stats, log)
                      for url in sorted(state.frontier)),
                    return_exceptions=True
                )
                self._raise_first_error(results)

                if not state.advance():
                    break
        finally:
            log.debug(f"Fetcher stats: {self.fetcher.get_stats()}")
            if self._owns_fetcher:
                await self.fetcher.close()
                self.fetcher = None

        self._log_final_stats(stats, log)
        return CrawlReport(job=job, stats=stats, records=dict(state.records))

    async def _process_page(self, url: str, state: CrawlState, store: MirrorStore,
                            rewriter: ContentRewriter, stats: CrawlStats,
                            log: CrawlerLogAdapter):
        """Fetch, rewrite and persist one page, then queue its same-origin links."""
        record = state.claim(url, ResourceKind.PAGE, map_path(url, ResourceKind.PAGE))
        if record is None:
            return

        is_root = url == state.job.target_url
        try:
            result = await self.fetcher.fetch(url)
            result.raise_for_error()

            if not result.is_html:
                log.debug(f"Page {url} is {result.content_type or 'untyped'}, storing as-is")
                await self._persist(record, result.body, result, store, stats)
                stats.pages_saved += 1
                return

            rewritten = rewriter.rewrite(result.body, url,
                                         base_url=result.final_url or url,
                                         encoding=result.encoding)
        except (FetchError, ParseError) as e:
            self._record_failure(record, e, state, stats, log)
            if is_root:
                raise
            return

        asset_results = await asyncio.gather(
            *(self._process_asset(ref, state, store, stats, log) for ref in rewritten.assets),
            return_exceptions=True
        )
        self._raise_first_error(asset_results)

        await self._persist(record, rewritten.html.encode('utf-8'), result, store, stats)
        stats.pages_saved += 1

        for link in rewritten.links:
            state.discover(link.url)

        log.debug(f"Saved page {url} -> {record.local_path} "
                  f"({len(rewritten.assets)} assets, {len(rewritten.links)} links)")

    async def _process_asset(self, ref: ResourceRef, state: CrawlState, store: MirrorStore,
                             stats: CrawlStats, log: CrawlerLogAdapter):
        """Download one asset byte-for-byte, regardless of the referring page's depth."""
        record = state.claim(ref.url, ref.kind, map_path(ref.url, ref.kind))
        if record is None:
            return

        try:
            result = await self.fetcher.fetch(ref.url)
            result.raise_for_error()
        except FetchError as e:
            self._record_failure(record, e, state, stats, log)
            return

        await self._persist(record, result.body, result, store, stats)
        stats.assets_saved += 1

    async def _persist(self, record: LocalFileRecord, data: bytes, result: FetchResult,
                       store: MirrorStore, stats: CrawlStats):
        await store.write(record.local_path, data)
        record.settle(FileStatus.DOWNLOADED, size=len(data))
        stats.bytes_written += len(data)
        self.monitor.record_fetched(record.kind.value, len(data), result.fetch_time)

    def _record_failure(self, record: LocalFileRecord, error: Exception, state: CrawlState,
                        stats: CrawlStats, log: CrawlerLogAdapter):
        record.settle(FileStatus.FAILED, error=str(error))
        stats.failures += 1
        self.monitor.record_failure(record.kind.value, type(error).__name__)
        if state.mark_failed(record.url):
            log.resource_event(logging.WARNING, record.url, record.kind.value,
                               f"Skipping {record.kind.value} {record.url}: {error}")

    @staticmethod
    def _raise_first_error(results: list):
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _log_final_stats(self, stats: CrawlStats, log: CrawlerLogAdapter):
        log.info("=== CRAWL COMPLETED ===")
        log.info(f"Pages saved: {stats.pages_saved}")
        log.info(f"Assets saved: {stats.assets_saved}")
        log.info(f"Failures: {stats.failures}")
        log.info(f"Deepest layer: {stats.deepest_layer}")
        log.info(f"Data written: {stats.bytes_written / 1024 / 1024:.2f} MB")
        log.info(f"Total time: {stats.elapsed_time:.2f} seconds")
