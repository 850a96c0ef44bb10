"""
End-to-end clone job: crawl the target into a mirror, then zip it.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .crawler.scheduler import CrawlerScheduler, CrawlReport
from .crawler.url_frontier import CrawlJob
from .crawler.fetcher import WebFetcher
from .storage.archive import ArchivePackager
from .utils.config import Config
from .utils.monitoring import CrawlerMonitor

logger = logging.getLogger(__name__)


@dataclass
class CloneResult:
    """Crawl report plus the archive built from the mirror, if any."""
    report: CrawlReport
    archive_path: Optional[Path] = None


async def clone_site(job: CrawlJob, config: Config,
                     archive_path: Optional[Union[str, Path]] = None,
                     fetcher: Optional[WebFetcher] = None,
                     monitor: Optional[CrawlerMonitor] = None) -> CloneResult:
    """
    Mirror ``job.target_url`` under ``job.output_root`` and package it.

    The scheduler returns only once every layer has settled, so packaging
    never sees a partially written tree. Only files saved by this job are
    archived, whatever else the output root holds. Zipping runs in the
    default executor. With ``archive_path`` None the mirror is left on disk
    and no archive is built.

    Raises:
        ClonerError: root page, filesystem or packaging failure
    """
    scheduler = CrawlerScheduler(config, fetcher=fetcher, monitor=monitor)
    report = await scheduler.run(job)

    if archive_path is None:
        return CloneResult(report=report)

    packager = ArchivePackager(compression_level=config.output.compression_level)
    loop = asyncio.get_running_loop()
    archive = await loop.run_in_executor(
        None, packager.package, job.output_root, archive_path, report.saved_paths
    )
    logger.info(f"Clone of {job.target_url} packaged as {archive}")
    return CloneResult(report=report, archive_path=archive)
