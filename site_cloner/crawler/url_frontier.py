"""
Per-job crawl state: the job definition, the visited registry, the
layer-by-layer frontier and the record of every file in the mirror.
"""

import logging
import time
from typing import Dict, Set, Optional
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

from .url_classifier import ResourceKind, validate_target_url
from ..errors import InvalidInputError


DEFAULT_MAX_DEPTH = 2


class CrawlPhase(Enum):
    """Lifecycle of a crawl job."""
    SEEDED = "seeded"
    EXPANDING = "expanding"
    DRAINING = "draining"
    DONE = "done"


class FileStatus(Enum):
    """Status of a mirrored file."""
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass(frozen=True)
class CrawlJob:
    """One clone invocation. Immutable once created."""
    target_url: str
    max_depth: int
    output_root: Path

    @property
    def target_host(self) -> str:
        return urlparse(self.target_url).hostname or ''

    @classmethod
    def create(cls, target_url: Optional[str], max_depth: Optional[int] = None,
               output_root='copied-site') -> 'CrawlJob':
        """
        Validate input and build a job.

        Raises:
            InvalidInputError: bad target URL or negative depth
        """
        url = validate_target_url(target_url)
        if max_depth is None:
            max_depth = DEFAULT_MAX_DEPTH
        if max_depth < 0:
            raise InvalidInputError(f"max_depth must be non-negative, got {max_depth}")
        return cls(target_url=url, max_depth=max_depth, output_root=Path(output_root))


@dataclass
class LocalFileRecord:
    """Where one remote URL lives in the mirror."""
    url: str
    kind: ResourceKind
    local_path: str
    status: FileStatus = FileStatus.PENDING
    error: Optional[str] = None
    size: int = 0

    def settle(self, status: FileStatus, error: Optional[str] = None, size: int = 0):
        """Set the terminal status. A settled record is never changed again."""
        if self.status != FileStatus.PENDING:
            raise RuntimeError(f"Record for {self.url} already settled as {self.status.value}")
        self.status = status
        self.error = error
        self.size = size


class VisitedRegistry:
    """
    Append-only set of URLs claimed for fetching during one job.

    ``claim`` checks and inserts without yielding to the event loop, so two
    tasks racing on the same URL cannot both win.
    """

    def __init__(self):
        self._urls: Set[str] = set()

    def claim(self, url: str) -> bool:
        """Return True if ``url`` was not yet visited and is now claimed."""
        if url in self._urls:
            return False
        self._urls.add(url)
        return True

    def __contains__(self, url: str) -> bool:
        return url in self._urls


@dataclass
class CrawlState:
    """Mutable state of a single job, passed through the scheduler."""
    job: CrawlJob
    phase: CrawlPhase = CrawlPhase.SEEDED
    depth: int = 0
    frontier: Set[str] = field(default_factory=set)
    discovered: Set[str] = field(default_factory=set)
    visited: VisitedRegistry = field(default_factory=VisitedRegistry)
    records: Dict[str, LocalFileRecord] = field(default_factory=dict)
    kinds: Dict[str, ResourceKind] = field(default_factory=dict)
    failed: Set[str] = field(default_factory=set)
    start_time: float = field(default_factory=time.time)

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)
        if not self.frontier and self.phase == CrawlPhase.SEEDED:
            self.frontier = {self.job.target_url}
        self.kinds.setdefault(self.job.target_url, ResourceKind.PAGE)

    def claim(self, url: str, kind: ResourceKind, local_path: str) -> Optional[LocalFileRecord]:
        """
        Atomically mark ``url`` visited and create its one record.

        Returns:
            The new record, or None if the URL was already claimed
        """
        if not self.visited.claim(url):
            return None
        record = LocalFileRecord(url=url, kind=kind, local_path=local_path)
        self.records[url] = record
        return record

    def assign_kind(self, url: str, kind: ResourceKind) -> ResourceKind:
        """
        Kind under which ``url`` is mirrored.

        The first kind assigned wins for the rest of the job, so every
        reference to a URL is rewritten to the one file it is stored at.
        """
        return self.kinds.setdefault(url, kind)

    def discover(self, url: str):
        """Add a same-origin page link to the next layer's accumulator."""
        if url not in self.visited:
            self.discovered.add(url)

    def mark_failed(self, url: str) -> bool:
        """Remember a failed URL. Returns True the first time only."""
        if url in self.failed:
            return False
        self.failed.add(url)
        return True

    def advance(self) -> bool:
        """
        Close the current layer and compute the next frontier.

        Returns:
            True if another layer should be processed
        """
        self.phase = CrawlPhase.DRAINING
        next_frontier = {url for url in self.discovered if url not in self.visited}
        self.discovered = set()

        if not next_frontier or self.depth + 1 > self.job.max_depth:
            self.frontier = set()
            self.phase = CrawlPhase.DONE
            if next_frontier:
                self.logger.debug(f"Depth limit {self.job.max_depth} reached, "
                                  f"{len(next_frontier)} links not followed")
            return False

        self.frontier = next_frontier
        self.depth += 1
        return True
