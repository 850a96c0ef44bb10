"""
Crawl-and-rewrite pipeline components.
"""

from .url_classifier import ResourceKind, resolve_url, classify, is_same_origin, validate_target_url
from .path_mapper import map_path, relative_link
from .url_frontier import CrawlJob, CrawlState, CrawlPhase, FileStatus, LocalFileRecord, VisitedRegistry
from .fetcher import WebFetcher, FetchResult
from .rewriter import ContentRewriter, ResourceRef, RewriteResult
from .scheduler import CrawlerScheduler, CrawlReport, CrawlStats

__all__ = [
    'ResourceKind', 'resolve_url', 'classify', 'is_same_origin', 'validate_target_url',
    'map_path', 'relative_link',
    'CrawlJob', 'CrawlState', 'CrawlPhase', 'FileStatus', 'LocalFileRecord', 'VisitedRegistry',
    'WebFetcher', 'FetchResult',
    'ContentRewriter', 'ResourceRef', 'RewriteResult',
    'CrawlerScheduler', 'CrawlReport', 'CrawlStats'
]
