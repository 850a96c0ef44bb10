"""
Resource fetcher with bounded concurrency, optional retries and explicit TLS policy.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError

from ..errors import FetchError


HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    body: Optional[bytes] = None
    final_url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.body is not None

    @property
    def is_html(self) -> bool:
        return any(t in (self.content_type or '') for t in HTML_CONTENT_TYPES)

    def raise_for_error(self):
        """Raise FetchError if the fetch did not produce a usable body."""
        if not self.ok:
            raise FetchError(self.url, self.error or "Empty response", self.status_code)


class WebFetcher:
    """
    Fetches pages and assets over one shared aiohttp session.

    At most ``max_concurrent_requests`` requests are in flight at once.
    Failures are reported on the returned FetchResult rather than raised.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_concurrent_requests: int = 10, allow_insecure_ssl: bool = False,
                 retry_attempts: int = 0, retry_backoff: float = 0.5,
                 max_content_bytes: int = 25 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.allow_insecure_ssl = allow_insecure_ssl
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.max_content_bytes = max_content_bytes

        self.logger = logging.getLogger(__name__)

        # Session management
        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'retried_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent, 'Accept': '*/*'}

            if self.allow_insecure_ssl:
                self.logger.warning(
                    "TLS certificate verification is DISABLED for this job "
                    "(allow_insecure_ssl is set)"
                )

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    limit_per_host=self.max_concurrent_requests,
                    ttl_dns_cache=300,
                    ssl=not self.allow_insecure_ssl
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL, retrying transient failures if configured.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the body bytes or error information
        """
        attempt = 0
        while True:
            result = await self._fetch_once(url)
            if result.ok or attempt >= self.retry_attempts or not self._is_retryable(result):
                break

            delay = self.retry_backoff * (2 ** attempt)
            attempt += 1
            self.stats['retried_requests'] += 1
            self.logger.info(f"Retrying {url} in {delay:.2f}s ({attempt}/{self.retry_attempts}): {result.error}")
            await asyncio.sleep(delay)

        if result.ok:
            self.stats['successful_requests'] += 1
        else:
            self.stats['failed_requests'] += 1
        return result

    @staticmethod
    def _is_retryable(result: FetchResult) -> bool:
        # Network errors carry status 0; 4xx responses will not change on retry
        return result.status_code == 0 or result.status_code >= 500

    async def _fetch_once(self, url: str) -> FetchResult:
        if self.session is None:
            await self.start()

        start_time = time.time()

        async with self.semaphore:
            try:
                self.stats['total_requests'] += 1

                async with self.session.get(url) as response:
                    headers = dict(response.headers)
                    content_type = response.headers.get('content-type', '').lower()

                    if response.status >= 400:
                        self.logger.debug(f"HTTP {response.status} for {url}")
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            final_url=str(response.url),
                            headers=headers,
                            content_type=content_type,
                            error=f"HTTP {response.status}",
                            fetch_time=time.time() - start_time
                        )

                    body = await self._read_content_safely(response)
                    if body is None:
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            final_url=str(response.url),
                            headers=headers,
                            content_type=content_type,
                            error=f"Content exceeds {self.max_content_bytes} bytes",
                            fetch_time=time.time() - start_time
                        )

                    self.stats['total_bytes_downloaded'] += len(body)
                    self.logger.debug(f"Fetched {url}: {response.status} ({len(body)} bytes)")

                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        body=body,
                        final_url=str(response.url),
                        headers=headers,
                        content_type=content_type,
                        encoding=response.charset,
                        fetch_time=time.time() - start_time
                    )

            except asyncio.TimeoutError:
                error_msg = "Request timeout"
                self.logger.debug(f"Timeout fetching {url}")

            except ClientError as e:
                error_msg = f"Client error: {e}"
                self.logger.debug(f"Client error fetching {url}: {e}")

            return FetchResult(
                url=url,
                status_code=0,
                error=error_msg,
                fetch_time=time.time() - start_time
            )

    async def _read_content_safely(self, response) -> Optional[bytes]:
        """
        Read the response body as bytes, giving up past max_content_bytes.

        Returns:
            Body bytes or None if the body is too large
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_bytes:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(65536):
            size += len(chunk)
            if size > self.max_content_bytes:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None
            chunks.append(chunk)

        return b''.join(chunks)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
