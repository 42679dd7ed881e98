"""
Web page fetcher: follows redirects, reports the final URL and content type,
and turns transport failures into FetchResult errors.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError


HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    final_url: Optional[str] = None
    content: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        content_type = (self.content_type or '').lower()
        return any(html_type in content_type for html_type in HTML_CONTENT_TYPES)


class WebFetcher:
    """
    Fetches web pages with a bounded number of in-flight requests.
    """

    def __init__(self, user_agent: str, request_timeout: float = 30,
                 max_concurrent_requests: int = 4, max_content_bytes: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_bytes = max_content_bytes

        self.logger = logging.getLogger(__name__)

        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'non_html_responses': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                    use_dns_cache=True
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
        Fetch a single URL, following redirects.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the final URL, status, content type and body.
            The body is only read for successful HTML responses. Transport
            failures are reported through ``error``, never raised.
        """
        if self.session is None:
            await self.start()

        start_time = time.time()

        async with self.semaphore:
            try:
                self.stats['total_requests'] += 1

                async with self.session.get(url, allow_redirects=True) as response:
                    headers = dict(response.headers)
                    content_type = response.headers.get('content-type', '').lower()
                    result = FetchResult(
                        url=url,
                        final_url=str(response.url),
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        encoding=response.charset,
                    )

                    if not result.ok or not result.is_html:
                        if result.ok:
                            self.stats['non_html_responses'] += 1
                            self.logger.debug(f"Skipping non-HTML content: {url} ({content_type})")
                        result.fetch_time = time.time() - start_time
                        return result

                    result.content = await self._read_content_safely(response)
                    result.fetch_time = time.time() - start_time
                    if result.content is None:
                        result.error = f"Content larger than {self.max_content_bytes} bytes"
                        self.stats['failed_requests'] += 1
                        return result

                    self.stats['total_bytes_downloaded'] += len(result.content)
                    self.stats['successful_requests'] += 1
                    self.logger.debug(f"Fetched {url}: {response.status} ({len(result.content)} chars)")
                    return result

            except asyncio.TimeoutError:
                self.stats['failed_requests'] += 1
                error_msg = "Request timeout"
                self.logger.warning(f"Timeout fetching {url}")

            except ClientError as e:
                self.stats['failed_requests'] += 1
                error_msg = f"Client error: {str(e) or type(e).__name__}"
                self.logger.warning(f"Client error fetching {url}: {e}")

            except ValueError as e:
                # yarl rejects some URLs before any request is made
                self.stats['failed_requests'] += 1
                error_msg = f"Invalid URL: {e}"
                self.logger.warning(f"Invalid URL {url}: {e}")

            except Exception as e:
                self.stats['failed_requests'] += 1
                error_msg = f"Unexpected error: {str(e) or type(e).__name__}"
                self.logger.error(f"Unexpected error fetching {url}: {e}")

            return FetchResult(
                url=url,
                status_code=0,
                error=error_msg,
                fetch_time=time.time() - start_time
            )

    async def _read_content_safely(self, response) -> Optional[str]:
        """
        Read the response body with a size limit.

        Returns:
            Decoded content, or None when the body exceeds ``max_content_bytes``
        """
        max_size = self.max_content_bytes
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(8192):
            size += len(chunk)
            if size > max_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None
            chunks.append(chunk)
        content_bytes = b''.join(chunks)

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['utf-8', 'cp1252']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            return content_bytes.decode('latin-1')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
