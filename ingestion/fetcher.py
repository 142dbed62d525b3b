"""HTML fetching with fallback transports."""
import re
from typing import Iterator, List, Optional, Tuple
from urllib.parse import quote

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from utils.logger import setup_logger
from ingestion.errors import ExtractionError, TransportError
import config

logger = setup_logger(__name__)

FETCH_FAILED = (
    "Could not fetch this URL. The site may be blocking access or require login. "
    "Try copying the text and saving it as a .txt file instead."
)

HEADERS = {
    'User-Agent': config.FETCH_USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

HTML_MARKERS = re.compile(r'<html|<body|<div|<article|<p[\s>]', re.IGNORECASE)


def normalize_url(url: str) -> str:
    """Add https:// to URLs typed without a scheme."""
    url = url.strip()
    if not re.match(r'^https?://', url, re.IGNORECASE):
        url = f"https://{url}"
    return url


def looks_like_html(text: str) -> bool:
    """Check that a payload is a real HTML page, not an error stub."""
    return len(text) > config.MIN_HTML_SIZE and bool(HTML_MARKERS.search(text))


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.retryable


class HTMLFetcher:
    """Fetches page HTML directly, then through fallback proxies."""

    def __init__(
        self,
        proxies: Optional[List[str]] = None,
        direct_timeout: float = config.DIRECT_FETCH_TIMEOUT,
        proxy_timeout: float = config.PROXY_FETCH_TIMEOUT,
        attempts: int = config.FETCH_ATTEMPTS_PER_TRANSPORT,
        backoff: float = config.FETCH_RETRY_BACKOFF,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            proxies: Proxy URL templates containing "{url}"
            direct_timeout: Seconds allowed for the direct fetch
            proxy_timeout: Seconds allowed per proxy fetch
            attempts: Tries per transport for transient failures
            backoff: Base seconds between tries
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.proxies = config.FALLBACK_PROXIES if proxies is None else proxies
        self.direct_timeout = direct_timeout
        self.proxy_timeout = proxy_timeout
        self.attempts = attempts
        self.backoff = backoff
        self.transport = transport

    async def fetch_html(self, url: str) -> str:
        """Fetch raw HTML for a URL.

        Args:
            url: Page URL

        Returns:
            HTML text from the first transport that returns a real page

        Raises:
            ExtractionError: If every transport fails
        """
        async with httpx.AsyncClient(
            headers=HEADERS,
            follow_redirects=True,
            transport=self.transport
        ) as client:
            for name, target, timeout in self._transports(url):
                try:
                    html = await self._fetch_with_retry(client, name, target, timeout)
                    logger.info(f"Fetched {url} via {name} ({len(html)} chars)")
                    return html
                except TransportError as e:
                    logger.warning(f"Fetch failed, trying next transport: {e}")

        raise ExtractionError(FETCH_FAILED)

    def _transports(self, url: str) -> Iterator[Tuple[str, str, float]]:
        yield "direct", url, self.direct_timeout
        for i, template in enumerate(self.proxies, start=1):
            yield f"proxy {i}", template.format(url=quote(url, safe='')), self.proxy_timeout

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        name: str,
        target: str,
        timeout: float
    ) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, max=4),
            retry=retry_if_exception(_is_retryable),
            reraise=True
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(client, name, target, timeout)

    async def _fetch_once(
        self,
        client: httpx.AsyncClient,
        name: str,
        target: str,
        timeout: float
    ) -> str:
        try:
            response = await client.get(target, timeout=timeout)
        except httpx.TimeoutException as e:
            raise TransportError(name, f"timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(name, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            # Client errors will not change on retry
            raise TransportError(
                name,
                f"returned {response.status_code}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        html = response.text
        if not looks_like_html(html):
            raise TransportError(name, "response is not an HTML page", retryable=False)

        return html
