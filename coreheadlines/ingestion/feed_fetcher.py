"""
Feed Fetcher
===========

Retrieves raw feed bodies over HTTP with per-feed user agents, bounded
retries on transport failures, and transcoding of legacy single-byte feeds
to UTF-8. One aiohttp session is shared by every feed task of a run.
"""

import asyncio
import re
import ssl
from typing import Dict, Optional

import aiohttp
import certifi

from ..config.settings import FetchSettings, get_settings
from ..database.models import AgentKind, FeedSource
from ..recovery.retry_logic import RetryManager, RetryPolicy, RetryStrategy
from ..utils.exceptions import ErrorCode, FeedFetchError
from ..utils.logging import get_logger_for_component


ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
ACCEPT_LANGUAGE = "en-US,en;q=0.9"

_XML_ENCODING_DECL = re.compile(r'(<\?xml[^>]*?encoding\s*=\s*["\'])[^"\']*(["\'])')


def is_transport_error(exc: BaseException) -> bool:
    """Whether a fetch failure is worth retrying.

    Connection errors and timeouts are; HTTP status errors and our own
    FeedFetchError (non-200 responses) are not.
    """
    if isinstance(exc, asyncio.TimeoutError):
        return True
    return isinstance(exc, aiohttp.ClientError) and not isinstance(
        exc, aiohttp.ClientResponseError
    )


def transcode_to_utf8(body: bytes, encoding: str, feed_header: Optional[str] = None) -> bytes:
    """Re-encode ``body`` from ``encoding`` to UTF-8 and fix its XML declaration."""
    try:
        text = body.decode(encoding)
    except (LookupError, UnicodeDecodeError) as e:
        raise FeedFetchError(
            f"Cannot decode body as {encoding}: {e}",
            feed_header=feed_header,
            error_code=ErrorCode.FEED_ENCODING_ERROR,
        ) from e

    text = _XML_ENCODING_DECL.sub(r"\g<1>UTF-8\g<2>", text, count=1)
    return text.encode("utf-8")


class FeedFetcher:
    """HTTP fetcher for configured feeds."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        retry_manager: Optional[RetryManager] = None,
    ):
        """Initialize feed fetcher.

        Args:
            settings: Fetch settings (default from config)
            session: Externally owned session; created lazily when omitted
            retry_manager: Retry helper (a fresh one when omitted)
        """
        self.settings = settings or get_settings().fetch
        self._session = session
        self._owns_session = session is None
        self.retry_manager = retry_manager or RetryManager()
        self.logger = get_logger_for_component("feed_fetcher")

        self.policy = RetryPolicy(
            max_attempts=self.settings.max_attempts,
            strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
            base_delay=self.settings.backoff_base,
            retry_on=is_transport_error,
        )

    async def __aenter__(self) -> "FeedFetcher":
        self.get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_session(self) -> aiohttp.ClientSession:
        """Return the shared session, creating it on first use."""
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context, limit=50, limit_per_host=5)
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this fetcher created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def user_agent_for(self, agent: AgentKind) -> str:
        if agent == AgentKind.CHROME:
            return self.settings.chrome_user_agent
        if agent == AgentKind.READER:
            return self.settings.reader_user_agent
        return self.settings.bot_user_agent

    def build_headers(self, feed: FeedSource) -> Dict[str, str]:
        """Request headers for ``feed``."""
        headers = {
            "User-Agent": self.user_agent_for(feed.agent),
            "Accept": ACCEPT,
            "Accept-Language": ACCEPT_LANGUAGE,
            "Cache-Control": "no-cache",
        }
        if feed.enhanced_headers:
            headers.update(
                {
                    "Sec-Fetch-Dest": "document",
                    "Sec-Fetch-Mode": "navigate",
                    "Sec-Fetch-Site": "none",
                }
            )
        return headers

    async def fetch(self, feed: FeedSource, logger=None) -> bytes:
        """Fetch the raw body of ``feed``.

        Args:
            feed: Feed to fetch
            logger: Adapter carrying run context (optional)

        Returns:
            Response body, transcoded to UTF-8 when the feed declares a
            legacy encoding

        Raises:
            FeedFetchError: On non-200 status, or once transport retries
                are exhausted
        """
        log = logger or self.logger.bind(feed=feed.header)

        try:
            body = await self.retry_manager.retry_async(
                self._fetch_once,
                feed,
                policy=self.policy,
                operation=f"fetch {feed.header}",
                logger=log,
            )
        except FeedFetchError:
            raise
        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Timed out after {self.settings.max_attempts} attempts",
                feed_header=feed.header,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Request failed: {e}",
                feed_header=feed.header,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        if feed.source_encoding:
            body = transcode_to_utf8(body, feed.source_encoding, feed.header)

        log.debug(f"Fetched {len(body)} bytes from {feed.url}")
        return body

    async def _fetch_once(self, feed: FeedSource) -> bytes:
        session = self.get_session()
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)

        async with session.get(
            feed.url, headers=self.build_headers(feed), timeout=timeout
        ) as response:
            if response.status != 200:
                raise FeedFetchError(
                    f"HTTP {response.status}: {response.reason}",
                    feed_header=feed.header,
                    error_code=ErrorCode.FEED_BAD_STATUS,
                    context={"status": response.status, "url": feed.url},
                )
            return await response.read()
