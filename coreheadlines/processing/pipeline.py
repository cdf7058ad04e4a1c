"""
Headlines Pipeline Orchestrator
==============================

Runs one ingestion cycle: every configured feed is fetched, parsed and
checked against the publication tracker concurrently, the new articles are
merged in configuration order with duplicates removed, delivered as one
digest, and finally marked as published.

Per-feed and per-article failures stay inside their slot; only delivery,
incomplete delivery settings and publication-write failures propagate to the
caller.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from ..config.feeds import FEEDS
from ..config.settings import CoreHeadlinesSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Article, FeedSource
from ..delivery.digest_formatter import format_snippet
from ..delivery.email_sender import EmailDigestSink
from ..enrichment.economics import EconomicsClient
from ..ingestion.feed_fetcher import FeedFetcher
from ..ingestion.feed_parser import FeedParser
from ..recovery.retry_logic import RetryManager, RetryPolicy, RetryStrategy
from ..storage.publication_store import PublicationStore
from ..storage.publication_tracker import PublicationTracker
from ..utils.exceptions import (
    ConfigurationError,
    DeliveryError,
    EmptyFeedError,
    ErrorCode,
    FeedError,
    FeedFetchError,
    StoreQueryError,
)
from ..utils.logging import PerformanceLogger, get_logger_for_component


class DigestSink(Protocol):
    """Anything that can deliver an ordered list of rendered snippets."""

    async def send(self, snippets: List[str]) -> None:
        ...


@dataclass
class FeedResult:
    """Outcome of one feed task. Written only by the task owning the slot."""
    feed: FeedSource
    articles: List[Article] = field(default_factory=list)
    snippets: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """Result of one pipeline run."""
    run_id: str
    feed_results: List[FeedResult]
    articles: List[Article] = field(default_factory=list)
    delivered: bool = False
    duration_seconds: float = 0.0

    @property
    def failed_feeds(self) -> List[FeedResult]:
        return [result for result in self.feed_results if not result.succeeded]

    @property
    def successful_feeds(self) -> int:
        return len(self.feed_results) - len(self.failed_feeds)


class HeadlinesPipeline:
    """Complete ingestion and delivery orchestrator."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        parser: FeedParser,
        tracker: PublicationTracker,
        sink: DigestSink,
        settings: Optional[CoreHeadlinesSettings] = None,
        retry_manager: Optional[RetryManager] = None,
    ):
        """Initialize pipeline.

        Args:
            fetcher: Feed fetcher sharing one HTTP session across tasks
            parser: Dialect parser
            tracker: Publication tracker
            sink: Digest sink
            settings: Application settings (default from config)
            retry_manager: Retry helper used for delivery
        """
        self.fetcher = fetcher
        self.parser = parser
        self.tracker = tracker
        self.sink = sink
        self.settings = settings or get_settings()
        self.retry_manager = retry_manager or RetryManager()

        self.delivery_policy = RetryPolicy(
            max_attempts=self.settings.delivery.max_attempts,
            strategy=RetryStrategy.LINEAR_BACKOFF,
            base_delay=1.0,
            retry_on=lambda e: not isinstance(e, ConfigurationError),
        )

    @classmethod
    def from_settings(
        cls, settings: CoreHeadlinesSettings, db_connection: DatabaseConnection
    ) -> "HeadlinesPipeline":
        """Wire the production components from ``settings``."""
        store = PublicationStore(db_connection, max_batch_items=settings.storage.batch_size)
        tracker = PublicationTracker(
            store,
            batch_size=settings.storage.batch_size,
            retention_years=settings.storage.retention_years,
        )
        economics = EconomicsClient(settings.economics)
        sink = EmailDigestSink(settings.delivery, preamble_provider=economics.render_block)

        return cls(
            fetcher=FeedFetcher(settings.fetch),
            parser=FeedParser(),
            tracker=tracker,
            sink=sink,
            settings=settings,
        )

    async def __aenter__(self) -> "HeadlinesPipeline":
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.fetcher.close()

    async def run(self, feeds: Optional[Sequence[FeedSource]] = None) -> RunResult:
        """Run one ingestion cycle.

        Args:
            feeds: Feeds to process, in output order (defaults to FEEDS)

        Returns:
            RunResult with per-feed outcomes and the delivered articles

        Raises:
            ConfigurationError: Delivery settings are incomplete; nothing was sent
            DeliveryError: Digest could not be delivered; nothing was marked
            StoreWriteError: Digest was delivered but marking failed
        """
        run_id = uuid.uuid4().hex[:8]
        log = get_logger_for_component("pipeline", run_id=run_id)
        feeds = list(FEEDS if feeds is None else feeds)

        with PerformanceLogger(log, "headlines run", feeds=len(feeds)) as run_timer:
            results = [FeedResult(feed=feed) for feed in feeds]

            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.settings.processing.run_timeout

            with PerformanceLogger(log, "feed fetch phase", feeds=len(feeds)):
                tasks = [
                    asyncio.create_task(self._run_slot(index, results, deadline, log))
                    for index in range(len(results))
                ]
                await asyncio.gather(*tasks)

            result = RunResult(run_id=run_id, feed_results=results)
            failed = len(result.failed_feeds)
            if failed:
                log.info(f"{failed} of {len(feeds)} feeds failed this run")

            articles, snippets = self._collect(results)
            result.articles = articles

            if not articles:
                log.info("No new articles, nothing to deliver")
            else:
                log.info(f"Delivering {len(articles)} new articles")
                await self._deliver(snippets, log)
                result.delivered = True
                await self.tracker.mark_published(articles, logger=log)

        result.duration_seconds = run_timer.duration or 0.0
        return result

    async def _run_slot(
        self, index: int, results: List[FeedResult], deadline: float, log
    ) -> None:
        slot = results[index]
        feed = slot.feed
        feed_log = log.bind(feed=feed.header)
        remaining = deadline - asyncio.get_running_loop().time()

        try:
            if remaining <= 0:
                raise asyncio.TimeoutError()
            slot.articles, slot.snippets = await asyncio.wait_for(
                self._process_feed(feed, feed_log), timeout=remaining
            )

        except asyncio.TimeoutError:
            slot.error = FeedFetchError(
                "Run deadline expired before the feed completed",
                feed_header=feed.header,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            )
            feed_log.warning(str(slot.error))

        except EmptyFeedError as e:
            slot.error = e
            feed_log.info(f"Feed produced no articles: {e}")

        except FeedError as e:
            slot.error = e
            feed_log.warning(f"Feed failed: {e}", extra={"error": e.to_dict()})

        except Exception as e:
            slot.error = e
            feed_log.error(f"Unexpected error processing feed: {e}", exc_info=True)

    async def _process_feed(self, feed: FeedSource, log) -> Tuple[List[Article], List[str]]:
        body = await self.fetcher.fetch(feed, logger=log)
        parsed = self.parser.parse(body, feed, logger=log)

        articles, snippets = [], []
        for article in parsed:
            try:
                if await self.tracker.is_published(article.guid):
                    continue
            except StoreQueryError as e:
                log.bind(guid=article.guid).warning(f"Skipping article, publication check failed: {e}")
                continue

            snippet = format_snippet(article)
            if not snippet:
                continue
            articles.append(article)
            snippets.append(snippet)

        log.debug(f"{len(articles)} of {len(parsed)} articles are new")
        return articles, snippets

    def _collect(self, results: List[FeedResult]) -> Tuple[List[Article], List[str]]:
        """Merge successful slots in order, first occurrence of a guid wins."""
        seen: Set[str] = set()
        articles, snippets = [], []

        for slot in results:
            if not slot.succeeded:
                continue
            for article, snippet in zip(slot.articles, slot.snippets):
                if article.guid in seen:
                    continue
                seen.add(article.guid)
                articles.append(article)
                snippets.append(snippet)

        return articles, snippets

    async def _deliver(self, snippets: List[str], log) -> None:
        try:
            await self.retry_manager.retry_async(
                self.sink.send,
                snippets,
                policy=self.delivery_policy,
                operation="digest delivery",
                logger=log,
            )
        except (DeliveryError, ConfigurationError):
            raise
        except Exception as e:
            raise DeliveryError(
                f"Digest delivery failed: {e}", article_count=len(snippets)
            ) from e
