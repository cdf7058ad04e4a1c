#!/usr/bin/env python3
"""
Pipeline Integration Tests
=========================

End-to-end runs with a scripted fetcher, the real parser, and a publication
tracker backed by a temporary SQLite database.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from coreheadlines.config.settings import DeliverySettings
from coreheadlines.delivery.email_sender import EmailDigestSink
from coreheadlines.ingestion.feed_parser import FeedParser
from coreheadlines.processing.pipeline import HeadlinesPipeline
from coreheadlines.recovery.retry_logic import RetryManager
from coreheadlines.storage.publication_tracker import PublicationTracker
from coreheadlines.utils.exceptions import (
    ConfigurationError,
    DeliveryError,
    EmptyFeedError,
    ErrorCode,
    FeedFetchError,
    StoreQueryError,
    StoreWriteError,
)


def rss(*items):
    """Build an RSS document from (guid, title, link) tuples."""
    body = "".join(
        "<item>"
        + (f"<guid>{guid}</guid>" if guid else "")
        + f"<title>{title}</title><link>{link}</link></item>"
        for guid, title, link in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<rss version=\"2.0\"><channel><title>t</title>{body}</channel></rss>"
    ).encode("utf-8")


class ScriptedFetcher:
    """Returns canned bodies per feed header, optionally after a delay."""

    def __init__(self, script):
        self.script = script
        self.completed = []

    async def fetch(self, feed, logger=None):
        delay, outcome = self.script[feed.header]
        await asyncio.sleep(delay)
        self.completed.append(feed.header)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        pass


class RecordingSink:
    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []

    async def send(self, snippets):
        self.calls.append(list(snippets))
        if self.failures:
            self.failures -= 1
            raise DeliveryError("SMTP unavailable", article_count=len(snippets))


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def build_pipeline(test_settings, publication_tracker, sleep):
    def _build(script, sink=None, tracker=None):
        return HeadlinesPipeline(
            fetcher=ScriptedFetcher(script),
            parser=FeedParser(),
            tracker=tracker or publication_tracker,
            sink=sink or RecordingSink(),
            settings=test_settings,
            retry_manager=RetryManager(sleep=sleep),
        )

    return _build


class TestOrderingAndDedup:

    @pytest.mark.asyncio
    async def test_output_follows_configuration_order(self, build_pipeline, make_feed):
        feeds = [make_feed("a"), make_feed("b"), make_feed("c")]
        sink = RecordingSink()
        pipeline = build_pipeline(
            {
                "a": (0.02, rss(("a1", "A one", "https://a.example.com/1"))),
                "b": (0.04, rss(("b1", "B one", "https://b.example.com/1"))),
                "c": (0.0, rss(("c1", "C one", "https://c.example.com/1"))),
            },
            sink=sink,
        )

        result = await pipeline.run(feeds)

        assert pipeline.fetcher.completed == ["c", "a", "b"]
        assert [a.guid for a in result.articles] == ["a1", "b1", "c1"]
        assert len(sink.calls) == 1
        assert "a: A one" in sink.calls[0][0]
        assert "c: C one" in sink.calls[0][2]
        assert result.delivered

    @pytest.mark.asyncio
    async def test_first_occurrence_wins(self, build_pipeline, make_feed):
        feeds = [make_feed("a"), make_feed("b")]
        pipeline = build_pipeline({
            "a": (0.0, rss(("shared", "From A", "https://a.example.com/s"))),
            "b": (0.0, rss(
                ("shared", "From B", "https://b.example.com/s"),
                ("b2", "B two", "https://b.example.com/2"),
            )),
        })

        result = await pipeline.run(feeds)

        assert [(a.guid, a.header) for a in result.articles] == [("shared", "a"), ("b2", "b")]

    @pytest.mark.asyncio
    async def test_guid_falls_back_to_link(self, build_pipeline, make_feed):
        pipeline = build_pipeline({"a": (0.0, rss((None, "No guid", "https://a.example.com/x")))})

        result = await pipeline.run([make_feed("a")])

        assert result.articles[0].guid == "https://a.example.com/x"


class TestFaultIsolation:

    @pytest.mark.asyncio
    async def test_failing_feeds_do_not_block_others(self, build_pipeline, make_feed):
        feeds = [make_feed("ok"), make_feed("down"), make_feed("broken"), make_feed("bug")]
        pipeline = build_pipeline({
            "ok": (0.0, rss(("g1", "Fine", "https://ok.example.com/1"))),
            "down": (0.0, FeedFetchError("HTTP 503", feed_header="down")),
            "broken": (0.0, b"<rss><channel><item>"),
            "bug": (0.0, RuntimeError("unexpected")),
        })

        result = await pipeline.run(feeds)

        assert [a.guid for a in result.articles] == ["g1"]
        assert result.successful_feeds == 1
        errors = {r.feed.header: r.error for r in result.failed_feeds}
        assert isinstance(errors["down"], FeedFetchError)
        assert isinstance(errors["bug"], RuntimeError)
        assert errors["broken"] is not None

    @pytest.mark.asyncio
    async def test_empty_feed_recorded(self, build_pipeline, make_feed):
        empty = b'<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel><title>t</title></channel></rss>'
        pipeline = build_pipeline({"a": (0.0, empty)})

        result = await pipeline.run([make_feed("a")])

        assert isinstance(result.feed_results[0].error, EmptyFeedError)

    @pytest.mark.asyncio
    async def test_deadline_expiry_times_out_slow_feeds(self, build_pipeline, make_feed, test_settings):
        test_settings.processing.run_timeout = 0.5
        pipeline = build_pipeline({
            "fast": (0.0, rss(("g1", "Fast", "https://fast.example.com/1"))),
            "slow": (5.0, rss(("g2", "Slow", "https://slow.example.com/1"))),
        })

        result = await pipeline.run([make_feed("fast"), make_feed("slow")])

        assert [a.guid for a in result.articles] == ["g1"]
        error = result.feed_results[1].error
        assert isinstance(error, FeedFetchError)
        assert error.error_code == ErrorCode.FEED_FETCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_failed_publication_check_skips_article(self, build_pipeline, make_feed, publication_store):
        class FlakyTracker(PublicationTracker):
            async def is_published(self, guid):
                if guid == "bad":
                    raise StoreQueryError("lookup failed", guid=guid)
                return await super().is_published(guid)

        pipeline = build_pipeline(
            {"a": (0.0, rss(
                ("bad", "Bad", "https://a.example.com/bad"),
                ("good", "Good", "https://a.example.com/good"),
            ))},
            tracker=FlakyTracker(publication_store),
        )

        result = await pipeline.run([make_feed("a")])

        assert [a.guid for a in result.articles] == ["good"]
        assert result.feed_results[0].succeeded


class TestDeliveryAndMarking:

    @pytest.mark.asyncio
    async def test_no_articles_means_no_digest(self, build_pipeline, make_feed):
        sink = RecordingSink()
        pipeline = build_pipeline({"a": (0.0, FeedFetchError("down", feed_header="a"))}, sink=sink)

        result = await pipeline.run([make_feed("a")])

        assert sink.calls == []
        assert not result.delivered
        assert result.articles == []

    @pytest.mark.asyncio
    async def test_published_articles_excluded_next_run(self, build_pipeline, make_feed, publication_tracker):
        script = {"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))}

        first = await build_pipeline(script).run([make_feed("a")])
        assert await publication_tracker.is_published("g1")

        sink = RecordingSink()
        second = await build_pipeline(script, sink=sink).run([make_feed("a")])

        assert [a.guid for a in first.articles] == ["g1"]
        assert second.articles == []
        assert sink.calls == []

    @pytest.mark.asyncio
    async def test_delivery_failure_marks_nothing(self, build_pipeline, make_feed, publication_tracker):
        sink = RecordingSink(failures=5)
        pipeline = build_pipeline({"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))}, sink=sink)

        with pytest.raises(DeliveryError):
            await pipeline.run([make_feed("a")])

        assert len(sink.calls) == 2
        assert not await publication_tracker.is_published("g1")

    @pytest.mark.asyncio
    async def test_delivery_retried_after_pause(self, build_pipeline, make_feed, publication_tracker, sleep):
        sink = RecordingSink(failures=1)
        pipeline = build_pipeline({"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))}, sink=sink)

        result = await pipeline.run([make_feed("a")])

        assert result.delivered
        assert len(sink.calls) == 2
        sleep.assert_awaited_once_with(1.0)
        assert await publication_tracker.is_published("g1")

    @pytest.mark.asyncio
    async def test_marking_failure_after_delivery_propagates(self, build_pipeline, make_feed, publication_store):
        class BrokenTracker(PublicationTracker):
            async def mark_published(self, articles, logger=None):
                raise StoreWriteError("disk full")

        sink = RecordingSink()
        pipeline = build_pipeline(
            {"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))},
            sink=sink,
            tracker=BrokenTracker(publication_store),
        )

        with pytest.raises(StoreWriteError):
            await pipeline.run([make_feed("a")])

        assert len(sink.calls) == 1

    @pytest.mark.asyncio
    async def test_incomplete_delivery_settings_not_retried(self, build_pipeline, make_feed, publication_tracker, sleep):
        sink = EmailDigestSink(DeliverySettings(), smtp_factory=MagicMock())
        pipeline = build_pipeline({"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))}, sink=sink)

        with pytest.raises(ConfigurationError):
            await pipeline.run([make_feed("a")])

        sink.smtp_factory.assert_not_called()
        sleep.assert_not_awaited()
        assert not await publication_tracker.is_published("g1")

    @pytest.mark.asyncio
    async def test_email_retry_resends_same_digest(self, build_pipeline, make_feed, test_settings, sleep):
        smtp_factory = MagicMock()
        client = smtp_factory.return_value.__enter__.return_value
        client.send_message.side_effect = [OSError("connection reset"), None]
        provider = AsyncMock(side_effect=["<div>CPI 3.1%</div>", "<div>CPI 3.2%</div>"])
        sink = EmailDigestSink(test_settings.delivery, preamble_provider=provider, smtp_factory=smtp_factory)
        pipeline = build_pipeline({"a": (0.0, rss(("g1", "One", "https://a.example.com/1")))}, sink=sink)

        result = await pipeline.run([make_feed("a")])

        bodies = [call.args[0].get_content() for call in client.send_message.call_args_list]
        assert result.delivered
        assert len(bodies) == 2
        assert bodies[0] == bodies[1]
        provider.assert_awaited_once()
        sleep.assert_awaited_once_with(1.0)
