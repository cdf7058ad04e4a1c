#!/usr/bin/env python3
"""
Publication Tracker Tests
========================

Tests for publication checks and for batched marking with its single
retry of unprocessed records.
"""

import pytest

from coreheadlines.database.models import Article
from coreheadlines.storage.publication_tracker import PublicationTracker
from coreheadlines.utils.exceptions import StoreQueryError, StoreWriteError


class ScriptedStore:
    """Store double returning scripted batch_put outcomes."""

    def __init__(self, max_batch_items=25, outcomes=None, counts=None):
        self.max_batch_items = max_batch_items
        self.outcomes = list(outcomes or [])
        self.counts = counts or {}
        self.batches = []

    def count_by_guid(self, guid):
        result = self.counts.get(guid, 0)
        if isinstance(result, Exception):
            raise result
        return result

    def batch_put(self, records):
        self.batches.append(list(records))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(records)
        return []


def _articles(count):
    return [
        Article(guid=f"g{i}", title=f"Story {i}", link=f"https://example.com/{i}", header="example")
        for i in range(count)
    ]


class TestIsPublished:

    @pytest.mark.asyncio
    async def test_published_and_new(self):
        tracker = PublicationTracker(ScriptedStore(counts={"seen": 1}))

        assert await tracker.is_published("seen") is True
        assert await tracker.is_published("new") is False

    @pytest.mark.asyncio
    async def test_store_query_error_propagates(self):
        store = ScriptedStore(counts={"bad": StoreQueryError("boom", guid="bad")})
        tracker = PublicationTracker(store)

        with pytest.raises(StoreQueryError):
            await tracker.is_published("bad")

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self):
        store = ScriptedStore(counts={"bad": RuntimeError("connection lost")})
        tracker = PublicationTracker(store)

        with pytest.raises(StoreQueryError) as exc_info:
            await tracker.is_published("bad")

        assert exc_info.value.context["guid"] == "bad"

    @pytest.mark.asyncio
    async def test_against_real_store(self, publication_tracker, sample_articles):
        assert await publication_tracker.is_published(sample_articles[0].guid) is False

        await publication_tracker.mark_published(sample_articles[:1])

        assert await publication_tracker.is_published(sample_articles[0].guid) is True
        assert await publication_tracker.is_published(sample_articles[1].guid) is False


class TestMarkPublished:

    @pytest.mark.asyncio
    async def test_chunks_of_batch_size(self):
        store = ScriptedStore()
        tracker = PublicationTracker(store, batch_size=25)

        await tracker.mark_published(_articles(60))

        assert [len(batch) for batch in store.batches] == [25, 25, 10]

    @pytest.mark.asyncio
    async def test_batch_size_capped_by_store_limit(self):
        store = ScriptedStore(max_batch_items=10)
        tracker = PublicationTracker(store, batch_size=25)

        await tracker.mark_published(_articles(25))

        assert [len(batch) for batch in store.batches] == [10, 10, 5]

    @pytest.mark.asyncio
    async def test_records_share_timestamp_and_one_year_ttl(self):
        store = ScriptedStore()
        tracker = PublicationTracker(store)

        await tracker.mark_published(_articles(3))

        records = store.batches[0]
        assert len({r.timestamp for r in records}) == 1
        assert all(r.ttl - r.timestamp in (365 * 86400, 366 * 86400) for r in records)

    @pytest.mark.asyncio
    async def test_unprocessed_retried_exactly_once(self):
        store = ScriptedStore(outcomes=[lambda records: records[-2:], lambda records: list(records)])
        tracker = PublicationTracker(store)

        await tracker.mark_published(_articles(5))

        assert len(store.batches) == 2
        assert [r.guid for r in store.batches[1]] == ["g3", "g4"]

    @pytest.mark.asyncio
    async def test_unprocessed_cleared_on_retry(self):
        store = ScriptedStore(outcomes=[lambda records: records[:1], None, None])
        tracker = PublicationTracker(store, batch_size=3)

        await tracker.mark_published(_articles(6))

        # first chunk, its retry, second chunk
        assert [len(batch) for batch in store.batches] == [3, 1, 3]

    @pytest.mark.asyncio
    async def test_write_error_aborts(self):
        store = ScriptedStore(outcomes=[StoreWriteError("disk full")])
        tracker = PublicationTracker(store, batch_size=2)

        with pytest.raises(StoreWriteError):
            await tracker.mark_published(_articles(4))

        assert len(store.batches) == 1

    @pytest.mark.asyncio
    async def test_error_on_retry_aborts(self):
        store = ScriptedStore(outcomes=[lambda records: records, RuntimeError("disk gone")])
        tracker = PublicationTracker(store)

        with pytest.raises(StoreWriteError):
            await tracker.mark_published(_articles(2))

    @pytest.mark.asyncio
    async def test_empty_list_is_noop(self):
        store = ScriptedStore()
        await PublicationTracker(store).mark_published([])
        assert store.batches == []
