"""
Publication Tracker
==================

Async facade over the publication store used by the pipeline. Blocking
SQLite calls run in worker threads so concurrent feed tasks can query the
store without extra locking.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from ..database.models import Article, PublicationRecord
from ..recovery.retry_logic import RetryManager, RetryPolicy, RetryStrategy
from ..utils.exceptions import StoreError, StoreQueryError, StoreWriteError
from ..utils.logging import get_logger_for_component
from .publication_store import PublicationStore


class UnprocessedItemsError(StoreError):
    """Raised internally while records remain unprocessed after a batch write."""

    def __init__(self, remaining: List[PublicationRecord]):
        super().__init__(f"{len(remaining)} records unprocessed")
        self.remaining = remaining


# A batch gets its first write plus exactly one retry of what was left over
UNPROCESSED_RETRY_POLICY = RetryPolicy(
    max_attempts=2,
    strategy=RetryStrategy.NONE,
    retry_on=lambda exc: isinstance(exc, UnprocessedItemsError),
)


class PublicationTracker:
    """Answers "was this article delivered?" and records deliveries."""

    def __init__(
        self,
        store: PublicationStore,
        batch_size: int = 25,
        retention_years: int = 1,
        retry_manager: Optional[RetryManager] = None,
    ):
        """Initialize publication tracker.

        Args:
            store: Publication store
            batch_size: Preferred records per write, capped by the store limit
            retention_years: Lifetime of a publication record in calendar years
            retry_manager: Retry helper for the unprocessed-item retry
        """
        self.store = store
        self.batch_size = min(batch_size, store.max_batch_items)
        self.retention_years = retention_years
        self.retry_manager = retry_manager or RetryManager()
        self.logger = get_logger_for_component("publication_tracker")

    async def is_published(self, guid: str) -> bool:
        """Whether an unexpired record exists for ``guid``.

        Raises:
            StoreQueryError: If the store cannot answer
        """
        try:
            count = await asyncio.to_thread(self.store.count_by_guid, guid)
        except StoreQueryError:
            raise
        except Exception as e:
            raise StoreQueryError(f"Failed to look up publication: {e}", guid=guid) from e
        return count > 0

    async def mark_published(self, articles: List[Article], logger=None) -> None:
        """Record every article in ``articles`` as delivered now.

        Raises:
            StoreWriteError: If a batch write or its retry fails
        """
        if not articles:
            return

        log = logger or self.logger
        now = datetime.now(timezone.utc)
        records = [
            PublicationRecord.from_article(article, now=now, retention_years=self.retention_years)
            for article in articles
        ]

        for start in range(0, len(records), self.batch_size):
            await self._write_chunk(records[start:start + self.batch_size], log)

        log.info(f"Marked {len(records)} articles as published")

    async def _write_chunk(self, chunk: List[PublicationRecord], log) -> None:
        pending = chunk

        async def put_pending():
            nonlocal pending
            pending = await self._put(pending)
            if pending:
                raise UnprocessedItemsError(pending)

        try:
            await self.retry_manager.retry_async(
                put_pending,
                policy=UNPROCESSED_RETRY_POLICY,
                operation="publication batch write",
                logger=log,
            )
        except UnprocessedItemsError as e:
            log.warning(
                f"Dropping {len(e.remaining)} publication records still unprocessed after retry",
                extra={"guids": [record.guid for record in e.remaining]},
            )

    async def _put(self, records: List[PublicationRecord]) -> List[PublicationRecord]:
        try:
            return await asyncio.to_thread(self.store.batch_put, records)
        except StoreWriteError:
            raise
        except Exception as e:
            raise StoreWriteError(f"Failed to write publication batch: {e}") from e
