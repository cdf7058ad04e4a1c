"""
Publication Store
================

Repository over the published_articles table. Reads ignore expired rows,
batch writes report the records they could not apply so the caller can
retry them, and expired rows are removed by purge_expired.
"""

import sqlite3
import time
from typing import Callable, List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import PublicationRecord
from ..database.schema import PUBLISHED_TABLE
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, StoreQueryError, StoreWriteError


# Lock contention surfaces as OperationalError with one of these messages
_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


def _is_busy(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _BUSY_MARKERS)


class PublicationStore:
    """Repository for publication records."""

    MAX_BATCH_ITEMS = 25

    def __init__(
        self,
        db_connection: DatabaseConnection,
        max_batch_items: int = MAX_BATCH_ITEMS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize publication store.

        Args:
            db_connection: Database connection manager
            max_batch_items: Largest batch accepted by batch_put
            clock: Epoch-seconds clock used for expiry checks
        """
        self.db = db_connection
        self._max_batch_items = max_batch_items
        self._clock = clock or time.time
        self.logger = get_logger_for_component("publication_store")

    @property
    def max_batch_items(self) -> int:
        return self._max_batch_items

    def _now(self) -> int:
        return int(self._clock())

    def count_by_guid(self, guid: str) -> int:
        """Count unexpired records for ``guid``.

        Raises:
            StoreQueryError: If the lookup fails
        """
        try:
            row = self.db.execute_one(
                f"SELECT COUNT(*) FROM {PUBLISHED_TABLE} WHERE guid = ? AND ttl > ?",
                (guid, self._now()),
            )
            return row[0] if row else 0

        except sqlite3.Error as e:
            raise StoreQueryError(
                f"Failed to look up publication: {e}",
                guid=guid,
                error_code=ErrorCode.STORE_QUERY,
            ) from e

    def batch_put(self, records: List[PublicationRecord]) -> List[PublicationRecord]:
        """Write ``records`` in one transaction.

        Args:
            records: At most max_batch_items records

        Returns:
            Records that were not applied because the database was busy.
            Empty when the whole batch was written.

        Raises:
            ValueError: If the batch is larger than max_batch_items
            StoreWriteError: If the write fails for any other reason
        """
        if not records:
            return []
        if len(records) > self._max_batch_items:
            raise ValueError(
                f"Batch of {len(records)} exceeds limit of {self._max_batch_items}"
            )

        try:
            with self.db.transaction() as conn:
                conn.executemany(
                    f"""
                    INSERT OR REPLACE INTO {PUBLISHED_TABLE}
                    (guid, timestamp, ttl, topic, source, title, link)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [record.to_row() for record in records],
                )

            self.logger.debug(f"Batch wrote {len(records)} publication records")
            return []

        except sqlite3.OperationalError as e:
            if _is_busy(e):
                self.logger.warning(
                    f"Database busy, {len(records)} records left unprocessed: {e}"
                )
                return list(records)
            raise StoreWriteError(f"Failed to write publication batch: {e}") from e

        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to write publication batch: {e}") from e

    def purge_expired(self) -> int:
        """Delete records whose ttl has passed.

        Returns:
            Number of records deleted
        """
        try:
            deleted = self.db.execute_update(
                f"DELETE FROM {PUBLISHED_TABLE} WHERE ttl <= ?", (self._now(),)
            )
        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to purge expired records: {e}") from e

        self.logger.info(f"Purged {deleted} expired publication records")
        return deleted
