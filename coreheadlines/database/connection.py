"""
CoreHeadlines Database Connection Management
===========================================

Bounded SQLite connection pool. Store calls run in worker threads via
``asyncio.to_thread``, so connections are opened with
``check_same_thread=False`` and handed out one thread at a time.
"""

import sqlite3
import threading
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, List, Dict
from queue import LifoQueue, Empty

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Thread-safe pool of SQLite connections to one database file.

    Connections are opened lazily, up to ``pool_size``. When every connection
    is checked out, callers wait up to ``acquire_timeout`` seconds.
    """

    PRAGMAS = (
        "PRAGMA journal_mode = WAL",
        "PRAGMA synchronous = NORMAL",
        "PRAGMA temp_store = MEMORY",
    )

    def __init__(
        self,
        db_path: str = "data/coreheadlines.db",
        pool_size: int = 5,
        busy_timeout: float = 5.0,
        acquire_timeout: float = 10.0,
    ):
        """Initialize the pool.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of open connections
            busy_timeout: Seconds SQLite waits on a locked database before
                raising "database is locked"
            acquire_timeout: Seconds to wait for a free connection
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.busy_timeout = busy_timeout
        self.acquire_timeout = acquire_timeout

        self._idle: LifoQueue = LifoQueue()
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(pool_size)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=self.busy_timeout)
        for pragma in self.PRAGMAS:
            conn.execute(pragma)
        conn.row_factory = sqlite3.Row

        with self._lock:
            self._all.append(conn)
            opened = len(self._all)
        logger.debug(f"Opened database connection {opened}/{self.pool_size} to {self.db_path}")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Check out a connection for the duration of the block.

        Raises:
            sqlite3.OperationalError: If no connection frees up in time
        """
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise sqlite3.OperationalError(
                f"database is busy: no free connection after {self.acquire_timeout:.0f}s"
            )

        try:
            try:
                conn = self._idle.get_nowait()
            except Empty:
                conn = self._open()

            try:
                yield conn
            finally:
                if conn.in_transaction:
                    conn.rollback()
                self._idle.put(conn)
        finally:
            self._slots.release()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run the block inside ``BEGIN IMMEDIATE``; commit on success.

        Taking the write lock up front makes lock contention fail at BEGIN
        rather than half way through the block.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Run a query and return its first row."""
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Run a single write statement and commit it.

        Returns:
            Number of affected rows
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def get_database_info(self) -> Dict[str, Any]:
        """Database size, publication row count and pool usage."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]

            try:
                records = conn.execute("SELECT COUNT(*) FROM published_articles").fetchone()[0]
            except sqlite3.OperationalError:
                records = 0

        return {
            "database_size_mb": page_count * page_size / (1024 * 1024),
            "published_records": records,
            "open_connections": len(self._all),
            "pool_size": self.pool_size,
        }

    def close_all_connections(self) -> None:
        """Close every connection the pool has opened."""
        with self._lock:
            connections, self._all = self._all, []

        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.warning(f"Error closing database connection: {e}")

        self._idle = LifoQueue()
        logger.debug(f"Closed {len(connections)} database connections")
