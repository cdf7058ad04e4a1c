"""
CoreHeadlines Database Schema
============================

SQLite schema for the publication store. A single table keeps one row per
delivered article:

- published_articles: guid, timestamp, ttl, topic, source, title, link,
  keyed on (guid, timestamp) so re-marking an article adds a row.
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

PUBLISHED_TABLE = "published_articles"


class DatabaseSchema:
    """Database schema manager for the CoreHeadlines SQLite database."""

    def __init__(self, db_path: str = "data/coreheadlines.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_published_articles_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_published_articles_table(self, conn: sqlite3.Connection) -> None:
        """Create the publication record table."""
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {PUBLISHED_TABLE} (
                guid TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                ttl INTEGER NOT NULL,
                topic TEXT,
                source TEXT,
                title TEXT NOT NULL,
                link TEXT NOT NULL,
                PRIMARY KEY (guid, timestamp)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for expiry sweeps."""
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_published_ttl ON {PUBLISHED_TABLE}(ttl)"
        )

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(f"DROP TABLE IF EXISTS {PUBLISHED_TABLE}")
            conn.commit()
            logger.info("All database tables dropped")

    def get_connection(self) -> sqlite3.Connection:
        """Get a plain database connection with dict-like rows."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        try:
            conn = self.get_connection()
            try:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                    ORDER BY name
                """
                )
                tables = {row[0] for row in cursor.fetchall()}

                if PUBLISHED_TABLE not in tables:
                    logger.error(f"Missing table {PUBLISHED_TABLE}. Found: {tables}")
                    return False

                cursor = conn.execute(f"PRAGMA table_info({PUBLISHED_TABLE})")
                columns = {row[1] for row in cursor.fetchall()}
                expected = {"guid", "timestamp", "ttl", "topic", "source", "title", "link"}
                if not expected.issubset(columns):
                    logger.error(f"Missing columns: {expected - columns}")
                    return False

                logger.info("Database schema verification passed")
                return True
            finally:
                conn.close()

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False
