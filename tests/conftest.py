"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for CoreHeadlines tests.
"""

import pytest
import tempfile
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "coreheadlines_tests"
os.environ["COREHEADLINES_STORAGE__PATH"] = str(_TEST_DIR / "coreheadlines_env.db")
os.environ["COREHEADLINES_LOGGING__FILE_PATH"] = str(_TEST_DIR / "coreheadlines_test.log")
os.environ["COREHEADLINES_FETCH__CONTACT_EMAIL"] = "ops@example.com"
os.environ["COREHEADLINES_DEBUG"] = "true"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Temporary database file with the schema created."""
    from coreheadlines.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    DatabaseSchema(db_path).create_tables()

    yield db_path

    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from coreheadlines.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def publication_store(db_connection):
    from coreheadlines.storage.publication_store import PublicationStore

    return PublicationStore(db_connection)


@pytest.fixture
def publication_tracker(publication_store):
    from coreheadlines.storage.publication_tracker import PublicationTracker

    return PublicationTracker(publication_store)


# ============================================================================
# Settings and Model Fixtures
# ============================================================================


@pytest.fixture
def test_settings(temp_db):
    """Fully populated settings that never touch the working directory."""
    from coreheadlines.config.settings import (
        CoreHeadlinesSettings,
        DeliverySettings,
        FetchSettings,
        LoggingSettings,
        ProcessingSettings,
        StorageSettings,
        EconomicsSettings,
    )

    return CoreHeadlinesSettings(
        fetch=FetchSettings(contact_email="ops@example.com", backoff_base=0.0),
        storage=StorageSettings(path=temp_db),
        delivery=DeliverySettings(
            smtp_host="smtp.example.com",
            smtp_user="digest@example.com",
            smtp_password="secret",
            from_header="Core Headlines <digest@example.com>",
            from_address="digest@example.com",
            to_address="reader@example.com",
        ),
        economics=EconomicsSettings(enabled=False),
        processing=ProcessingSettings(run_timeout=5.0),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


@pytest.fixture
def make_feed():
    """Factory for FeedSource models with test defaults."""
    from coreheadlines.database.models import FeedSource

    def _make_feed(header="example", url=None, **kwargs):
        return FeedSource(header=header, url=url or f"https://{header.replace('/', '-')}.example.com/feed", **kwargs)

    return _make_feed


@pytest.fixture
def sample_articles():
    """Generate sample articles for testing."""
    from coreheadlines.database.models import Article

    return [
        Article(
            guid="https://example.com/python-tutorial",
            title="Python Programming Tutorial",
            link="https://example.com/python-tutorial",
            header="example",
            topic="tech",
            source="example",
        ),
        Article(
            guid="urn:example:js-guide",
            title="JavaScript Framework Guide",
            link="https://example.com/js-guide",
            header="example",
        ),
        Article(
            guid="urn:example:data-science",
            title="Data Science with Python",
            link="https://example.com/data-science",
            header="example",
        ),
    ]
