"""
CoreHeadlines - Headline Digest Pipeline
=======================================

Ingests a fixed set of syndication feeds, drops articles already delivered,
and emails one consolidated digest of the new ones.

Main Components:
- Ingestion: HTTP fetching and RSS/Atom/RDF/HTML parsing
- Storage: SQLite publication store with expiry
- Processing: concurrent per-feed tasks with ordered, deduplicated fan-in
- Delivery: HTML digest over SMTP, with economic indicators
"""

__version__ = "1.0.0"
__author__ = "CoreHeadlines Development Team"
__description__ = "Consolidated headline digest from syndication feeds"

# Core imports for easy access
from .config.settings import get_settings
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import CoreHeadlinesError

__all__ = [
    "get_settings",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "CoreHeadlinesError",
]
