"""
CoreHeadlines Ingestion Module
=============================

Feed retrieval and normalization components.

This module handles:
- HTTP fetching with per-feed user agents and transport retries
- Dialect-specific parsing into Article models
"""

from .feed_fetcher import FeedFetcher
from .feed_parser import FeedParser

__all__ = [
    "FeedFetcher",
    "FeedParser",
]
