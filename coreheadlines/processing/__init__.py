"""
CoreHeadlines Processing Module
==============================

Run orchestration: concurrent per-feed processing, ordered fan-in with
deduplication, delivery and publication marking.
"""

from .pipeline import FeedResult, HeadlinesPipeline, RunResult

__all__ = [
    'FeedResult',
    'HeadlinesPipeline',
    'RunResult',
]
