"""
CoreHeadlines Enrichment Module
==============================

Read-only data merged into the digest body, independent of feed ingestion.
"""

from .economics import EconomicsClient, render_indicators

__all__ = [
    "EconomicsClient",
    "render_indicators",
]
