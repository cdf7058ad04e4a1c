"""
CoreHeadlines Storage Layer
==========================

Publication store and the tracker that decides which articles are new.
"""

from .publication_store import PublicationStore
from .publication_tracker import PublicationTracker

__all__ = [
    "PublicationStore",
    "PublicationTracker",
]
