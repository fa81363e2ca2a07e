"""Application use cases: one entry point per workflow."""

from app.application.use_cases.index_sync import IndexSynchronizer
from app.application.use_cases.search import SearchService

__all__ = [
    "IndexSynchronizer",
    "SearchService",
]
