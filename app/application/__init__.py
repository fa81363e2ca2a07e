"""Application layer: DTOs, ports, services, use cases.

Depends only on domain and protocol definitions (DIP).
Infrastructure implements the interfaces (index gateway, reindex coordinator).
"""

from app.application.interfaces import IIndexGateway, IReindexCoordinator
from app.application.services.query_compiler import QueryCompiler
from app.application.use_cases.index_sync import IndexSynchronizer
from app.application.use_cases.search import SearchService

__all__ = [
    "IIndexGateway",
    "IReindexCoordinator",
    "IndexSynchronizer",
    "QueryCompiler",
    "SearchService",
]
