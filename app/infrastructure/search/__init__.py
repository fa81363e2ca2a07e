"""Search engine adapters implementing IIndexGateway."""

from app.infrastructure.search.factory import IndexGatewayFactory
from app.infrastructure.search.memory_gateway import InMemoryIndexGateway

__all__ = [
    "IndexGatewayFactory",
    "InMemoryIndexGateway",
]
