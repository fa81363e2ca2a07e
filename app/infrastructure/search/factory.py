"""Index gateway factory: creates the Elasticsearch or in-memory backend from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.application.interfaces.gateways import IIndexGateway
    from app.core.config import Settings


class IndexGatewayFactory:
    """Factory for index gateway instances based on configuration."""

    @staticmethod
    def create_gateway(settings: "Settings | None" = None) -> "IIndexGateway":
        """Create the index gateway from settings.

        Args:
            settings: Application settings; if None, uses get_settings().

        Returns:
            ElasticsearchIndexGateway or InMemoryIndexGateway.

        Raises:
            ValueError: Unknown backend or missing required config.
        """
        from app.core.config import get_settings

        s = settings or get_settings()
        backend = s.search_backend.lower()

        if backend == "elasticsearch":
            from app.infrastructure.search.elasticsearch_gateway import (
                ElasticsearchIndexGateway,
                create_elasticsearch_client,
            )

            if not s.elasticsearch_url:
                raise ValueError("ELASTICSEARCH_URL required for elasticsearch backend")
            return ElasticsearchIndexGateway(
                create_elasticsearch_client(s),
                index_prefix=s.index_prefix,
                shards=s.index_shards,
                replicas=s.index_replicas,
            )
        if backend == "memory":
            from app.infrastructure.search.memory_gateway import InMemoryIndexGateway

            return InMemoryIndexGateway()
        raise ValueError(
            f"Unknown search backend: {backend}. Supported: 'elasticsearch', 'memory'"
        )
