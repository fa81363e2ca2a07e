"""Service context: the explicit owner of connections and services.

Built once at startup from settings and passed to whatever needs it (the
FastAPI app stores it on app.state.context; the standalone worker holds
it directly). There are no module-level connection singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from app.application.services.query_compiler import QueryCompiler
from app.application.use_cases.index_sync import IndexSynchronizer
from app.application.use_cases.search import SearchService
from app.domain.exceptions import UpstreamUnavailableException
from app.infrastructure.messaging.event_consumer import EventConsumer
from app.infrastructure.messaging.redis_streams import RedisStreamBroker, create_redis_client
from app.infrastructure.search.factory import IndexGatewayFactory
from app.infrastructure.services.reindex_coordinator import LoggingReindexCoordinator
from app.infrastructure.services.tombstone_purger import TombstonePurger

if TYPE_CHECKING:
    import redis.asyncio as redis

    from app.application.interfaces.gateways import IIndexGateway, IReindexCoordinator
    from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Index gateway, broker, synchronizer, consumer, tombstone purger and search service."""

    settings: Settings
    gateway: IIndexGateway
    reindex_coordinator: IReindexCoordinator
    synchronizer: IndexSynchronizer
    search_service: SearchService
    broker: RedisStreamBroker | None = None
    consumer: EventConsumer | None = None
    purger: TombstonePurger | None = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        gateway: IIndexGateway | None = None,
        redis_client: redis.Redis | None = None,
        with_consumer: bool | None = None,
    ) -> ServiceContext:
        """Wire every component from settings.

        Args:
            settings: Application settings.
            gateway: Optional gateway override (tests); else from IndexGatewayFactory.
            redis_client: Optional broker client override (tests).
            with_consumer: Force the consumer on/off; defaults to broker_enabled.
        """
        gateway = gateway or IndexGatewayFactory.create_gateway(settings)
        reindex_coordinator = LoggingReindexCoordinator()
        synchronizer = IndexSynchronizer(
            gateway,
            reindex_coordinator,
            max_attempts=settings.sync_max_attempts,
            backoff_seconds=settings.sync_retry_backoff_seconds,
        )
        search_service = SearchService(
            gateway,
            QueryCompiler(enforce_document_permissions=settings.enforce_document_permissions),
            suggest_limit=settings.suggest_limit,
        )

        broker = None
        consumer = None
        purger = None
        if settings.broker_enabled if with_consumer is None else with_consumer:
            broker = RedisStreamBroker(
                redis_client or create_redis_client(settings),
                group=settings.broker_consumer_group,
                consumer_name=settings.broker_consumer_name,
                block_ms=settings.broker_block_ms,
            )
            consumer = EventConsumer(
                broker,
                synchronizer,
                max_deliveries=settings.broker_max_deliveries,
                reconnect_max_attempts=settings.broker_reconnect_max_attempts,
                initial_backoff=settings.broker_reconnect_initial_backoff,
                max_backoff=settings.broker_reconnect_max_backoff,
            )
            purger = TombstonePurger(
                gateway,
                retention=timedelta(hours=settings.tombstone_retention_hours),
                interval_seconds=settings.tombstone_purge_interval_seconds,
            )

        return cls(
            settings=settings,
            gateway=gateway,
            reindex_coordinator=reindex_coordinator,
            synchronizer=synchronizer,
            search_service=search_service,
            broker=broker,
            consumer=consumer,
            purger=purger,
        )

    async def start(self) -> None:
        """Ensure collections exist, then start consuming events and purging tombstones.

        An unreachable engine at startup is logged, not fatal: readiness
        reports it and event handling retries through the consumer.
        """
        try:
            await self.gateway.ensure_collections()
        except UpstreamUnavailableException as e:
            logger.error("Could not ensure search collections: %s", e.details.get("reason"))
        if self.consumer is not None:
            await self.consumer.start()
            logger.info("Event consumer started")
        if self.purger is not None:
            await self.purger.start()

    async def close(self) -> None:
        """Stop the purger, drain and stop the consumer (closes the broker), then close the gateway."""
        if self.purger is not None:
            await self.purger.stop()
        if self.consumer is not None:
            await self.consumer.stop()
        await self.gateway.close()
        logger.info("Service context closed")
