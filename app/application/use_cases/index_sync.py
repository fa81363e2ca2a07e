"""Index synchronization use case: apply one domain event to the search index.

Each write carries the event time (epoch millis) as its version so the
gateway can reject stale snapshots; applying the same event twice leaves
the same document. Transient engine failures are retried here with
exponential backoff; anything else propagates to the consumer, which
decides between requeue and dead-letter.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from app.application.services.document_mapper import map_document
from app.domain.documents import ensure_mutable_fields
from app.domain.enums import WriteResult
from app.domain.events import (
    DocumentDeleted,
    DocumentUpserted,
    DomainEvent,
    ReindexRequested,
    StatusChanged,
)
from app.domain.exceptions import UpstreamUnavailableException
from app.shared.telemetry.logging import get_logger
from app.shared.utils.datetime import to_epoch_millis

if TYPE_CHECKING:
    from app.application.interfaces.gateways import IIndexGateway, IReindexCoordinator

logger = get_logger(__name__)

T = TypeVar("T")


class IndexSynchronizer:
    """Applies domain events through the document mapper and index gateway.

    Holds no document state between events; the gateway owns storage.
    """

    def __init__(
        self,
        gateway: IIndexGateway,
        reindex_coordinator: IReindexCoordinator,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.reindex_coordinator = reindex_coordinator
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._handlers: dict[type[DomainEvent], Callable[..., Awaitable[WriteResult | None]]] = {
            DocumentUpserted: self._apply_upsert,
            DocumentDeleted: self._apply_delete,
            StatusChanged: self._apply_status_change,
            ReindexRequested: self._apply_reindex,
        }

    async def apply(self, event: DomainEvent) -> WriteResult | None:
        """Apply one event. Returns the write outcome, or None when nothing was written.

        Raises:
            UpstreamUnavailableException: engine still unreachable after retries.
            ResourceNotFoundException: partial update of a document not indexed.
            IndexOperationException: engine rejected the write.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler for event %s; dropping", event.routing_key)
            return None
        return await handler(event)

    async def _apply_upsert(self, event: DocumentUpserted) -> WriteResult:
        document = map_document(
            event.kind, event.snapshot, event.tenant_id, event.occurred_at
        )
        version = to_epoch_millis(event.occurred_at)
        result = await self._with_retry(
            "upsert",
            lambda: self.gateway.upsert(document.collection, document, version=version),
        )
        self._log_write(event, document.collection, document.id, result)
        return result

    async def _apply_delete(self, event: DocumentDeleted) -> WriteResult:
        collection = event.kind.collection
        version = to_epoch_millis(event.occurred_at)
        result = await self._with_retry(
            "delete",
            lambda: self.gateway.delete(collection, event.document_id, version=version),
        )
        self._log_write(event, collection, event.document_id, result)
        return result

    async def _apply_status_change(self, event: StatusChanged) -> WriteResult:
        collection = event.kind.collection
        fields = {"status": event.new_status}
        ensure_mutable_fields(fields)
        version = to_epoch_millis(event.occurred_at)
        result = await self._with_retry(
            "partial_update",
            lambda: self.gateway.partial_update(
                collection,
                event.document_id,
                fields,
                version=version,
                updated_at=event.occurred_at,
            ),
        )
        self._log_write(event, collection, event.document_id, result)
        return result

    async def _apply_reindex(self, event: ReindexRequested) -> None:
        logger.info(
            "Reindex requested: scope=%s tenant=%s type=%s",
            event.scope.value,
            event.tenant_id,
            event.document_type,
        )
        await self.reindex_coordinator.request_reindex(event)
        return None

    async def _with_retry(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await call()
            except UpstreamUnavailableException as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        operation,
                        attempt,
                        e.details.get("reason"),
                    )
                    raise
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "%s attempt %d/%d failed (%s); retrying in %.2fs",
                    operation,
                    attempt,
                    self.max_attempts,
                    e.details.get("reason"),
                    delay,
                )
                await self._sleep(delay)
                attempt += 1

    @staticmethod
    def _log_write(
        event: DomainEvent, collection: str, document_id: str, result: WriteResult
    ) -> None:
        if result == WriteResult.NOOP:
            logger.info(
                "Skipped stale write for %s/%s (%s)",
                collection,
                document_id,
                event.routing_key,
            )
        elif result == WriteResult.NOT_FOUND:
            logger.info(
                "Delete of %s/%s found nothing to remove (%s)",
                collection,
                document_id,
                event.routing_key,
            )
        else:
            logger.info(
                "%s %s/%s (%s)",
                result.value.capitalize(),
                collection,
                document_id,
                event.routing_key,
            )
