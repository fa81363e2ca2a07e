"""Search read path: query, suggestions, stats and manual indexing.

Query failures surface immediately (no retry); suggestions degrade to an
empty list since they are a non-critical enhancement.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from app.application.services.document_mapper import map_document
from app.domain.enums import WriteResult, kind_for_collection
from app.domain.exceptions import (
    AuthorizationException,
    SearchServiceException,
    ValidationException,
)
from app.shared.telemetry.logging import get_logger
from app.shared.utils.datetime import to_epoch_millis, utc_now

if TYPE_CHECKING:
    from app.application.dtos.search import IndexStats, SearchRequest, SearchResult
    from app.application.interfaces.gateways import IIndexGateway
    from app.application.services.query_compiler import QueryCompiler
    from app.domain.documents import SearchDocument

logger = get_logger(__name__)


class SearchService:
    """Tenant-scoped search over the index gateway (stateless, safe to share)."""

    def __init__(
        self,
        gateway: IIndexGateway,
        compiler: QueryCompiler,
        *,
        suggest_limit: int = 10,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.gateway = gateway
        self.compiler = compiler
        self.suggest_limit = suggest_limit
        self._clock = clock

    async def search(self, request: SearchRequest) -> SearchResult:
        """Compile and run request; execution_time_ms covers the engine round trip."""
        compiled = self.compiler.compile(request)
        started = self._clock()
        result = await self.gateway.query(compiled)
        elapsed_ms = round((self._clock() - started) * 1000, 2)
        logger.debug(
            "Search tenant=%s returned %d of %d in %.2fms",
            request.tenant_id,
            len(result.hits),
            result.total,
            elapsed_ms,
        )
        return dataclasses.replace(result, execution_time_ms=elapsed_ms)

    async def suggest(self, prefix: str, tenant_id: str) -> list[str]:
        """Title completions for prefix within tenant; [] on any engine failure."""
        if not prefix.strip():
            return []
        try:
            return await self.gateway.suggest(
                prefix.strip(), tenant_id, limit=self.suggest_limit
            )
        except SearchServiceException as e:
            logger.warning("Suggestions unavailable for tenant %s: %s", tenant_id, e.message)
            return []

    async def stats(self) -> list[IndexStats]:
        return await self.gateway.stats()

    async def index_document(
        self,
        collection: str,
        snapshot: Mapping[str, Any],
        tenant_id: str,
    ) -> tuple[SearchDocument, WriteResult]:
        """Manually upsert a snapshot into collection for the caller's tenant.

        Permissions are derived again from the snapshot; any permissions the
        caller sent are ignored.

        Raises:
            ValidationException: unknown collection or missing id.
            AuthorizationException: snapshot names another tenant.
        """
        kind = kind_for_collection(collection)
        if kind is None:
            raise ValidationException(
                f"Unknown collection: {collection}", field="collection"
            )
        supplied_tenant = snapshot.get("tenant_id") or snapshot.get("tenantId")
        if supplied_tenant and supplied_tenant != tenant_id:
            raise AuthorizationException(
                resource=collection,
                action="write",
                message="Cannot index a document for another tenant",
            )
        now = utc_now()
        document = map_document(kind, snapshot, tenant_id, now)
        if not document.id:
            raise ValidationException("Document id is required", field="document.id")
        version = to_epoch_millis(document.updated_at or now)
        result = await self.gateway.upsert(collection, document, version=version)
        logger.info(
            "Manual index %s/%s for tenant %s: %s",
            collection,
            document.id,
            tenant_id,
            result.value,
        )
        return document, result
