"""Gateway interfaces (ports) for the search engine and bulk reindexing.

Protocols define contracts for infrastructure implementations (DIP).
Implementations do not retry internally; callers own the retry policy.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from app.application.dtos.search import CompiledQuery, IndexStats, SearchResult
    from app.domain.documents import SearchDocument
    from app.domain.enums import WriteResult
    from app.domain.events import ReindexRequested


class IIndexGateway(Protocol):
    """Capability interface over the search engine.

    Writes block until the engine makes them visible to search
    (read-after-write). Every write carries a version (event time in epoch
    millis); a write whose version is older than the stored one is a no-op.
    """

    async def ensure_collections(self) -> None:
        """Create missing collections with their settings and mappings."""

    async def upsert(
        self, collection: str, document: SearchDocument, *, version: int
    ) -> WriteResult:
        """Create or fully replace document by id.

        Returns NOOP when the stored version is newer or the stored document
        belongs to another tenant (tenant is immutable).
        """

    async def partial_update(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        *,
        version: int,
        updated_at: datetime,
    ) -> WriteResult:
        """Merge fields into an existing document and stamp updatedAt.

        Raises ResourceNotFoundException when the id is not indexed. A
        deleted document is left as it is (NOOP).
        """

    async def delete(self, collection: str, document_id: str, *, version: int) -> WriteResult:
        """Replace the document with a tombstone at version.

        The tombstone blocks older upserts and partial updates until it is
        purged. Returns NOT_FOUND when nothing was indexed, NOOP when the
        stored document or tombstone is at least as new; never raises for a
        missing id.
        """

    async def purge_tombstones(self, before_version: int) -> int:
        """Drop tombstones whose version is older than before_version; returns the count."""

    async def query(self, compiled: CompiledQuery) -> SearchResult:
        """Run a compiled query across its collections."""

    async def suggest(self, prefix: str, tenant_id: str, *, limit: int = 10) -> list[str]:
        """Ranked title completions for prefix within tenant."""

    async def stats(self) -> list[IndexStats]:
        """Per-collection document counts, size and health."""

    async def close(self) -> None:
        """Release the engine connection."""


class IReindexCoordinator(Protocol):
    """Bulk resynchronization collaborator (outside the per-event pipeline)."""

    async def request_reindex(self, request: ReindexRequested) -> None:
        """Schedule a reindex for the requested scope."""
