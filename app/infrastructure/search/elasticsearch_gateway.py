"""Elasticsearch implementation of IIndexGateway.

Writes use refresh=wait_for so a caller that writes then searches sees the
change. Version and tenant checks run inside the engine (painless scripts
on the update API), which gives per-document atomicity without in-process
locks. Deletes go through the same path and leave a versioned tombstone
until purge_tombstones drops it. The client is built with max_retries=0: retries belong to the
synchronizer, and read-path failures surface immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from app.application.dtos.search import CompiledQuery, IndexStats, SearchHit, SearchResult
from app.core.config import Settings
from app.domain.documents import SearchDocument, document_from_source
from app.domain.enums import ALL_COLLECTIONS, IndexHealth, WriteResult
from app.domain.exceptions import (
    IndexOperationException,
    ResourceNotFoundException,
    SearchServiceException,
    UpstreamUnavailableException,
)
from app.infrastructure.search.mappings import (
    SUGGEST_FIELD,
    TENANT_CONTEXT,
    build_write_source,
    index_mappings,
    index_settings,
)
from app.shared.telemetry.tracing import traced
from app.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SEARCH_ENGINE = "search_engine"

# Replace the stored document unless it is newer, owned by another tenant,
# or a tombstone at the same version.
UPSERT_SCRIPT = """
if (ctx._source.tenantId != null && ctx._source.tenantId != params.doc.tenantId) {
  ctx.op = 'noop';
  return;
}
if (ctx._source.syncVersion != null && (ctx._source.syncVersion > params.version
    || (ctx._source.deleted == true && ctx._source.syncVersion == params.version))) {
  ctx.op = 'noop';
  return;
}
ctx._source.clear();
ctx._source.putAll(params.doc);
""".strip()

# Merge named fields unless the stored document is newer or deleted.
PARTIAL_UPDATE_SCRIPT = """
if (ctx._source.deleted == true) {
  ctx.op = 'noop';
  return;
}
if (ctx._source.syncVersion != null && ctx._source.syncVersion > params.version) {
  ctx.op = 'noop';
  return;
}
for (entry in params.fields.entrySet()) {
  ctx._source[entry.getKey()] = entry.getValue();
}
ctx._source.updatedAt = params.updatedAt;
ctx._source.syncVersion = params.version;
""".strip()

# Reduce the document to a tombstone unless the stored copy is newer or
# already a tombstone at this version. The owning tenant is kept.
DELETE_SCRIPT = """
if (ctx._source.syncVersion != null && (ctx._source.syncVersion > params.version
    || (ctx._source.deleted == true && ctx._source.syncVersion == params.version))) {
  ctx.op = 'noop';
  return;
}
def tenantId = ctx._source.tenantId;
ctx._source.clear();
ctx._source.id = params.id;
if (tenantId != null) {
  ctx._source.tenantId = tenantId;
}
ctx._source.deleted = true;
ctx._source.syncVersion = params.version;
""".strip()

# Engine result of a tombstone write -> outcome. "created" means the id
# was not indexed; the tombstone is still stored.
_DELETE_RESULTS = {
    "created": WriteResult.NOT_FOUND,
    "updated": WriteResult.DELETED,
    "noop": WriteResult.NOOP,
}

_RESULTS = {
    "created": WriteResult.CREATED,
    "updated": WriteResult.UPDATED,
    "noop": WriteResult.NOOP,
}

_RETRYABLE_STATUSES = frozenset({409, 429})


def create_elasticsearch_client(settings: Settings) -> AsyncElasticsearch:
    """Build the async client from settings (no retries, bounded timeout)."""
    basic_auth = None
    if settings.elasticsearch_username and settings.elasticsearch_password:
        basic_auth = (
            settings.elasticsearch_username,
            settings.elasticsearch_password.get_secret_value(),
        )
    return AsyncElasticsearch(
        settings.elasticsearch_url,
        basic_auth=basic_auth,
        request_timeout=settings.elasticsearch_request_timeout,
        max_retries=0,
        retry_on_timeout=False,
    )


def _body(response: Any) -> Any:
    """Plain body of a client response (dicts pass through unchanged)."""
    return getattr(response, "body", response)


def _status_of(error: ApiError) -> int:
    meta = getattr(error, "meta", None)
    return int(getattr(meta, "status", 0) or 0)


@contextmanager
def engine_errors(
    operation: str,
    collection: str | None = None,
    document_id: str | None = None,
) -> Iterator[None]:
    """Translate client errors into the service taxonomy.

    Transport failures, timeouts, 409 (version conflict left after the
    engine's own retry_on_conflict), 429 and 5xx are retryable
    (UpstreamUnavailableException); any other rejection is terminal
    (IndexOperationException).
    """
    try:
        yield
    except SearchServiceException:
        raise
    except TransportError as e:
        raise UpstreamUnavailableException(SEARCH_ENGINE, f"{type(e).__name__}: {e}") from e
    except ApiError as e:
        status = _status_of(e)
        if status in _RETRYABLE_STATUSES or status >= 500:
            raise UpstreamUnavailableException(SEARCH_ENGINE, f"HTTP {status}") from e
        raise IndexOperationException(
            operation, f"HTTP {status}: {e.message}", collection, document_id
        ) from e


class ElasticsearchIndexGateway:
    """Index gateway over an AsyncElasticsearch client.

    Logical collection names (work_items, users, templates) map to indices
    named `<prefix>_<collection>`.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        *,
        index_prefix: str = "htma",
        shards: int = 1,
        replicas: int = 0,
    ) -> None:
        self.client = client
        self.index_prefix = index_prefix
        self.shards = shards
        self.replicas = replicas

    def index_name(self, collection: str) -> str:
        return f"{self.index_prefix}_{collection}"

    def collection_of(self, index: str) -> str:
        prefix = f"{self.index_prefix}_"
        return index[len(prefix):] if index.startswith(prefix) else index

    @traced("search.ensure_collections")
    async def ensure_collections(self) -> None:
        for collection in ALL_COLLECTIONS:
            index = self.index_name(collection)
            with engine_errors("ensure_collections", collection):
                if await self.client.indices.exists(index=index):
                    continue
                try:
                    await self.client.indices.create(
                        index=index,
                        settings=index_settings(self.shards, self.replicas),
                        mappings=index_mappings(collection),
                    )
                    logger.info("Created index %s", index)
                except ApiError as e:
                    # Another instance created it between exists and create.
                    if "resource_already_exists_exception" not in str(e):
                        raise

    @traced("search.upsert")
    async def upsert(
        self, collection: str, document: SearchDocument, *, version: int
    ) -> WriteResult:
        source = build_write_source(document, version)
        with engine_errors("upsert", collection, document.id):
            response = await self.client.update(
                index=self.index_name(collection),
                id=document.id,
                script={
                    "source": UPSERT_SCRIPT,
                    "lang": "painless",
                    "params": {"doc": source, "version": version},
                },
                upsert=source,
                refresh="wait_for",
                retry_on_conflict=3,
            )
        return _RESULTS.get(_body(response).get("result"), WriteResult.UPDATED)

    @traced("search.partial_update")
    async def partial_update(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        *,
        version: int,
        updated_at: datetime,
    ) -> WriteResult:
        with engine_errors("partial_update", collection, document_id):
            try:
                response = await self.client.update(
                    index=self.index_name(collection),
                    id=document_id,
                    script={
                        "source": PARTIAL_UPDATE_SCRIPT,
                        "lang": "painless",
                        "params": {
                            "fields": dict(fields),
                            "updatedAt": updated_at.isoformat(),
                            "version": version,
                        },
                    },
                    refresh="wait_for",
                    retry_on_conflict=3,
                )
            except NotFoundError as e:
                raise ResourceNotFoundException(collection, document_id) from e
        return _RESULTS.get(_body(response).get("result"), WriteResult.UPDATED)

    @traced("search.delete")
    async def delete(self, collection: str, document_id: str, *, version: int) -> WriteResult:
        tombstone = {"id": document_id, "deleted": True, "syncVersion": version}
        with engine_errors("delete", collection, document_id):
            response = await self.client.update(
                index=self.index_name(collection),
                id=document_id,
                script={
                    "source": DELETE_SCRIPT,
                    "lang": "painless",
                    "params": {"id": document_id, "version": version},
                },
                upsert=tombstone,
                refresh="wait_for",
                retry_on_conflict=3,
            )
        return _DELETE_RESULTS.get(_body(response).get("result"), WriteResult.DELETED)

    @traced("search.purge_tombstones")
    async def purge_tombstones(self, before_version: int) -> int:
        with engine_errors("purge_tombstones"):
            response = await self.client.delete_by_query(
                index=[self.index_name(c) for c in ALL_COLLECTIONS],
                ignore_unavailable=True,
                conflicts="proceed",
                refresh=True,
                query={
                    "bool": {
                        "filter": [
                            {"term": {"deleted": True}},
                            {"range": {"syncVersion": {"lt": before_version}}},
                        ]
                    }
                },
            )
        return int(_body(response).get("deleted") or 0)

    @traced("search.query")
    async def query(self, compiled: CompiledQuery) -> SearchResult:
        params = {("from_" if key == "from" else key): value for key, value in compiled.body.items()}
        with engine_errors("query"):
            response = await self.client.search(
                index=[self.index_name(c) for c in compiled.collections],
                ignore_unavailable=True,
                **params,
            )
        body = _body(response)
        hits_section = body.get("hits", {})
        hits: list[SearchHit] = []
        for hit in hits_section.get("hits", []):
            try:
                document = document_from_source(hit.get("_source", {}))
            except (ValueError, KeyError, TypeError):
                logger.warning("Skipping unreadable document %s in %s", hit.get("_id"), hit.get("_index"))
                continue
            hits.append(
                SearchHit(
                    document=document,
                    score=hit.get("_score"),
                    highlights=dict(hit.get("highlight") or {}),
                )
            )
        total = hits_section.get("total", 0)
        if isinstance(total, Mapping):
            total = total.get("value", 0)
        aggregations = {
            name: {str(bucket["key"]): int(bucket["doc_count"]) for bucket in agg.get("buckets", [])}
            for name, agg in (body.get("aggregations") or {}).items()
        }
        return SearchResult(hits=hits, total=int(total), aggregations=aggregations)

    @traced("search.suggest")
    async def suggest(self, prefix: str, tenant_id: str, *, limit: int = 10) -> list[str]:
        with engine_errors("suggest"):
            response = await self.client.search(
                index=[self.index_name(c) for c in ALL_COLLECTIONS],
                ignore_unavailable=True,
                size=0,
                source=False,
                suggest={
                    "titles": {
                        "prefix": prefix,
                        "completion": {
                            "field": SUGGEST_FIELD,
                            "size": limit,
                            "skip_duplicates": True,
                            "contexts": {TENANT_CONTEXT: [tenant_id]},
                        },
                    }
                },
            )
        entries = (_body(response).get("suggest") or {}).get("titles") or []
        texts: dict[str, None] = {}
        for entry in entries:
            for option in entry.get("options", []):
                texts.setdefault(option["text"], None)
        return list(texts)[:limit]

    @traced("search.stats")
    async def stats(self) -> list[IndexStats]:
        with engine_errors("stats"):
            rows = await self.client.cat.indices(index=f"{self.index_prefix}_*", format="json")
        now = utc_now()
        known = {self.index_name(c) for c in ALL_COLLECTIONS}
        result = []
        for row in _body(rows):
            index = row.get("index", "")
            if index not in known:
                continue
            health = row.get("health", "red")
            result.append(
                IndexStats(
                    name=self.collection_of(index),
                    document_count=int(row.get("docs.count") or 0),
                    size=row.get("store.size") or "0b",
                    health=IndexHealth(health) if health in IndexHealth.values() else IndexHealth.RED,
                    last_updated=now,
                )
            )
        return sorted(result, key=lambda s: s.name)

    async def close(self) -> None:
        await self.client.close()
        logger.info("Elasticsearch client closed")
