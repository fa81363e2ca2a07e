"""Unit tests for ElasticsearchIndexGateway against a mocked AsyncElasticsearch client."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import ApiError, ConflictError, ConnectionError as ESConnectionError, NotFoundError

from app.application.dtos.search import CompiledQuery
from app.application.services.document_mapper import map_work_item
from app.domain.enums import IndexHealth, WriteResult
from app.domain.exceptions import (
    IndexOperationException,
    ResourceNotFoundException,
    UpstreamUnavailableException,
)
from app.infrastructure.search.elasticsearch_gateway import DELETE_SCRIPT, ElasticsearchIndexGateway

VERSION = 1_714_564_800_000


def _meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def _api_error(cls: type[ApiError], status: int, message: str = "error") -> ApiError:
    return cls(message, meta=_meta(status), body={"error": message})


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock()
    mock.update = AsyncMock(return_value={"result": "created"})
    mock.delete = AsyncMock()
    mock.search = AsyncMock()
    mock.close = AsyncMock()
    mock.indices.exists = AsyncMock(return_value=False)
    mock.indices.create = AsyncMock()
    mock.cat.indices = AsyncMock()
    return mock


@pytest.fixture
def gateway(client: MagicMock) -> ElasticsearchIndexGateway:
    return ElasticsearchIndexGateway(client, index_prefix="htma")


def _doc():
    return map_work_item({"id": "wi1", "title": "Launch plan", "status": "open"}, "t1")


async def test_ensure_collections_creates_missing_indices(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.indices.exists.side_effect = [True, False, False]
    await gateway.ensure_collections()
    created = [call.kwargs["index"] for call in client.indices.create.await_args_list]
    assert created == ["htma_users", "htma_templates"]
    mappings = client.indices.create.await_args_list[0].kwargs["mappings"]
    assert mappings["properties"]["suggest"]["contexts"][0]["path"] == "tenantId"
    assert "email" in mappings["properties"]


async def test_ensure_collections_tolerates_concurrent_create(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.indices.create.side_effect = _api_error(
        ApiError, 400, "resource_already_exists_exception"
    )
    await gateway.ensure_collections()
    assert client.indices.create.await_count == 3


async def test_upsert_sends_versioned_script_with_upsert_body(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    result = await gateway.upsert("work_items", _doc(), version=VERSION)
    assert result == WriteResult.CREATED
    kwargs = client.update.await_args.kwargs
    assert kwargs["index"] == "htma_work_items"
    assert kwargs["id"] == "wi1"
    assert kwargs["refresh"] == "wait_for"
    assert kwargs["script"]["params"]["version"] == VERSION
    assert kwargs["upsert"]["syncVersion"] == VERSION
    assert kwargs["upsert"]["tenantId"] == "t1"
    assert kwargs["upsert"]["suggest"] == {"input": ["Launch plan"]}


async def test_upsert_noop_result(gateway: ElasticsearchIndexGateway, client: MagicMock) -> None:
    client.update.return_value = {"result": "noop"}
    assert await gateway.upsert("work_items", _doc(), version=VERSION) == WriteResult.NOOP


async def test_partial_update_missing_document(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.side_effect = _api_error(NotFoundError, 404, "document_missing_exception")
    with pytest.raises(ResourceNotFoundException):
        await gateway.partial_update(
            "work_items",
            "wi1",
            {"status": "done"},
            version=VERSION,
            updated_at=datetime(2024, 5, 1, tzinfo=UTC),
        )


async def test_delete_of_unindexed_id_leaves_tombstone(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.return_value = {"result": "created"}
    assert await gateway.delete("work_items", "wi1", version=VERSION) == WriteResult.NOT_FOUND
    kwargs = client.update.await_args.kwargs
    assert kwargs["upsert"] == {"id": "wi1", "deleted": True, "syncVersion": VERSION}
    assert kwargs["script"]["source"] == DELETE_SCRIPT
    assert kwargs["script"]["params"] == {"id": "wi1", "version": VERSION}


async def test_delete_existing_document(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.return_value = {"result": "updated"}
    assert await gateway.delete("work_items", "wi1", version=VERSION) == WriteResult.DELETED
    assert client.update.await_args.kwargs["index"] == "htma_work_items"
    client.delete.assert_not_awaited()


async def test_stale_delete_is_noop(gateway: ElasticsearchIndexGateway, client: MagicMock) -> None:
    client.update.return_value = {"result": "noop"}
    assert await gateway.delete("work_items", "wi1", version=VERSION) == WriteResult.NOOP


async def test_purge_tombstones_deletes_old_tombstones(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.delete_by_query = AsyncMock(return_value={"deleted": 4})
    assert await gateway.purge_tombstones(VERSION) == 4
    kwargs = client.delete_by_query.await_args.kwargs
    assert kwargs["conflicts"] == "proceed"
    assert kwargs["query"]["bool"]["filter"] == [
        {"term": {"deleted": True}},
        {"range": {"syncVersion": {"lt": VERSION}}},
    ]


async def test_version_conflict_is_upstream_unavailable(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.side_effect = _api_error(ConflictError, 409, "version_conflict_engine_exception")
    with pytest.raises(UpstreamUnavailableException):
        await gateway.upsert("work_items", _doc(), version=VERSION)


async def test_connection_error_is_upstream_unavailable(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.side_effect = ESConnectionError("connection refused")
    with pytest.raises(UpstreamUnavailableException) as exc_info:
        await gateway.upsert("work_items", _doc(), version=VERSION)
    assert exc_info.value.details["service"] == "search_engine"


@pytest.mark.parametrize("status", [429, 503])
async def test_overload_is_upstream_unavailable(
    gateway: ElasticsearchIndexGateway, client: MagicMock, status: int
) -> None:
    client.update.side_effect = _api_error(ApiError, status)
    with pytest.raises(UpstreamUnavailableException):
        await gateway.upsert("work_items", _doc(), version=VERSION)


async def test_rejected_write_is_index_operation_error(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.update.side_effect = _api_error(ApiError, 400, "mapper_parsing_exception")
    with pytest.raises(IndexOperationException) as exc_info:
        await gateway.upsert("work_items", _doc(), version=VERSION)
    assert exc_info.value.details["document_id"] == "wi1"


async def test_query_parses_hits_total_and_aggregations(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    source = _doc().to_source()
    client.search.return_value = {
        "hits": {
            "total": {"value": 2, "relation": "eq"},
            "hits": [
                {"_index": "htma_work_items", "_id": "wi1", "_score": 4.2, "_source": source,
                 "highlight": {"title": ["<em>Launch</em> plan"]}},
                {"_index": "htma_work_items", "_id": "bad", "_score": 1.0, "_source": {"type": "invoice"}},
            ],
        },
        "aggregations": {"statuses": {"buckets": [{"key": "open", "doc_count": 2}]}},
    }
    compiled = CompiledQuery(collections=("work_items",), body={"query": {"match_all": {}}, "from": 0, "size": 20})
    result = await gateway.query(compiled)

    kwargs = client.search.await_args.kwargs
    assert kwargs["index"] == ["htma_work_items"]
    assert kwargs["from_"] == 0
    assert "from" not in kwargs
    assert result.total == 2
    assert [hit.document.id for hit in result.hits] == ["wi1"]
    assert result.hits[0].score == 4.2
    assert result.hits[0].highlights == {"title": ["<em>Launch</em> plan"]}
    assert result.aggregations == {"statuses": {"open": 2}}


async def test_suggest_uses_tenant_context_and_dedupes(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.search.return_value = {
        "suggest": {
            "titles": [
                {"options": [{"text": "Launch plan"}, {"text": "Launch review"}, {"text": "Launch plan"}]}
            ]
        }
    }
    assert await gateway.suggest("lau", "t1", limit=5) == ["Launch plan", "Launch review"]
    completion = client.search.await_args.kwargs["suggest"]["titles"]["completion"]
    assert completion["contexts"] == {"tenant": ["t1"]}
    assert completion["size"] == 5


async def test_stats_lists_known_collections(
    gateway: ElasticsearchIndexGateway, client: MagicMock
) -> None:
    client.cat.indices.return_value = [
        {"index": "htma_work_items", "health": "green", "docs.count": "12", "store.size": "40kb"},
        {"index": "htma_users", "health": "yellow", "docs.count": "3", "store.size": "8kb"},
        {"index": "htma_legacy", "health": "red", "docs.count": "1", "store.size": "1kb"},
    ]
    stats = await gateway.stats()
    assert [s.name for s in stats] == ["users", "work_items"]
    assert stats[1].document_count == 12
    assert stats[0].health == IndexHealth.YELLOW


async def test_close_closes_client(gateway: ElasticsearchIndexGateway, client: MagicMock) -> None:
    await gateway.close()
    client.close.assert_awaited_once()
