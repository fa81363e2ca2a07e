"""Unit tests for SearchService (timing, suggestion fallback, manual indexing)."""

from unittest.mock import AsyncMock

import pytest

from app.application.dtos.search import Pagination, SearchRequest, SearchResult
from app.application.services.query_compiler import QueryCompiler
from app.application.use_cases.search import SearchService
from app.domain.enums import WriteResult
from app.domain.exceptions import (
    AuthorizationException,
    UpstreamUnavailableException,
    ValidationException,
)
from app.infrastructure.search.memory_gateway import InMemoryIndexGateway


def _request(**kwargs) -> SearchRequest:
    return SearchRequest(tenant_id="t1", user_id="u1", user_role="member", **kwargs)


async def test_search_reports_execution_time() -> None:
    gateway = AsyncMock()
    gateway.query.return_value = SearchResult(hits=[], total=0)
    ticks = iter([10.0, 10.0125])
    service = SearchService(gateway, QueryCompiler(), clock=lambda: next(ticks))

    result = await service.search(_request(query="launch"))

    assert result.execution_time_ms == 12.5
    compiled = gateway.query.await_args.args[0]
    assert compiled.body["query"]["bool"]["filter"][0] == {"term": {"tenantId": "t1"}}


async def test_search_validation_error_never_reaches_engine() -> None:
    gateway = AsyncMock()
    service = SearchService(gateway, QueryCompiler())

    with pytest.raises(ValidationException):
        await service.search(_request(pagination=Pagination(offset=-1, size=10)))
    gateway.query.assert_not_awaited()


async def test_search_engine_failure_propagates() -> None:
    gateway = AsyncMock()
    gateway.query.side_effect = UpstreamUnavailableException("search_engine", "timeout")
    service = SearchService(gateway, QueryCompiler())
    with pytest.raises(UpstreamUnavailableException):
        await service.search(_request())


async def test_suggest_degrades_to_empty_list() -> None:
    gateway = AsyncMock()
    gateway.suggest.side_effect = UpstreamUnavailableException("search_engine", "timeout")
    service = SearchService(gateway, QueryCompiler())
    assert await service.suggest("lau", "t1") == []


async def test_suggest_blank_prefix_skips_engine() -> None:
    gateway = AsyncMock()
    service = SearchService(gateway, QueryCompiler())
    assert await service.suggest("  ", "t1") == []
    gateway.suggest.assert_not_awaited()


async def test_suggest_passes_limit() -> None:
    gateway = AsyncMock()
    gateway.suggest.return_value = ["Launch plan"]
    service = SearchService(gateway, QueryCompiler(), suggest_limit=3)
    assert await service.suggest(" lau ", "t1") == ["Launch plan"]
    gateway.suggest.assert_awaited_once_with("lau", "t1", limit=3)


async def test_index_document_recomputes_permissions() -> None:
    gateway = InMemoryIndexGateway()
    service = SearchService(gateway, QueryCompiler())

    document, result = await service.index_document(
        "work_items",
        {"id": "wi7", "title": "Manual", "assignedTo": "u2", "permissions": ["role:Everyone"]},
        "t1",
    )

    assert result == WriteResult.CREATED
    assert document.tenant_id == "t1"
    stored = gateway.get_source("work_items", "wi7")
    assert "role:Everyone" not in stored["permissions"]
    assert "user:u2" in stored["permissions"]


async def test_index_document_rejects_unknown_collection() -> None:
    service = SearchService(InMemoryIndexGateway(), QueryCompiler())
    with pytest.raises(ValidationException):
        await service.index_document("invoices", {"id": "x"}, "t1")


async def test_index_document_rejects_other_tenant() -> None:
    service = SearchService(InMemoryIndexGateway(), QueryCompiler())
    with pytest.raises(AuthorizationException):
        await service.index_document("users", {"id": "u1", "tenantId": "t2"}, "t1")


async def test_index_document_requires_id() -> None:
    service = SearchService(InMemoryIndexGateway(), QueryCompiler())
    with pytest.raises(ValidationException):
        await service.index_document("templates", {"name": "No id"}, "t1")
