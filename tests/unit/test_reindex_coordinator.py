"""Unit tests for LoggingReindexCoordinator."""

import logging
from datetime import UTC, datetime

from app.domain.events import ReindexRequested, ReindexScope
from app.infrastructure.services.reindex_coordinator import LoggingReindexCoordinator

NOW = datetime(2024, 5, 1, tzinfo=UTC)


def _request(scope: ReindexScope, **kwargs) -> ReindexRequested:
    return ReindexRequested(
        routing_key=f"search.reindex.{scope.value}", occurred_at=NOW, scope=scope, **kwargs
    )


async def test_records_and_logs_tenant_reindex(caplog) -> None:
    coordinator = LoggingReindexCoordinator()
    with caplog.at_level(logging.INFO):
        await coordinator.request_reindex(_request(ReindexScope.TENANT, tenant_id="t1"))
    assert [r.tenant_id for r in coordinator.requests] == ["t1"]
    assert "tenant t1" in caplog.text


async def test_history_is_bounded() -> None:
    coordinator = LoggingReindexCoordinator(history_size=2)
    for tenant in ("t1", "t2", "t3"):
        await coordinator.request_reindex(_request(ReindexScope.TENANT, tenant_id=tenant))
    assert [r.tenant_id for r in coordinator.requests] == ["t2", "t3"]


async def test_full_reindex(caplog) -> None:
    coordinator = LoggingReindexCoordinator()
    with caplog.at_level(logging.INFO):
        await coordinator.request_reindex(_request(ReindexScope.ALL))
    assert "Full reindex requested" in caplog.text
