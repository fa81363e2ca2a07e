"""Health and readiness endpoint tests."""

from unittest.mock import MagicMock

from httpx import AsyncClient

from app.core.service_context import ServiceContext
from app.domain.exceptions import UpstreamUnavailableException
from app.infrastructure.messaging.event_consumer import ConsumerState


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_ready_with_engine_and_no_consumer(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "search_engine": "ok", "consumer": "disabled"}


async def test_not_ready_when_engine_down(
    client: AsyncClient, context: ServiceContext, monkeypatch
) -> None:
    async def unavailable():
        raise UpstreamUnavailableException("search_engine", "timeout")

    monkeypatch.setattr(context.gateway, "stats", unavailable)
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


async def test_not_ready_while_consumer_reconnecting(
    client: AsyncClient, context: ServiceContext
) -> None:
    consumer = MagicMock()
    consumer.state = ConsumerState.RECONNECTING
    context.consumer = consumer
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert "reconnecting" in response.json()["message"]


async def test_ready_with_connected_consumer(client: AsyncClient, context: ServiceContext) -> None:
    consumer = MagicMock()
    consumer.state = ConsumerState.CONNECTED
    context.consumer = consumer
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["consumer"] == "connected"
