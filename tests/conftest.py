"""Pytest configuration and fixtures for the search service.

Environment is set before app.main is imported: in-memory search backend,
no broker, no telemetry. HTTP tests run the app through httpx's ASGI
transport with a ServiceContext installed on app.state (the lifespan is
not run by ASGITransport).
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["SEARCH_BACKEND"] = "memory"
os.environ["BROKER_ENABLED"] = "false"
os.environ["TELEMETRY_ENABLED"] = "false"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.config import get_settings  # noqa: E402
from app.core.limiter import limiter  # noqa: E402
from app.core.service_context import ServiceContext  # noqa: E402
from app.infrastructure.search.memory_gateway import InMemoryIndexGateway  # noqa: E402
from app.infrastructure.security.jwt import create_access_token  # noqa: E402
from app.main import app  # noqa: E402

get_settings.cache_clear()


@pytest.fixture
def gateway() -> InMemoryIndexGateway:
    """Fresh in-memory index per test."""
    return InMemoryIndexGateway()


@pytest.fixture
async def context(gateway: InMemoryIndexGateway) -> ServiceContext:
    """Service context over the in-memory gateway, without a consumer."""
    ctx = ServiceContext.build(get_settings(), gateway=gateway, with_consumer=False)
    await ctx.gateway.ensure_collections()
    return ctx


@pytest.fixture
async def client(context: ServiceContext) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    app.state.context = context
    limiter.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.context


def _make_token(
    tenant_id: str = "t1",
    user_id: str = "u1",
    role: str = "member",
    expires_delta: timedelta | None = None,
) -> str:
    return create_access_token(
        {"userId": user_id, "tenantId": tenant_id, "role": role},
        expires_delta=expires_delta,
    )


@pytest.fixture
def make_token():
    """Factory for signed bearer tokens (tenant, user, role, expiry)."""
    return _make_token


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer headers for a regular member of tenant t1."""
    return {"Authorization": f"Bearer {_make_token()}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Bearer headers for an admin of tenant t1."""
    return {"Authorization": f"Bearer {_make_token(user_id='admin1', role='admin')}"}
