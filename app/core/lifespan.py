"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic (SRP). Used by main.py;
no business logic here, only wiring of infrastructure (logging, telemetry,
service context with gateway and consumer).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.core.config import get_settings
from app.core.service_context import ServiceContext
from app.shared.telemetry.logging import setup_logging
from app.shared.telemetry.telemetry import configure_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: logging, telemetry (if enabled), service context
    (unless one was installed on app.state beforehand, as tests do), then
    collections and consumer. Shutdown order: consumer drain, broker and
    gateway close, telemetry shutdown.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    if configure_telemetry(settings, app) is not None:
        logger.info("Telemetry initialized")

    context = getattr(app.state, "context", None)
    if context is None:
        context = ServiceContext.build(settings)
        app.state.context = context
    await context.start()
    logger.info(
        "%s started (search backend=%s, broker=%s)",
        settings.app_name,
        settings.search_backend,
        "on" if context.consumer is not None else "off",
    )

    yield

    # ---- Shutdown ----
    await context.close()
    shutdown_telemetry()
