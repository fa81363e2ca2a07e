"""Health check endpoints for liveness and readiness."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.v1.dependencies import get_context
from app.core.service_context import ServiceContext
from app.domain.exceptions import SearchServiceException
from app.infrastructure.messaging.event_consumer import ConsumerState
from app.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Search engine or consumer not ready", "model": ReadinessErrorResponse}},
)
async def readiness_check(
    context: Annotated[ServiceContext, Depends(get_context)],
) -> ReadinessResponse | JSONResponse:
    """Return 200 if the engine answers stats and the consumer (if any) is connected.

    A consumer that is reconnecting, or has given up (terminated), makes the
    service not ready.
    """
    try:
        await context.gateway.stats()
    except SearchServiceException as e:
        return _not_ready(f"search engine unavailable: {e.message}")

    consumer_state = "disabled"
    if context.consumer is not None:
        state = context.consumer.state
        consumer_state = state.value
        if state is not ConsumerState.CONNECTED:
            return _not_ready(f"event consumer {state.value}")

    return ReadinessResponse(consumer=consumer_state)


def _not_ready(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content=ReadinessErrorResponse(
            status="not_ready",
            message=message,
        ).model_dump(),
    )
