"""Pydantic request/response schemas for the API and event payloads."""

from app.schemas.health import HealthResponse, ReadinessErrorResponse, ReadinessResponse
from app.schemas.search import (
    IndexDocumentRequest,
    IndexDocumentResponse,
    IndexStatsResponse,
    SearchRequestBody,
    SearchResponse,
    StatsResponse,
    SuggestResponse,
)

__all__ = [
    "HealthResponse",
    "IndexDocumentRequest",
    "IndexDocumentResponse",
    "IndexStatsResponse",
    "ReadinessErrorResponse",
    "ReadinessResponse",
    "SearchRequestBody",
    "SearchResponse",
    "StatsResponse",
    "SuggestResponse",
]
