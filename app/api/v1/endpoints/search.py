"""Search API: full-text search, title suggestions, index stats and manual indexing."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.api.v1.dependencies import get_current_claims, get_search_service, require_admin
from app.application.use_cases.search import SearchService
from app.core.limiter import limit_search, limit_suggest
from app.infrastructure.security.jwt import TokenClaims
from app.schemas.search import (
    IndexDocumentRequest,
    IndexDocumentResponse,
    IndexStatsResponse,
    SearchRequestBody,
    SearchResponse,
    StatsResponse,
    SuggestResponse,
)

router = APIRouter()


@router.post("", response_model=SearchResponse)
@limit_search
async def search(
    request: Request,
    body: SearchRequestBody,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    search_svc: Annotated[SearchService, Depends(get_search_service)],
):
    """Search the caller's tenant. Tenant, user and role come from the token only."""
    result = await search_svc.search(
        body.to_request(
            tenant_id=claims.tenant_id,
            user_id=claims.user_id,
            user_role=claims.role,
        )
    )
    return SearchResponse.from_result(result)


@router.get("/suggest", response_model=SuggestResponse)
@limit_suggest
async def suggest(
    request: Request,
    claims: Annotated[TokenClaims, Depends(get_current_claims)],
    search_svc: Annotated[SearchService, Depends(get_search_service)],
    q: str = Query(..., min_length=1, max_length=200),
):
    suggestions = await search_svc.suggest(q, claims.tenant_id)
    return SuggestResponse(suggestions=suggestions)


@router.get("/stats", response_model=StatsResponse)
async def stats(
    search_svc: Annotated[SearchService, Depends(get_search_service)],
    _: Annotated[TokenClaims, Depends(require_admin("stats", "read"))],
):
    """Per-collection document count, size and health (admin roles only)."""
    indices = await search_svc.stats()
    return StatsResponse(indices=[IndexStatsResponse.from_stats(s) for s in indices])


@router.post("/index", response_model=IndexDocumentResponse)
async def index_document(
    body: IndexDocumentRequest,
    search_svc: Annotated[SearchService, Depends(get_search_service)],
    claims: Annotated[TokenClaims, Depends(require_admin("index", "write"))],
):
    """Upsert one document into a collection of the caller's tenant (admin roles only).

    Permissions are recomputed from the document; supplied ones are ignored.
    """
    document, result = await search_svc.index_document(
        body.collection, body.document, claims.tenant_id
    )
    return IndexDocumentResponse(
        id=document.id, collection=body.collection, result=result.value
    )
