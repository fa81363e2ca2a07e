"""Application DTOs (no engine or HTTP dependency)."""

from app.application.dtos.search import (
    CompiledQuery,
    DateRange,
    IndexStats,
    Pagination,
    SearchFilters,
    SearchHit,
    SearchRequest,
    SearchResult,
    SortField,
)

__all__ = [
    "CompiledQuery",
    "DateRange",
    "IndexStats",
    "Pagination",
    "SearchFilters",
    "SearchHit",
    "SearchRequest",
    "SearchResult",
    "SortField",
]
