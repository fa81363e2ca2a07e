"""Search API schemas (camelCase on the wire)."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from app.application.dtos.search import (
    DateRange,
    IndexStats,
    Pagination,
    SearchFilters,
    SearchRequest,
    SearchResult,
    SortField,
)
from app.domain.documents import INTERNAL_FIELDS
from app.domain.enums import SortOrder
from app.shared.utils.datetime import ensure_utc


class DateRangeBody(BaseModel):
    """Inclusive date bound; from-only and to-only are both valid."""

    model_config = ConfigDict(populate_by_name=True)

    field: str = Field(..., min_length=1)
    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None

    def to_dto(self) -> DateRange:
        return DateRange(field=self.field, start=ensure_utc(self.from_), end=ensure_utc(self.to))


class SearchFiltersBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: list[str] = Field(default_factory=list)
    work_item_type: list[str] = Field(default_factory=list, alias="workItemType")
    status: list[str] = Field(default_factory=list)
    priority: list[str] = Field(default_factory=list)
    assigned_to: list[str] = Field(default_factory=list, alias="assignedTo")
    tags: list[str] = Field(default_factory=list)
    date_range: DateRangeBody | None = Field(default=None, alias="dateRange")

    def to_dto(self) -> SearchFilters:
        return SearchFilters(
            type=tuple(self.type),
            work_item_type=tuple(self.work_item_type),
            status=tuple(self.status),
            priority=tuple(self.priority),
            assigned_to=tuple(self.assigned_to),
            tags=tuple(self.tags),
            date_range=self.date_range.to_dto() if self.date_range else None,
        )


class SortFieldBody(BaseModel):
    field: str = Field(..., min_length=1)
    order: Literal["asc", "desc"] = "desc"


class PaginationBody(BaseModel):
    """Offset paging. size outside [1, 100] is clamped by the compiler."""

    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(default=0, alias="from")
    size: int = 20


class SearchRequestBody(BaseModel):
    """POST /search body. Identity fields come from the token, never from here."""

    query: str = Field(default="", max_length=1000)
    filters: SearchFiltersBody | None = None
    sort: list[SortFieldBody] = Field(default_factory=list)
    pagination: PaginationBody | None = None

    @field_validator("query", mode="before")
    @classmethod
    def query_none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_request(self, tenant_id: str, user_id: str, user_role: str) -> SearchRequest:
        return SearchRequest(
            tenant_id=tenant_id,
            user_id=user_id,
            user_role=user_role,
            query=self.query,
            filters=self.filters.to_dto() if self.filters else None,
            sort=tuple(SortField(s.field, SortOrder(s.order)) for s in self.sort),
            pagination=(
                Pagination(offset=self.pagination.from_, size=self.pagination.size)
                if self.pagination
                else None
            ),
        )


class SearchResponse(BaseModel):
    """Ranked documents with _score and _highlights, facet counts and latency (ms)."""

    model_config = ConfigDict(populate_by_name=True)

    documents: list[dict[str, Any]]
    total: int
    aggregations: dict[str, dict[str, int]] = Field(default_factory=dict)
    execution_time: float = Field(..., alias="executionTime")

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResponse":
        documents = []
        for hit in result.hits:
            source = {
                key: value
                for key, value in hit.document.to_source().items()
                if key not in INTERNAL_FIELDS
            }
            source["_score"] = hit.score
            source["_highlights"] = hit.highlights or None
            documents.append(source)
        return cls(
            documents=documents,
            total=result.total,
            aggregations=result.aggregations,
            execution_time=result.execution_time_ms,
        )


class SuggestResponse(BaseModel):
    suggestions: list[str]


class IndexStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    document_count: int = Field(..., alias="documentCount")
    size: str
    health: Literal["green", "yellow", "red"]
    last_updated: AwareDatetime = Field(..., alias="lastUpdated")

    @classmethod
    def from_stats(cls, stats: IndexStats) -> "IndexStatsResponse":
        return cls(
            name=stats.name,
            document_count=stats.document_count,
            size=stats.size,
            health=stats.health.value,
            last_updated=stats.last_updated,
        )


class StatsResponse(BaseModel):
    indices: list[IndexStatsResponse]


class IndexDocumentRequest(BaseModel):
    """Manual index request (admin). document is a snapshot as producers send it."""

    collection: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("collection", "indexName")
    )
    document: dict[str, Any]


class IndexDocumentResponse(BaseModel):
    id: str
    collection: str
    result: str
