"""DTOs for the search read path (no dependency on the engine or HTTP)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.domain.documents import SearchDocument
from app.domain.enums import IndexHealth, SortOrder


@dataclass(frozen=True)
class DateRange:
    """Inclusive bound on a date field; either side may be omitted."""

    field: str
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class SearchFilters:
    """Facet filters. An empty tuple imposes no constraint."""

    type: tuple[str, ...] = ()
    work_item_type: tuple[str, ...] = ()
    status: tuple[str, ...] = ()
    priority: tuple[str, ...] = ()
    assigned_to: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    date_range: DateRange | None = None


@dataclass(frozen=True)
class SortField:
    field: str
    order: SortOrder = SortOrder.DESC


@dataclass(frozen=True)
class Pagination:
    offset: int = 0
    size: int = 20


@dataclass(frozen=True)
class SearchRequest:
    """Validated search input. Identity fields come from the verified token."""

    tenant_id: str
    user_id: str
    user_role: str
    query: str = ""
    filters: SearchFilters | None = None
    sort: tuple[SortField, ...] = ()
    pagination: Pagination | None = None


@dataclass(frozen=True)
class CompiledQuery:
    """Engine query: logical collections to search plus the query body."""

    collections: tuple[str, ...]
    body: dict[str, Any]


@dataclass(frozen=True)
class SearchHit:
    document: SearchDocument
    score: float | None
    highlights: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """Ranked hits, total match count, facet counts and latency (ms)."""

    hits: list[SearchHit]
    total: int
    aggregations: dict[str, dict[str, int]] = field(default_factory=dict)
    execution_time_ms: float = 0.0


@dataclass(frozen=True)
class IndexStats:
    """Per-collection document count, store size and health."""

    name: str
    document_count: int
    size: str
    health: IndexHealth
    last_updated: datetime
