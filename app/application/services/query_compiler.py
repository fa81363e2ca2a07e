"""Query compiler: SearchRequest -> engine query body (Elasticsearch DSL).

The tenant filter is always emitted as a hard filter clause, so no other
clause can widen the result set past the caller's tenant. Delete
tombstones are excluded with a must_not clause.
"""

from __future__ import annotations

import logging
from typing import Any

from app.application.dtos.search import (
    CompiledQuery,
    DateRange,
    Pagination,
    SearchFilters,
    SearchRequest,
    SortField,
)
from app.domain.documents import role_token, user_token
from app.domain.enums import ALL_COLLECTIONS, DocumentKind, SortOrder
from app.domain.exceptions import ValidationException

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_RESULT_WINDOW = 10_000
TEXT_FIELDS: tuple[str, ...] = ("title^3", "body^2", "tags^1.5")
HIGHLIGHT_FIELDS: tuple[str, ...] = ("title", "body")

# Facet filter name on SearchFilters -> document field.
FACET_FIELDS: dict[str, str] = {
    "type": "type",
    "work_item_type": "workItemType",
    "status": "status",
    "priority": "priority",
    "assigned_to": "assignedTo",
    "tags": "tags",
}

# Aggregation name -> field. Always requested.
AGGREGATIONS: dict[str, str] = {
    "types": "type",
    "statuses": "status",
    "priorities": "priority",
}

DATE_RANGE_FIELDS = frozenset({"createdAt", "updatedAt", "dueDate"})

TOMBSTONE_CLAUSE: dict[str, Any] = {"term": {"deleted": True}}

# Sortable field -> (engine field, type used when a collection lacks it).
SORT_FIELDS: dict[str, tuple[str, str | None]] = {
    "_score": ("_score", None),
    "title": ("title.keyword", "keyword"),
    "createdAt": ("createdAt", "date"),
    "updatedAt": ("updatedAt", "date"),
    "dueDate": ("dueDate", "date"),
    "priority": ("priority", "keyword"),
    "status": ("status", "keyword"),
    "progress": ("progress", "integer"),
    "workItemType": ("workItemType", "keyword"),
    "type": ("type", "keyword"),
}

DEFAULT_SORT: tuple[SortField, ...] = (
    SortField("_score", SortOrder.DESC),
    SortField("updatedAt", SortOrder.DESC),
)


class QueryCompiler:
    """Builds a CompiledQuery from a validated SearchRequest (stateless)."""

    def __init__(
        self,
        enforce_document_permissions: bool = False,
        max_result_window: int = MAX_RESULT_WINDOW,
    ) -> None:
        self.enforce_document_permissions = enforce_document_permissions
        self.max_result_window = max_result_window

    def compile(self, request: SearchRequest) -> CompiledQuery:
        """Compile request into collections plus a query body.

        Raises:
            ValidationException: negative offset, page past the result
                window, unknown sort or date-range field, inverted range.
        """
        if not request.tenant_id:
            raise ValidationException("tenant_id is required", field="tenantId")

        filters = request.filters or SearchFilters()
        offset, size = self._paginate(request.pagination)

        body: dict[str, Any] = {
            "query": {
                "bool": {
                    "must": [self._text_clause(request.query)],
                    "filter": self._filter_clauses(request, filters),
                    "must_not": [TOMBSTONE_CLAUSE],
                }
            },
            "sort": self._sort_clauses(request.sort or DEFAULT_SORT),
            "from": offset,
            "size": size,
            "aggs": {name: {"terms": {"field": field}} for name, field in AGGREGATIONS.items()},
            "highlight": {"fields": {name: {} for name in HIGHLIGHT_FIELDS}},
            "track_scores": True,
            "track_total_hits": True,
        }
        collections = self.select_collections(filters.type)
        logger.debug(
            "Compiled search for tenant %s over %s", request.tenant_id, ",".join(collections)
        )
        return CompiledQuery(collections=collections, body=body)

    @staticmethod
    def select_collections(types: tuple[str, ...]) -> tuple[str, ...]:
        """Collections to search for a type filter; all when none is known."""
        known = DocumentKind.values()
        selected = tuple(
            DocumentKind(kind).collection
            for kind in dict.fromkeys(types)
            if kind in known
        )
        return selected or ALL_COLLECTIONS

    @staticmethod
    def _text_clause(query: str) -> dict[str, Any]:
        text = (query or "").strip()
        if not text:
            return {"match_all": {}}
        return {
            "multi_match": {
                "query": text,
                "fields": list(TEXT_FIELDS),
                "type": "best_fields",
                "fuzziness": "AUTO",
            }
        }

    def _filter_clauses(
        self, request: SearchRequest, filters: SearchFilters
    ) -> list[dict[str, Any]]:
        clauses: list[dict[str, Any]] = [{"term": {"tenantId": request.tenant_id}}]
        for attr, field in FACET_FIELDS.items():
            values = getattr(filters, attr)
            if values:
                clauses.append({"terms": {field: list(dict.fromkeys(values))}})
        if filters.date_range is not None:
            clauses.append(self._range_clause(filters.date_range))
        if self.enforce_document_permissions:
            grants = [user_token(request.user_id)]
            if request.user_role:
                grants.append(role_token(request.user_role))
            clauses.append({"terms": {"permissions": grants}})
        return clauses

    @staticmethod
    def _range_clause(date_range: DateRange) -> dict[str, Any]:
        if date_range.field not in DATE_RANGE_FIELDS:
            raise ValidationException(
                f"Unsupported date range field: {date_range.field}",
                field="filters.dateRange.field",
            )
        if date_range.start and date_range.end and date_range.start > date_range.end:
            raise ValidationException(
                "Date range start must not be after end",
                field="filters.dateRange",
            )
        bounds: dict[str, str] = {}
        if date_range.start is not None:
            bounds["gte"] = date_range.start.isoformat()
        if date_range.end is not None:
            bounds["lte"] = date_range.end.isoformat()
        return {"range": {date_range.field: bounds}}

    @staticmethod
    def _sort_clauses(sort: tuple[SortField, ...]) -> list[dict[str, Any]]:
        clauses: list[dict[str, Any]] = []
        for item in sort:
            if item.field not in SORT_FIELDS:
                raise ValidationException(
                    f"Unsupported sort field: {item.field}",
                    field="sort.field",
                )
            engine_field, unmapped_type = SORT_FIELDS[item.field]
            spec: dict[str, Any] = {"order": SortOrder(item.order).value}
            if unmapped_type:
                spec["unmapped_type"] = unmapped_type
            clauses.append({engine_field: spec})
        return clauses

    def _paginate(self, pagination: Pagination | None) -> tuple[int, int]:
        if pagination is None:
            return 0, DEFAULT_PAGE_SIZE
        if pagination.offset < 0:
            raise ValidationException(
                "pagination.from must be >= 0", field="pagination.from"
            )
        size = max(1, min(MAX_PAGE_SIZE, pagination.size))
        if pagination.offset + size > self.max_result_window:
            raise ValidationException(
                f"pagination.from + size must not exceed {self.max_result_window}",
                field="pagination.from",
            )
        return pagination.offset, size
