"""Index settings and per-collection mappings for the search engine.

Every collection shares the analyzers, the common document fields, the
engine-internal `syncVersion` (event time in epoch millis, used to reject
stale writes), the `deleted` tombstone flag and the `suggest` completion
field. The completion field takes its tenant context from `tenantId`, so
suggestions are filtered by tenant inside the engine.
"""

from __future__ import annotations

import copy
from typing import Any

from app.domain.documents import SearchDocument

ANALYSIS: dict[str, Any] = {
    "analyzer": {
        "htma_text_analyzer": {
            "type": "custom",
            "tokenizer": "standard",
            "filter": ["lowercase", "stop", "snowball"],
        },
        "htma_search_analyzer": {
            "type": "custom",
            "tokenizer": "standard",
            "filter": ["lowercase", "stop"],
        },
    }
}

_TEXT = {
    "type": "text",
    "analyzer": "htma_text_analyzer",
    "search_analyzer": "htma_search_analyzer",
}
_KEYWORD = {"type": "keyword"}
_DATE = {"type": "date"}

SUGGEST_FIELD = "suggest"
TENANT_CONTEXT = "tenant"

COMMON_PROPERTIES: dict[str, Any] = {
    "id": _KEYWORD,
    "type": _KEYWORD,
    "tenantId": _KEYWORD,
    "title": {**_TEXT, "fields": {"keyword": {"type": "keyword", "ignore_above": 256}}},
    "body": _TEXT,
    "tags": _KEYWORD,
    "permissions": _KEYWORD,
    "createdAt": _DATE,
    "updatedAt": _DATE,
    "createdBy": _KEYWORD,
    "metadata": {"type": "object", "dynamic": True},
    "syncVersion": {"type": "long"},
    "deleted": {"type": "boolean"},
    SUGGEST_FIELD: {
        "type": "completion",
        "analyzer": "simple",
        "contexts": [{"name": TENANT_CONTEXT, "type": "category", "path": "tenantId"}],
    },
}

KIND_PROPERTIES: dict[str, dict[str, Any]] = {
    "work_items": {
        "workItemType": _KEYWORD,
        "status": _KEYWORD,
        "priority": _KEYWORD,
        "assignedTo": _KEYWORD,
        "parentId": _KEYWORD,
        "dueDate": _DATE,
        "progress": {"type": "integer"},
        "dependencies": _KEYWORD,
        "lineage": _KEYWORD,
    },
    "users": {
        "email": _KEYWORD,
        "role": _KEYWORD,
        "department": _KEYWORD,
    },
    "templates": {
        "category": _KEYWORD,
        "industry": _KEYWORD,
        "complexity": _KEYWORD,
        "isPublic": {"type": "boolean"},
        "usageCount": {"type": "integer"},
    },
}

DATE_FIELDS = frozenset(
    name
    for properties in (COMMON_PROPERTIES, *KIND_PROPERTIES.values())
    for name, spec in properties.items()
    if spec.get("type") == "date"
)


def index_settings(shards: int = 1, replicas: int = 0) -> dict[str, Any]:
    return {
        "number_of_shards": shards,
        "number_of_replicas": replicas,
        "analysis": copy.deepcopy(ANALYSIS),
    }


def index_mappings(collection: str) -> dict[str, Any]:
    """Mappings for collection (common fields plus the kind's own)."""
    properties = copy.deepcopy(COMMON_PROPERTIES)
    properties.update(copy.deepcopy(KIND_PROPERTIES.get(collection, {})))
    return {"properties": properties}


def build_write_source(document: SearchDocument, version: int) -> dict[str, Any]:
    """Engine body for document: its source plus syncVersion and suggest input."""
    source = document.to_source()
    source["syncVersion"] = version
    if document.title:
        source[SUGGEST_FIELD] = {"input": [document.title]}
    return source
