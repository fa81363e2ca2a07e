"""Application services: document mapping and query compilation (pure, no I/O)."""

from app.application.services.document_mapper import (
    ELEVATED_ROLES,
    derive_permissions,
    map_document,
    map_template,
    map_user,
    map_work_item,
)
from app.application.services.query_compiler import QueryCompiler

__all__ = [
    "ELEVATED_ROLES",
    "QueryCompiler",
    "derive_permissions",
    "map_document",
    "map_template",
    "map_user",
    "map_work_item",
]
