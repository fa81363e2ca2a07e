"""Search document model: the canonical shape of an indexable record.

A closed set of typed variants (work item, user, template) tagged by
`kind`, plus one untyped `metadata` map for free-form scalar extensions.
Documents are serialized to the engine with camelCase field names and the
kind stored under `type`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from app.domain.enums import DocumentKind
from app.domain.exceptions import ValidationException
from app.shared.utils.datetime import parse_timestamp

MetadataValue = str | int | float | bool | None

# Fields no write path may change after creation (partial updates included).
PROTECTED_FIELDS = frozenset(
    {"id", "type", "tenantId", "permissions", "syncVersion", "createdAt", "createdBy"}
)

# Engine-internal fields never returned to callers.
INTERNAL_FIELDS = frozenset({"syncVersion", "suggest"})


def tenant_token(tenant_id: str) -> str:
    return f"tenant:{tenant_id}"


def user_token(user_id: str) -> str:
    return f"user:{user_id}"


def role_token(role: str) -> str:
    return f"role:{role}"


def ensure_mutable_fields(fields: Iterable[str]) -> None:
    """Raise ValidationException if a partial update names a protected field."""
    blocked = sorted(set(fields) & PROTECTED_FIELDS)
    if blocked:
        raise ValidationException(
            f"Fields cannot be changed by a partial update: {', '.join(blocked)}",
            field=blocked[0],
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True, kw_only=True)
class SearchDocument:
    """Fields shared by every document kind."""

    kind: ClassVar[DocumentKind]

    id: str
    tenant_id: str
    title: str = ""
    body: str = ""
    tags: tuple[str, ...] = ()
    permissions: tuple[str, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str = ""
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)

    @property
    def collection(self) -> str:
        return self.kind.collection

    def to_source(self) -> dict[str, Any]:
        """Serialize to the engine document body (camelCase, JSON-safe)."""
        source: dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "tenantId": self.tenant_id,
            "title": self.title,
            "body": self.body,
            "tags": list(self.tags),
            "permissions": list(self.permissions),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "createdBy": self.created_by,
            "metadata": dict(self.metadata),
        }
        source.update(self._kind_source())
        return source

    def _kind_source(self) -> dict[str, Any]:
        return {}

    @classmethod
    def _common_kwargs(cls, source: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": str(source.get("id", "")),
            "tenant_id": str(source.get("tenantId", "")),
            "title": source.get("title") or "",
            "body": source.get("body") or "",
            "tags": tuple(source.get("tags") or ()),
            "permissions": tuple(source.get("permissions") or ()),
            "created_at": parse_timestamp(source.get("createdAt")),
            "updated_at": parse_timestamp(source.get("updatedAt")),
            "created_by": source.get("createdBy") or "",
            "metadata": dict(source.get("metadata") or {}),
        }

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> SearchDocument:
        return cls(**cls._common_kwargs(source))


@dataclass(frozen=True, kw_only=True)
class WorkItemDocument(SearchDocument):
    """Work item (objective, strategy, initiative, task, subtask)."""

    kind: ClassVar[DocumentKind] = DocumentKind.WORK_ITEM

    work_item_type: str = ""
    status: str = ""
    priority: str = ""
    assigned_to: str | None = None
    parent_id: str | None = None
    due_date: datetime | None = None
    progress: int | None = None
    dependencies: tuple[str, ...] = ()
    lineage: tuple[str, ...] = ()

    def _kind_source(self) -> dict[str, Any]:
        return {
            "workItemType": self.work_item_type,
            "status": self.status,
            "priority": self.priority,
            "assignedTo": self.assigned_to,
            "parentId": self.parent_id,
            "dueDate": _iso(self.due_date),
            "progress": self.progress,
            "dependencies": list(self.dependencies),
            "lineage": list(self.lineage),
        }

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> WorkItemDocument:
        return cls(
            **cls._common_kwargs(source),
            work_item_type=source.get("workItemType") or "",
            status=source.get("status") or "",
            priority=source.get("priority") or "",
            assigned_to=source.get("assignedTo"),
            parent_id=source.get("parentId"),
            due_date=parse_timestamp(source.get("dueDate")),
            progress=source.get("progress"),
            dependencies=tuple(source.get("dependencies") or ()),
            lineage=tuple(source.get("lineage") or ()),
        )


@dataclass(frozen=True, kw_only=True)
class UserDocument(SearchDocument):
    """Directory entry for a tenant user."""

    kind: ClassVar[DocumentKind] = DocumentKind.USER

    email: str = ""
    role: str = ""
    department: str | None = None

    def _kind_source(self) -> dict[str, Any]:
        return {"email": self.email, "role": self.role, "department": self.department}

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> UserDocument:
        return cls(
            **cls._common_kwargs(source),
            email=source.get("email") or "",
            role=source.get("role") or "",
            department=source.get("department"),
        )


@dataclass(frozen=True, kw_only=True)
class TemplateDocument(SearchDocument):
    """Reusable work item template."""

    kind: ClassVar[DocumentKind] = DocumentKind.TEMPLATE

    category: str | None = None
    industry: str | None = None
    complexity: str | None = None
    is_public: bool = False
    usage_count: int = 0

    def _kind_source(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "industry": self.industry,
            "complexity": self.complexity,
            "isPublic": self.is_public,
            "usageCount": self.usage_count,
        }

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> TemplateDocument:
        return cls(
            **cls._common_kwargs(source),
            category=source.get("category"),
            industry=source.get("industry"),
            complexity=source.get("complexity"),
            is_public=bool(source.get("isPublic", False)),
            usage_count=int(source.get("usageCount") or 0),
        )


DOCUMENT_TYPES: dict[DocumentKind, type[SearchDocument]] = {
    DocumentKind.WORK_ITEM: WorkItemDocument,
    DocumentKind.USER: UserDocument,
    DocumentKind.TEMPLATE: TemplateDocument,
}


def document_from_source(source: Mapping[str, Any]) -> SearchDocument:
    """Rebuild a typed document from an engine source body.

    Raises:
        ValueError: If `type` is not a known document kind.
    """
    kind = DocumentKind(source.get("type"))
    return DOCUMENT_TYPES[kind].from_source(source)
