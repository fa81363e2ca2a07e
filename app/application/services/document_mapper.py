"""Document mapper: domain entity snapshot -> SearchDocument.

Pure functions with no I/O. Payloads are validated at the broker boundary,
so malformed optional fields are coerced to empty/default here rather than
rejected. Snapshots use the producer's snake_case keys; camelCase keys are
accepted as a fallback (manual index requests send documents as stored).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from app.domain.documents import (
    MetadataValue,
    SearchDocument,
    TemplateDocument,
    UserDocument,
    WorkItemDocument,
    role_token,
    tenant_token,
    user_token,
)
from app.domain.enums import DocumentKind
from app.shared.utils.datetime import parse_timestamp

# Roles that see every work item and template in their tenant, regardless
# of assignment. Broad-access policy of the platform.
ELEVATED_ROLES: tuple[str, ...] = ("CEO", "President", "VP", "Director", "Manager")


def _pick(snapshot: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in snapshot and snapshot[key] is not None:
            return snapshot[key]
    return None


def _text(value: Any) -> str:
    if value is None or isinstance(value, (bool, Mapping, list, tuple, set)):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> str | None:
    return _text(value) or None


def _strings(value: Any) -> tuple[str, ...]:
    """Ordered, de-duplicated non-empty strings; scalars become a 1-tuple."""
    if value is None:
        return ()
    items: Iterable[Any] = value if isinstance(value, (list, tuple)) else [value]
    seen: dict[str, None] = {}
    for item in items:
        text = _text(item)
        if text:
            seen.setdefault(text, None)
    return tuple(seen)


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _number(value: Any) -> float | int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _progress(value: Any) -> int | None:
    progress = _int(value)
    if progress is None:
        return None
    return max(0, min(100, progress))


def _iso_or_none(value: Any) -> str | None:
    parsed = parse_timestamp(value)
    return parsed.isoformat() if parsed is not None else None


def _metadata(**values: Any) -> dict[str, MetadataValue]:
    return {
        key: value
        for key, value in values.items()
        if value is None or isinstance(value, (str, int, float, bool))
    }


def derive_permissions(
    tenant_id: str,
    *user_ids: str | None,
    roles: Iterable[str] = ELEVATED_ROLES,
) -> tuple[str, ...]:
    """Build the permission token set for a document.

    Always starts with tenant:<tenant_id>, then user:<id> for each present
    user id, then role:<name> for each role. Order is stable and duplicates
    are removed. The result replaces any stored value on every write.
    """
    tokens: dict[str, None] = {tenant_token(tenant_id): None}
    for user_id in user_ids:
        if user_id:
            tokens.setdefault(user_token(user_id), None)
    for role in roles:
        tokens.setdefault(role_token(role), None)
    return tuple(tokens)


def map_work_item(
    snapshot: Mapping[str, Any],
    tenant_id: str,
    occurred_at: datetime | None = None,
) -> WorkItemDocument:
    """Map a work item snapshot to its search document."""
    assigned_to = _optional_text(_pick(snapshot, "assigned_to", "assignedTo"))
    created_by = _text(_pick(snapshot, "created_by", "createdBy"))
    return WorkItemDocument(
        id=_text(_pick(snapshot, "id")),
        tenant_id=tenant_id,
        title=_text(_pick(snapshot, "title")),
        body=_text(_pick(snapshot, "description", "body", "content")),
        tags=_strings(_pick(snapshot, "tags")),
        permissions=derive_permissions(tenant_id, assigned_to, created_by or None),
        created_at=parse_timestamp(_pick(snapshot, "created_at", "createdAt")),
        updated_at=parse_timestamp(_pick(snapshot, "updated_at", "updatedAt")) or occurred_at,
        created_by=created_by,
        metadata=_metadata(
            estimatedHours=_number(_pick(snapshot, "estimated_hours", "estimatedHours")),
            actualHours=_number(_pick(snapshot, "actual_hours", "actualHours")),
            completionDate=_iso_or_none(_pick(snapshot, "completion_date", "completionDate")),
        ),
        work_item_type=_text(_pick(snapshot, "type", "work_item_type", "workItemType")),
        status=_text(_pick(snapshot, "status")),
        priority=_text(_pick(snapshot, "priority")),
        assigned_to=assigned_to,
        parent_id=_optional_text(_pick(snapshot, "parent_id", "parentId")),
        due_date=parse_timestamp(_pick(snapshot, "due_date", "dueDate")),
        progress=_progress(_pick(snapshot, "progress")),
        dependencies=_strings(_pick(snapshot, "dependencies")),
        lineage=_strings(_pick(snapshot, "lineage")),
    )


def map_user(
    snapshot: Mapping[str, Any],
    tenant_id: str,
    occurred_at: datetime | None = None,
) -> UserDocument:
    """Map a user snapshot to its directory document.

    Users are visible to the tenant and to themselves; elevated roles get
    no extra grant on user documents.
    """
    user_id = _text(_pick(snapshot, "id"))
    name = _text(_pick(snapshot, "name", "title"))
    email = _text(_pick(snapshot, "email"))
    role = _text(_pick(snapshot, "role"))
    return UserDocument(
        id=user_id,
        tenant_id=tenant_id,
        title=name,
        body=" ".join(part for part in (name, email, role) if part),
        tags=_strings(_pick(snapshot, "tags")),
        permissions=derive_permissions(tenant_id, user_id or None, roles=()),
        created_at=parse_timestamp(_pick(snapshot, "created_at", "createdAt")),
        updated_at=parse_timestamp(_pick(snapshot, "updated_at", "updatedAt")) or occurred_at,
        created_by=_text(_pick(snapshot, "created_by", "createdBy")) or "system",
        metadata=_metadata(
            lastLogin=_iso_or_none(_pick(snapshot, "last_login", "lastLogin")),
            isActive=_bool(_pick(snapshot, "is_active", "isActive"), default=True),
        ),
        email=email,
        role=role,
        department=_optional_text(_pick(snapshot, "department")),
    )


def map_template(
    snapshot: Mapping[str, Any],
    tenant_id: str,
    occurred_at: datetime | None = None,
) -> TemplateDocument:
    """Map a work item template snapshot to its search document."""
    created_by = _text(_pick(snapshot, "created_by", "createdBy"))
    return TemplateDocument(
        id=_text(_pick(snapshot, "id")),
        tenant_id=tenant_id,
        title=_text(_pick(snapshot, "name", "title")),
        body=_text(_pick(snapshot, "description", "body", "content")),
        tags=_strings(_pick(snapshot, "tags")),
        permissions=derive_permissions(tenant_id, created_by or None),
        created_at=parse_timestamp(_pick(snapshot, "created_at", "createdAt")),
        updated_at=parse_timestamp(_pick(snapshot, "updated_at", "updatedAt")) or occurred_at,
        created_by=created_by,
        metadata=_metadata(
            estimatedDuration=_number(_pick(snapshot, "estimated_duration", "estimatedDuration")),
        ),
        category=_optional_text(_pick(snapshot, "category")),
        industry=_optional_text(_pick(snapshot, "industry")),
        complexity=_optional_text(_pick(snapshot, "complexity")),
        is_public=_bool(_pick(snapshot, "is_public", "isPublic")),
        usage_count=_int(_pick(snapshot, "usage_count", "usageCount")) or 0,
    )


_MAPPERS = {
    DocumentKind.WORK_ITEM: map_work_item,
    DocumentKind.USER: map_user,
    DocumentKind.TEMPLATE: map_template,
}


def map_document(
    kind: DocumentKind,
    snapshot: Mapping[str, Any],
    tenant_id: str,
    occurred_at: datetime | None = None,
) -> SearchDocument:
    """Dispatch to the mapper for kind."""
    return _MAPPERS[kind](snapshot, tenant_id, occurred_at)
