"""Broker boundary: raw message -> typed DomainEvent.

Payloads are validated against app.schemas.events before dispatch so that
malformed messages take the poison path here instead of failing deep in
the pipeline. Routing keys with no handler become UnrecognizedEvent.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from app.domain.enums import DocumentKind
from app.domain.events import (
    DocumentDeleted,
    DocumentUpserted,
    DomainEvent,
    ReindexRequested,
    ReindexScope,
    StatusChanged,
    UnrecognizedEvent,
)
from app.domain.exceptions import PoisonMessageException
from app.schemas.events import (
    EntitySnapshot,
    ReindexPayload,
    TemplateDeletedPayload,
    TemplateUpsertPayload,
    UserDeletedPayload,
    UserUpsertPayload,
    WorkItemDeletedPayload,
    WorkItemStatusChangedPayload,
    WorkItemUpsertPayload,
)
from app.shared.utils.datetime import parse_timestamp, utc_now

_Builder = Callable[[str, Mapping[str, Any], datetime], DomainEvent]


def _validate(model: type[BaseModel], routing_key: str, data: Mapping[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise PoisonMessageException(
            routing_key, "schema_validation_failed", errors=errors
        ) from e


def _event_time(payload: Any, fallback: datetime, snapshot: EntitySnapshot | None = None) -> datetime:
    """Snapshot updated_at, else envelope timestamp, else when it was published."""
    if snapshot is not None:
        extra = snapshot.model_extra or {}
        stamped = parse_timestamp(extra.get("updated_at", extra.get("updatedAt")))
        if stamped is not None:
            return stamped
    return parse_timestamp(payload.timestamp) or fallback


def _upsert(kind: DocumentKind, model: type[BaseModel], attr: str) -> _Builder:
    def build(routing_key: str, data: Mapping[str, Any], fallback: datetime) -> DomainEvent:
        payload = _validate(model, routing_key, data)
        snapshot: EntitySnapshot = getattr(payload, attr)
        return DocumentUpserted(
            routing_key=routing_key,
            occurred_at=_event_time(payload, fallback, snapshot),
            kind=kind,
            document_id=snapshot.id,
            tenant_id=snapshot.tenant_id,
            snapshot=snapshot.as_snapshot(),
        )

    return build


def _delete(kind: DocumentKind, model: type[BaseModel], attr: str) -> _Builder:
    def build(routing_key: str, data: Mapping[str, Any], fallback: datetime) -> DomainEvent:
        payload = _validate(model, routing_key, data)
        return DocumentDeleted(
            routing_key=routing_key,
            occurred_at=_event_time(payload, fallback),
            kind=kind,
            document_id=getattr(payload, attr),
        )

    return build


def _status_changed(routing_key: str, data: Mapping[str, Any], fallback: datetime) -> DomainEvent:
    payload = _validate(WorkItemStatusChangedPayload, routing_key, data)
    return StatusChanged(
        routing_key=routing_key,
        occurred_at=_event_time(payload, fallback),
        kind=DocumentKind.WORK_ITEM,
        document_id=payload.work_item_id,
        new_status=payload.new_status,
    )


def _reindex(scope: ReindexScope) -> _Builder:
    def build(routing_key: str, data: Mapping[str, Any], fallback: datetime) -> DomainEvent:
        payload = _validate(ReindexPayload, routing_key, data)
        if scope == ReindexScope.TENANT and not payload.tenant_id:
            raise PoisonMessageException(routing_key, "missing_tenant_id")
        if scope == ReindexScope.TYPE and payload.type not in DocumentKind.values():
            raise PoisonMessageException(routing_key, "unknown_document_type")
        return ReindexRequested(
            routing_key=routing_key,
            occurred_at=_event_time(payload, fallback),
            scope=scope,
            tenant_id=payload.tenant_id,
            document_type=payload.type,
        )

    return build


_BUILDERS: dict[str, _Builder] = {
    "work_item.created": _upsert(DocumentKind.WORK_ITEM, WorkItemUpsertPayload, "work_item"),
    "work_item.updated": _upsert(DocumentKind.WORK_ITEM, WorkItemUpsertPayload, "work_item"),
    "work_item.deleted": _delete(DocumentKind.WORK_ITEM, WorkItemDeletedPayload, "work_item_id"),
    "work_item.status_changed": _status_changed,
    "user.created": _upsert(DocumentKind.USER, UserUpsertPayload, "user"),
    "user.updated": _upsert(DocumentKind.USER, UserUpsertPayload, "user"),
    "user.deleted": _delete(DocumentKind.USER, UserDeletedPayload, "user_id"),
    "template.created": _upsert(DocumentKind.TEMPLATE, TemplateUpsertPayload, "template"),
    "template.updated": _upsert(DocumentKind.TEMPLATE, TemplateUpsertPayload, "template"),
    "template.deleted": _delete(DocumentKind.TEMPLATE, TemplateDeletedPayload, "template_id"),
    "search.reindex.all": _reindex(ReindexScope.ALL),
    "search.reindex.tenant": _reindex(ReindexScope.TENANT),
    "search.reindex.type": _reindex(ReindexScope.TYPE),
}

SUPPORTED_ROUTING_KEYS: tuple[str, ...] = tuple(_BUILDERS)


def parse_event(
    routing_key: str,
    payload: str | bytes | Mapping[str, Any],
    published_at: datetime | None = None,
) -> DomainEvent:
    """Parse one broker message into a DomainEvent.

    Args:
        routing_key: Dot-delimited topic of the message.
        payload: JSON text (or already-decoded mapping).
        published_at: Broker timestamp, used when the payload carries none.

    Returns:
        The typed event, or UnrecognizedEvent for an unknown routing key.

    Raises:
        PoisonMessageException: payload is not JSON, not an object, or fails
            validation for its routing key.
    """
    fallback = published_at or utc_now()
    builder = _BUILDERS.get(routing_key)
    if builder is None:
        return UnrecognizedEvent(routing_key=routing_key, occurred_at=fallback)

    if isinstance(payload, Mapping):
        data: Any = payload
    else:
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PoisonMessageException(routing_key, "invalid_json") from e
    if not isinstance(data, Mapping):
        raise PoisonMessageException(routing_key, "payload_not_object")
    return builder(routing_key, data, fallback)
