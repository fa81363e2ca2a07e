"""Unit tests for parse_event (payload validation and the poison path)."""

import json
from datetime import UTC, datetime

import pytest

from app.domain.enums import DocumentKind
from app.domain.events import (
    DocumentDeleted,
    DocumentUpserted,
    ReindexRequested,
    ReindexScope,
    StatusChanged,
    UnrecognizedEvent,
)
from app.domain.exceptions import PoisonMessageException
from app.infrastructure.messaging.event_parser import SUPPORTED_ROUTING_KEYS, parse_event

PUBLISHED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_work_item_created_from_json() -> None:
    payload = json.dumps(
        {"workItem": {"id": "wi1", "tenant_id": "t1", "title": "Launch plan", "status": "open"}}
    )
    event = parse_event("work_item.created", payload, PUBLISHED)
    assert isinstance(event, DocumentUpserted)
    assert event.kind == DocumentKind.WORK_ITEM
    assert event.document_id == "wi1"
    assert event.tenant_id == "t1"
    assert event.snapshot["title"] == "Launch plan"
    assert event.occurred_at == PUBLISHED


def test_snapshot_updated_at_is_the_event_time() -> None:
    event = parse_event(
        "work_item.updated",
        {
            "workItem": {"id": "wi1", "tenantId": "t1", "updated_at": "2024-04-02T08:00:00Z"},
            "timestamp": "2024-04-03T08:00:00Z",
        },
        PUBLISHED,
    )
    assert event.occurred_at == datetime(2024, 4, 2, 8, 0, tzinfo=UTC)


def test_envelope_timestamp_used_when_snapshot_has_none() -> None:
    event = parse_event("work_item.deleted", {"workItemId": "wi1", "timestamp": 1714564800000}, PUBLISHED)
    assert isinstance(event, DocumentDeleted)
    assert event.occurred_at == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_status_changed() -> None:
    event = parse_event("work_item.status_changed", {"workItemId": "wi1", "newStatus": "done"}, PUBLISHED)
    assert isinstance(event, StatusChanged)
    assert event.new_status == "done"
    assert event.document_id == "wi1"


@pytest.mark.parametrize(
    ("routing_key", "payload", "kind"),
    [
        ("user.created", {"user": {"id": "u1", "tenant_id": "t1", "name": "Ada"}}, DocumentKind.USER),
        ("template.updated", {"template": {"id": "tpl1", "tenant_id": "t1"}}, DocumentKind.TEMPLATE),
    ],
)
def test_other_kinds_upsert(routing_key: str, payload: dict, kind: DocumentKind) -> None:
    event = parse_event(routing_key, payload, PUBLISHED)
    assert isinstance(event, DocumentUpserted)
    assert event.kind == kind


@pytest.mark.parametrize(
    ("routing_key", "payload", "kind", "doc_id"),
    [
        ("user.deleted", {"userId": "u1"}, DocumentKind.USER, "u1"),
        ("template.deleted", {"templateId": "tpl1"}, DocumentKind.TEMPLATE, "tpl1"),
    ],
)
def test_other_kinds_delete(routing_key: str, payload: dict, kind: DocumentKind, doc_id: str) -> None:
    event = parse_event(routing_key, payload, PUBLISHED)
    assert isinstance(event, DocumentDeleted)
    assert event.kind == kind
    assert event.document_id == doc_id


def test_reindex_scopes() -> None:
    all_event = parse_event("search.reindex.all", {}, PUBLISHED)
    assert isinstance(all_event, ReindexRequested)
    assert all_event.scope == ReindexScope.ALL

    tenant_event = parse_event("search.reindex.tenant", {"tenantId": "t1"}, PUBLISHED)
    assert tenant_event.tenant_id == "t1"

    type_event = parse_event("search.reindex.type", {"type": "user"}, PUBLISHED)
    assert type_event.document_type == "user"


def test_unknown_routing_key_is_unrecognized() -> None:
    event = parse_event("invoice.paid", "not even json", PUBLISHED)
    assert isinstance(event, UnrecognizedEvent)
    assert event.routing_key == "invoice.paid"


def test_invalid_json_is_poison() -> None:
    with pytest.raises(PoisonMessageException) as exc_info:
        parse_event("work_item.created", "{not json", PUBLISHED)
    assert exc_info.value.details["reason"] == "invalid_json"


def test_non_object_payload_is_poison() -> None:
    with pytest.raises(PoisonMessageException) as exc_info:
        parse_event("work_item.created", "[1, 2]", PUBLISHED)
    assert exc_info.value.details["reason"] == "payload_not_object"


def test_missing_tenant_is_poison() -> None:
    with pytest.raises(PoisonMessageException) as exc_info:
        parse_event("work_item.created", {"workItem": {"id": "wi1", "title": "x"}}, PUBLISHED)
    assert exc_info.value.details["reason"] == "schema_validation_failed"
    assert exc_info.value.details["errors"]


def test_missing_id_on_delete_is_poison() -> None:
    with pytest.raises(PoisonMessageException):
        parse_event("user.deleted", {}, PUBLISHED)


def test_reindex_tenant_without_tenant_is_poison() -> None:
    with pytest.raises(PoisonMessageException) as exc_info:
        parse_event("search.reindex.tenant", {}, PUBLISHED)
    assert exc_info.value.details["reason"] == "missing_tenant_id"


def test_reindex_type_with_unknown_type_is_poison() -> None:
    with pytest.raises(PoisonMessageException) as exc_info:
        parse_event("search.reindex.type", {"type": "invoice"}, PUBLISHED)
    assert exc_info.value.details["reason"] == "unknown_document_type"


def test_supported_routing_keys() -> None:
    assert "work_item.status_changed" in SUPPORTED_ROUTING_KEYS
    assert "template.deleted" in SUPPORTED_ROUTING_KEYS
    assert len(SUPPORTED_ROUTING_KEYS) == 13
