"""Domain events consumed by the index synchronizer.

A closed set of variants. The broker boundary parses each message into
exactly one of them; anything it does not recognize becomes
UnrecognizedEvent so the consumer can log and drop it explicitly.
Events are immutable once built.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from app.domain.enums import DocumentKind


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Common envelope: routing key and the time the change happened."""

    routing_key: str
    occurred_at: datetime


@dataclass(frozen=True, kw_only=True)
class DocumentUpserted(DomainEvent):
    """Full entity snapshot for `<kind>.created` / `<kind>.updated`."""

    kind: DocumentKind
    document_id: str
    tenant_id: str
    snapshot: Mapping[str, Any]


@dataclass(frozen=True, kw_only=True)
class DocumentDeleted(DomainEvent):
    """`<kind>.deleted`: identifier only."""

    kind: DocumentKind
    document_id: str


@dataclass(frozen=True, kw_only=True)
class StatusChanged(DomainEvent):
    """`work_item.status_changed`: narrow delta applied as a partial update."""

    kind: DocumentKind
    document_id: str
    new_status: str


class ReindexScope(str, Enum):
    ALL = "all"
    TENANT = "tenant"
    TYPE = "type"


@dataclass(frozen=True, kw_only=True)
class ReindexRequested(DomainEvent):
    """`search.reindex.{all,tenant,type}`: bulk resynchronization request."""

    scope: ReindexScope
    tenant_id: str | None = None
    document_type: str | None = None


@dataclass(frozen=True, kw_only=True)
class UnrecognizedEvent(DomainEvent):
    """Routing key with no handler. Logged and dropped by the consumer."""
