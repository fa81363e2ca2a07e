"""Domain layer: documents, events, enums, and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from app.domain.documents import (
    SearchDocument,
    TemplateDocument,
    UserDocument,
    WorkItemDocument,
    document_from_source,
)
from app.domain.enums import DocumentKind, IndexHealth, SortOrder, WriteResult
from app.domain.events import (
    DocumentDeleted,
    DocumentUpserted,
    DomainEvent,
    ReindexRequested,
    ReindexScope,
    StatusChanged,
    UnrecognizedEvent,
)
from app.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    IndexOperationException,
    PoisonMessageException,
    ResourceNotFoundException,
    SearchServiceException,
    UpstreamUnavailableException,
    ValidationException,
)

__all__ = [
    # Documents
    "SearchDocument",
    "TemplateDocument",
    "UserDocument",
    "WorkItemDocument",
    "document_from_source",
    # Enums
    "DocumentKind",
    "IndexHealth",
    "SortOrder",
    "WriteResult",
    # Events
    "DocumentDeleted",
    "DocumentUpserted",
    "DomainEvent",
    "ReindexRequested",
    "ReindexScope",
    "StatusChanged",
    "UnrecognizedEvent",
    # Exceptions
    "AuthenticationException",
    "AuthorizationException",
    "IndexOperationException",
    "PoisonMessageException",
    "ResourceNotFoundException",
    "SearchServiceException",
    "UpstreamUnavailableException",
    "ValidationException",
]
