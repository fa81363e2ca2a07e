"""Domain exceptions for the search service.

Defines the error taxonomy shared by the sync pipeline and the read path.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers; the event consumer
maps them to ack / requeue / dead-letter decisions.
"""

from typing import Any


class SearchServiceException(Exception):
    """Base exception for all search service errors.

    All custom exceptions inherit from this class to allow consistent
    error handling and logging. Presentation layer maps these to HTTP
    responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
        retryable: True when the same operation may succeed if repeated.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses and dead-letter records."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(SearchServiceException):
    """Raised when a search request is malformed (user-correctable)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize with message, optional field name and field-level errors.

        Args:
            message: Description of the validation failure.
            field: Optional field that failed validation.
            errors: Optional list of per-field reasons.
        """
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = errors
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(SearchServiceException):
    """Raised when the caller identity is missing or the token is invalid."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(SearchServiceException):
    """Raised when the caller's role is not allowed to perform the operation."""

    def __init__(
        self,
        resource: str | None = None,
        action: str | None = None,
        message: str = "Insufficient permissions",
    ) -> None:
        """Initialize with optional resource, action, and message.

        Args:
            resource: Optional resource (e.g. 'stats', 'index').
            action: Optional action that was attempted (e.g. 'read', 'write').
            message: Human-readable message; default used when resource/action omitted.
        """
        if resource and action:
            message = f"Insufficient permissions: {action} on {resource}"
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "PERMISSION_DENIED", details)


class ResourceNotFoundException(SearchServiceException):
    """Raised when a partial update targets a document that is not indexed."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Collection or kind (e.g. 'work_items').
            resource_id: The document ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class UpstreamUnavailableException(SearchServiceException):
    """Raised when the search engine or the broker cannot be reached (retryable)."""

    retryable = True

    def __init__(self, service: str, reason: str) -> None:
        """Initialize with the unreachable service and the transport reason.

        Args:
            service: 'search_engine' or 'broker'.
            reason: Short description of the failure (timeout, refused, 503...).
        """
        super().__init__(
            f"{service} unavailable",
            "UPSTREAM_UNAVAILABLE",
            {"service": service, "reason": reason},
        )


class IndexOperationException(SearchServiceException):
    """Raised when the search engine rejects a write or query (terminal)."""

    def __init__(
        self,
        operation: str,
        reason: str,
        collection: str | None = None,
        document_id: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"operation": operation, "reason": reason}
        if collection:
            details["collection"] = collection
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            f"Index operation failed: {operation}",
            "INDEX_OPERATION_FAILED",
            details,
        )


class PoisonMessageException(SearchServiceException):
    """Raised when an event payload cannot be parsed or fails schema validation."""

    def __init__(
        self,
        routing_key: str,
        reason: str,
        errors: list[Any] | None = None,
    ) -> None:
        """Initialize with routing key, reason and validation errors.

        Args:
            routing_key: Routing key of the rejected message.
            reason: 'invalid_json', 'schema_validation_failed', ...
            errors: Optional list of validation error details.
        """
        details: dict[str, Any] = {"routing_key": routing_key, "reason": reason}
        if errors:
            details["errors"] = errors
        super().__init__(
            f"Poison message on {routing_key}: {reason}",
            "POISON_MESSAGE",
            details,
        )
