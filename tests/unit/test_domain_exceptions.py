"""Tests for domain exceptions (error_code, message, details)."""

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


def test_base_exception_default_error_code() -> None:
    """Base SearchServiceException uses class name as error_code when not provided."""
    exc = SearchServiceException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "SearchServiceException"
    assert exc.details == {}


def test_to_dict() -> None:
    exc = SearchServiceException("Oops", error_code="CUSTOM", details={"key": "value"})
    assert exc.to_dict() == {"error": "CUSTOM", "message": "Oops", "details": {"key": "value"}}


def test_validation_exception_with_field_and_errors() -> None:
    exc = ValidationException("Bad page", field="pagination.from", errors=[{"field": "x"}])
    assert exc.error_code == "VALIDATION_ERROR"
    assert exc.details == {"field": "pagination.from", "errors": [{"field": "x"}]}


def test_validation_exception_without_field() -> None:
    assert ValidationException("Invalid").details == {}


def test_authentication_exception() -> None:
    exc = AuthenticationException()
    assert exc.message == "Authentication failed"
    assert exc.error_code == "AUTHENTICATION_ERROR"


def test_authorization_exception_with_resource_and_action() -> None:
    """AuthorizationException with resource and action builds message and details."""
    exc = AuthorizationException(resource="stats", action="read")
    assert exc.message == "Insufficient permissions: read on stats"
    assert exc.error_code == "PERMISSION_DENIED"
    assert exc.details == {"resource": "stats", "action": "read"}


def test_resource_not_found() -> None:
    exc = ResourceNotFoundException("work_items", "wi1")
    assert exc.error_code == "RESOURCE_NOT_FOUND"
    assert exc.details == {"resource_type": "work_items", "resource_id": "wi1"}


def test_upstream_unavailable_is_retryable() -> None:
    exc = UpstreamUnavailableException("broker", "connection refused")
    assert exc.retryable is True
    assert exc.error_code == "UPSTREAM_UNAVAILABLE"
    assert exc.details == {"service": "broker", "reason": "connection refused"}


def test_index_operation_exception_details() -> None:
    exc = IndexOperationException("upsert", "HTTP 400", "work_items", "wi1")
    assert exc.error_code == "INDEX_OPERATION_FAILED"
    assert exc.details == {
        "operation": "upsert",
        "reason": "HTTP 400",
        "collection": "work_items",
        "document_id": "wi1",
    }


def test_poison_message_exception() -> None:
    exc = PoisonMessageException("user.created", "invalid_json")
    assert exc.error_code == "POISON_MESSAGE"
    assert exc.details == {"routing_key": "user.created", "reason": "invalid_json"}
    assert "user.created" in exc.message
