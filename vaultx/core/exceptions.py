"""Error types raised by managers and routers, each mapped to an HTTP status."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    RESOURCE = "resource"
    EXECUTION = "execution"


class VaultXError(Exception):
    """
    Base class for errors that reach the client as a JSON error body.

    Subclasses set `status_code`, `severity` and `category`. `context`
    identifies what the error is about (ids, fields); `details` carries
    extra data for the client (validation messages, retry_after).
    """

    status_code: int = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.EXECUTION

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or type(self).__name__
        self.details = dict(details or {})
        self.context = dict(context or {})
        self.timestamp = datetime.utcnow()

    def add_context(self, **fields):
        """Record non-empty identifying fields."""
        self.context.update({key: value for key, value in fields.items() if value is not None and value != ""})
        return self

    def add_details(self, **fields):
        self.details.update({key: value for key, value in fields.items() if value is not None})
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Full representation for structured logs."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(VaultXError):
    """Input breaks a domain rule. Request-body schema errors stay FastAPI's 422."""

    status_code = 400
    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors or []
        self.add_context(field=field)
        if self.validation_errors:
            self.add_details(validation_errors=self.validation_errors)


class AuthenticationError(VaultXError):
    status_code = 401
    category = ErrorCategory.AUTHENTICATION

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(VaultXError):
    status_code = 403
    category = ErrorCategory.AUTHORIZATION

    def __init__(
        self,
        message: str = "Forbidden",
        user_id: Optional[str] = None,
        required_role: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.add_context(user_id=user_id)
        self.add_details(required_role=required_role)


class NotFoundError(VaultXError):
    status_code = 404
    severity = ErrorSeverity.LOW
    category = ErrorCategory.NOT_FOUND

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.add_context(resource_type=resource_type, resource_id=resource_id)


class ConflictError(VaultXError):
    """A write would duplicate a unique name, slug or review."""

    status_code = 409
    severity = ErrorSeverity.LOW
    category = ErrorCategory.CONFLICT

    def __init__(self, message: str, resource_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(resource_type=resource_type)


class RateLimitExceededError(VaultXError):
    status_code = 429
    category = ErrorCategory.RESOURCE

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[int] = None,
        client_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.add_details(retry_after=retry_after)
        self.add_context(client=client_key)


class StorageError(VaultXError):
    """A database operation failed; the session has been rolled back."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.STORAGE

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.add_context(operation=operation, table=table)


class ExternalServiceError(VaultXError):
    """The auth service or a tool website failed or answered with an error."""

    status_code = 502
    severity = ErrorSeverity.HIGH
    category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        upstream_status: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.add_context(service=service)
        self.add_details(upstream_status=upstream_status)


class ConfigurationError(VaultXError):
    severity = ErrorSeverity.HIGH
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.add_context(config_key=config_key)


class WorkflowExecutionError(VaultXError):
    """A workflow step failed; the run is recorded as failed before this is raised."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.EXECUTION

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        run_id: Optional[str] = None,
        action_type: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.add_context(workflow_id=workflow_id, run_id=run_id, action_type=action_type)


def create_error_response(error: VaultXError) -> Dict[str, Any]:
    """The JSON body returned for a VaultXError."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "severity": error.severity.value,
            "category": error.category.value,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }
