"""Domain exceptions for the storeflow engine.

StoreflowException is the root. Action failures derive from
WorkflowActionError and carry an ErrorKind; the interpreter turns them
into ActionOutcome values instead of letting them escape. Presentation
maps the rest to HTTP responses in exception handlers.
"""

from typing import Any

from storeflow.domain.enums import ErrorKind


class StoreflowException(Exception):
    """Base exception for all storeflow errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

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
        """Serialize for JSON error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(StoreflowException):
    """Raised when a workflow definition or input fails validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(StoreflowException):
    """Raised when a workflow or entity record is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class EngineNotRunningException(StoreflowException):
    """Raised when events are submitted to a dispatcher that was not started."""

    def __init__(self) -> None:
        super().__init__(
            "Workflow dispatcher is not running",
            "SERVICE_UNAVAILABLE",
        )


class WorkflowActionError(StoreflowException):
    """Base for failures of a single action.

    Subclasses fix ``kind``. ``action_type`` is filled in by the interpreter
    when the error surfaces from a specific action.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self.action_type: str | None = None


class ConfigMissingError(WorkflowActionError):
    """Required transport or credential is absent (e.g. no mail transport)."""

    kind = ErrorKind.CONFIG_MISSING

    def __init__(self, message: str, setting: str | None = None) -> None:
        details = {"setting": setting} if setting else {}
        super().__init__(message, "CONFIG_MISSING", details)


class InvalidTargetError(WorkflowActionError):
    """Unknown entity kind, missing or unresolvable id, or missing record."""

    kind = ErrorKind.INVALID_TARGET

    def __init__(self, message: str, target: str | None = None) -> None:
        details = {"target": target} if target is not None else {}
        super().__init__(message, "INVALID_TARGET", details)


class TransientError(WorkflowActionError):
    """External effect failed (network, timeout, mail I/O); may succeed later."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        error_code: str = "TRANSIENT_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class WebhookFailedError(TransientError):
    """Webhook endpoint answered with a non-2xx status."""

    def __init__(self, status: int, url: str | None = None) -> None:
        details: dict[str, Any] = {"status": status}
        if url:
            details["url"] = url
        super().__init__(
            f"Webhook failed with status {status}",
            "WEBHOOK_FAILED",
            details,
        )
        self.status = status


class ExecutionCancelledError(WorkflowActionError):
    """Cooperative cancellation reached the interpreter."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Workflow execution cancelled") -> None:
        super().__init__(message, "CANCELLED")


class DefinitionError(WorkflowActionError):
    """Malformed action payload discovered while interpreting it."""

    kind = ErrorKind.DEFINITION

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "DEFINITION_ERROR", details)


class InternalActionError(WorkflowActionError):
    """Unexpected exception inside an action (wraps the original as __cause__)."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message, "INTERNAL_ERROR")
