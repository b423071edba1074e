"""
Domain exceptions for the Agency Ops application.

This module defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns.
"""

from typing import Any


class AgencyOpsException(Exception):
    """
    Base exception for all Agency Ops application errors.

    All custom exceptions should inherit from this class to allow
    for consistent error handling and logging.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for API responses
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(AgencyOpsException):
    """Raised when input validation fails.

    ``errors`` carries every human-readable message collected by the
    validators; the list is never partial.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
    ):
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = list(errors)
        self.errors = list(errors or [])
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(AgencyOpsException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(AgencyOpsException):
    """Raised when user lacks required permissions."""

    def __init__(self, resource: str, action: str):
        message = f"Permission denied: {action} on {resource}"
        super().__init__(message, "AUTHORIZATION_ERROR", {"resource": resource, "action": action})


class AgencyNotFoundException(AgencyOpsException):
    """Raised when agency is not found."""

    def __init__(self, agency_id: str):
        super().__init__(
            f"Agency not found: {agency_id}",
            "AGENCY_NOT_FOUND",
            {"agency_id": agency_id},
        )


class ResourceNotFoundException(AgencyOpsException):
    """Raised when a requested resource is not found.

    Also raised for resources owned by another agency, so existence never
    leaks across tenants.
    """

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidRunTransitionException(AgencyOpsException):
    """Raised when a workflow run is moved out of order through its lifecycle."""

    def __init__(self, run_id: str | None, current: str, target: str):
        super().__init__(
            f"Workflow run cannot move from {current} to {target}",
            "INVALID_RUN_TRANSITION",
            {"run_id": run_id, "current": current, "target": target},
        )


class ActionExecutionError(AgencyOpsException):
    """An action's side effect failed; recorded on the run, execution continues."""

    def __init__(self, action_type: str, reason: str, details: dict[str, Any] | None = None):
        payload = {"action_type": action_type, **(details or {})}
        super().__init__(reason, "ACTION_EXECUTION_ERROR", payload)


class UnrecoverableActionError(ActionExecutionError):
    """An action failed in a way that must halt the remaining actions of the run."""


class RunFatalError(AgencyOpsException):
    """The whole run was aborted; the run is persisted as failed."""

    def __init__(self, run_id: str | None, reason: str):
        super().__init__(reason, "RUN_FATAL_ERROR", {"run_id": run_id})
