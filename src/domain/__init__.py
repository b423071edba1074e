"""
Domain layer - Enterprise Business Rules.

This is the innermost layer containing business entities, enumerations,
and domain exceptions. It has no dependencies on other layers.
"""

from src.domain.entities import (ActionResult, WorkflowAction,
                                 WorkflowTrigger, success_rate)
from src.domain.enums import (ActionCategory, ActionType, AgencyStatus,
                              TriggerCategory, TriggerType)
from src.domain.exceptions import (ActionExecutionError,
                                   AgencyNotFoundException,
                                   AgencyOpsException,
                                   AuthenticationException,
                                   AuthorizationException,
                                   InvalidRunTransitionException,
                                   ResourceNotFoundException, RunFatalError,
                                   UnrecoverableActionError,
                                   ValidationException)

__all__ = [
    # Entities
    "ActionResult",
    "WorkflowAction",
    "WorkflowTrigger",
    "success_rate",
    # Enums
    "ActionCategory",
    "ActionType",
    "AgencyStatus",
    "TriggerCategory",
    "TriggerType",
    # Exceptions
    "AgencyOpsException",
    "ValidationException",
    "AuthenticationException",
    "AuthorizationException",
    "AgencyNotFoundException",
    "ResourceNotFoundException",
    "InvalidRunTransitionException",
    "ActionExecutionError",
    "UnrecoverableActionError",
    "RunFatalError",
]
