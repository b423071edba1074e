"""
Application layer - Application Business Rules.

This layer contains application-specific business rules, including:
- Interfaces (ports) for infrastructure dependencies
- Use cases that orchestrate domain logic
- Application services
"""

from src.application.interfaces import (IActionEffects, IWorkflowRepository,
                                        IWorkflowRunRepository)
from src.application.services import AuthorizationService, TriggerEvent
from src.application.use_cases import WorkflowEngine, WorkflowService

__all__ = [
    # Interfaces
    "IActionEffects",
    "IWorkflowRepository",
    "IWorkflowRunRepository",
    # Services
    "AuthorizationService",
    "TriggerEvent",
    # Use Cases
    "WorkflowEngine",
    "WorkflowService",
]
