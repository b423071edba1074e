"""
Application layer interfaces (ports).

These protocols define the contracts between the application layer
and the infrastructure layer, following the Dependency Inversion Principle.
"""

from src.application.interfaces.repositories import (IWorkflowRepository,
                                                     IWorkflowRunRepository)
from src.application.interfaces.services import IActionEffects

__all__ = [
    # Repository interfaces
    "IWorkflowRepository",
    "IWorkflowRunRepository",
    # Service interfaces
    "IActionEffects",
]
