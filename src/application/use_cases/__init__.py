"""Application use cases."""

from src.application.use_cases.workflows.workflow_engine import WorkflowEngine
from src.application.use_cases.workflows.workflow_operations import \
    WorkflowService

__all__ = [
    "WorkflowEngine",
    "WorkflowService",
]
