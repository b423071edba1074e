"""Domain entities."""

from src.domain.entities.workflow import (MAX_DELAY_MINUTES, MIN_DELAY_MINUTES,
                                          ActionResult, WorkflowAction,
                                          WorkflowTrigger,
                                          ensure_run_transition, success_rate)

__all__ = [
    "ActionResult",
    "WorkflowAction",
    "WorkflowTrigger",
    "ensure_run_transition",
    "success_rate",
    "MIN_DELAY_MINUTES",
    "MAX_DELAY_MINUTES",
]
