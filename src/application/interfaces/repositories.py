"""
Repository interfaces (ports) consumed by the run engine and workflow service.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from src.infrastructure.persistence.models.workflow import Workflow, WorkflowRun


class IWorkflowRepository(Protocol):
    """Protocol for workflow persistence (DIP)"""

    async def get_by_id(self, workflow_id: str, agency_id: str | None = None) -> Workflow | None:
        ...

    async def get_active_for_agency(self, agency_id: str) -> list[Workflow]:
        ...

    async def record_run_outcome(
        self, workflow_id: str, agency_id: str, succeeded: bool, completed_at: datetime
    ) -> None:
        """Atomically bump run_count (and success_count when succeeded)"""
        ...


class IWorkflowRunRepository(Protocol):
    """Protocol for run history persistence (DIP)"""

    async def create(self, obj: WorkflowRun) -> WorkflowRun:
        ...

    async def save(self, run: WorkflowRun) -> WorkflowRun:
        ...

    async def list_runs(
        self,
        agency_id: str,
        workflow_id: str | None = None,
        *,
        status: str | None = None,
        limit: int = 50,
    ) -> list[WorkflowRun]:
        ...

    async def get_analytics(self, agency_id: str, workflow_id: str) -> dict[str, Any]:
        ...
