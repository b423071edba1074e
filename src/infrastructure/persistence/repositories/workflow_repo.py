"""Repository for workflow data access"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from src.infrastructure.persistence.models.mixins import utc_now
from src.infrastructure.persistence.models.workflow import Workflow, WorkflowRun
from src.infrastructure.persistence.repositories.base import BaseRepository
from src.shared.enums import WorkflowRunStatus
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class WorkflowRepository(BaseRepository[Workflow]):
    """Repository for Workflow model; all lookups are agency-scoped and skip soft-deleted rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Workflow)

    async def _on_after_create(self, obj: Workflow) -> None:
        logger.info("Workflow %s created for agency %s", obj.id, obj.agency_id)

    async def _on_after_update(self, obj: Workflow) -> None:
        logger.debug("Workflow %s updated", obj.id)

    async def get_by_agency(
        self,
        agency_id: str,
        *,
        enabled: bool | None = None,
        query: str | None = None,
        limit: int = 100,
    ) -> list[Workflow]:
        """Get workflows for agency, newest first"""
        stmt = self._visible(select(Workflow), agency_id)

        if enabled is not None:
            stmt = stmt.where(Workflow.is_active.is_(enabled))
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(
                or_(Workflow.name.ilike(pattern), Workflow.description.ilike(pattern))
            )

        stmt = stmt.order_by(Workflow.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_active_for_agency(self, agency_id: str) -> list[Workflow]:
        """Active workflows the run engine should evaluate, oldest first"""
        stmt = (
            self._visible(select(Workflow), agency_id)
            .where(Workflow.is_active.is_(True))
            .order_by(Workflow.created_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_agencies_with_active_workflows(self) -> list[str]:
        """Agency ids owning at least one active workflow; the ticker offers each a scheduled event"""
        stmt = (
            self._visible(select(Workflow.agency_id))
            .where(Workflow.is_active.is_(True))
            .distinct()
        )
        result = await self.db.execute(stmt)
        return [row[0] for row in result.all()]

    async def set_active(
        self, workflow_id: str, agency_id: str, is_active: bool, user_id: str | None = None
    ) -> Workflow | None:
        """Enable or disable a workflow"""
        workflow = await self.get_by_id(workflow_id, agency_id)
        if not workflow:
            return None

        workflow.is_active = is_active
        workflow.updated_by = user_id
        return await self.update(workflow)

    async def soft_delete(
        self, workflow_id: str, agency_id: str, user_id: str | None = None
    ) -> bool:
        """Soft delete workflow; its runs are kept as history"""
        workflow = await self.get_by_id(workflow_id, agency_id)
        if not workflow:
            return False

        workflow.deleted_at = utc_now()
        workflow.updated_by = user_id
        workflow.is_active = False
        await self.db.flush()
        logger.info("Workflow %s deleted for agency %s", workflow_id, agency_id)
        return True

    async def record_run_outcome(
        self, workflow_id: str, agency_id: str, succeeded: bool, completed_at: datetime
    ) -> None:
        """
        Account one finished run against the workflow counters.

        Single UPDATE with column arithmetic so concurrent runs never lose
        an increment.
        """
        values: dict[str, Any] = {
            "run_count": Workflow.run_count + 1,
            "last_run_at": completed_at,
        }
        if succeeded:
            values["success_count"] = Workflow.success_count + 1

        stmt = (
            update(Workflow)
            .where(Workflow.id == workflow_id, Workflow.agency_id == agency_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(stmt)
        await self.db.flush()


class WorkflowRunRepository(BaseRepository[WorkflowRun]):
    """Repository for WorkflowRun model"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, WorkflowRun)

    async def save(self, run: WorkflowRun) -> WorkflowRun:
        """Persist a run state change, merging runs started in an earlier session"""
        if object_session(run) is not self.db.sync_session:
            run = await self.db.merge(run)
        await self.db.flush()
        return run

    async def list_runs(
        self,
        agency_id: str,
        workflow_id: str | None = None,
        *,
        status: str | None = None,
        limit: int = 50,
    ) -> list[WorkflowRun]:
        """Runs for one workflow, or for the whole agency, newest first"""
        stmt = self._scoped(select(WorkflowRun), agency_id)
        if workflow_id is not None:
            stmt = stmt.where(WorkflowRun.workflow_id == workflow_id)
        if status is not None:
            stmt = stmt.where(WorkflowRun.status == status)

        stmt = stmt.order_by(WorkflowRun.created_at.desc(), WorkflowRun.id.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def recent_by_workflow(
        self, agency_id: str, workflow_ids: Iterable[str], per_workflow: int = 5
    ) -> dict[str, list[WorkflowRun]]:
        """Latest runs grouped per workflow, newest first within each group"""
        ids = list(workflow_ids)
        grouped: dict[str, list[WorkflowRun]] = {workflow_id: [] for workflow_id in ids}
        if not ids:
            return grouped

        stmt = (
            self._scoped(select(WorkflowRun), agency_id)
            .where(WorkflowRun.workflow_id.in_(ids))
            .order_by(WorkflowRun.created_at.desc(), WorkflowRun.id.desc())
        )
        result = await self.db.execute(stmt)
        for run in result.scalars().all():
            runs = grouped[run.workflow_id]
            if len(runs) < per_workflow:
                runs.append(run)
        return grouped

    async def get_analytics(self, agency_id: str, workflow_id: str) -> dict[str, Any]:
        """Totals, success rate and average duration over a workflow's finished runs"""
        stmt = self._scoped(
            select(WorkflowRun.status, WorkflowRun.started_at, WorkflowRun.completed_at),
            agency_id,
        ).where(WorkflowRun.workflow_id == workflow_id)
        rows = (await self.db.execute(stmt)).all()

        completed = sum(1 for row in rows if row.status == WorkflowRunStatus.COMPLETED.value)
        failed = sum(1 for row in rows if row.status == WorkflowRunStatus.FAILED.value)
        durations = [
            (row.completed_at - row.started_at).total_seconds() * 1000
            for row in rows
            if row.started_at and row.completed_at
        ]
        finished = completed + failed

        return {
            "total": len(rows),
            "completed": completed,
            "failed": failed,
            "success_rate": round(completed / finished * 100) if finished else None,
            "average_duration_ms": round(sum(durations) / len(durations)) if durations else None,
        }
