"""Workflow CRUD and run-history use cases, scoped to one agency."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.application.services.workflow_validator import (DEFAULT_MAX_TRIGGERS,
                                                         ensure_valid_definition)
from src.domain.entities.workflow import WorkflowAction, WorkflowTrigger
from src.domain.exceptions import ResourceNotFoundException
from src.infrastructure.persistence.models.workflow import Workflow, WorkflowRun
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import traced
from src.shared.utils import generate_cuid

if TYPE_CHECKING:
    from src.infrastructure.persistence.repositories.workflow_repo import (
        WorkflowRepository, WorkflowRunRepository)

logger = get_logger(__name__)

MAX_LIST_LIMIT = 100
MAX_RUNS_LIMIT = 100


def _normalize_triggers(triggers: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign ids to new triggers and store them in canonical shape"""
    normalized = []
    for raw in triggers:
        trigger = WorkflowTrigger.from_dict(raw)
        trigger.id = trigger.id or generate_cuid()
        normalized.append(trigger.to_dict())
    return normalized


def _normalize_actions(actions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign ids to new actions and store them in canonical (snake_case) shape"""
    normalized = []
    for raw in actions:
        action = WorkflowAction.from_dict(raw)
        action.id = action.id or generate_cuid()
        normalized.append(action.to_dict())
    return normalized


class WorkflowService:
    """
    Workflow definitions and their run history.

    Validation is the gate: nothing reaches the repository unless the full
    definition (or, on update, every supplied part of it) is valid.
    """

    def __init__(
        self,
        workflow_repo: "WorkflowRepository",
        run_repo: "WorkflowRunRepository",
        max_triggers: int = DEFAULT_MAX_TRIGGERS,
    ):
        self.workflow_repo = workflow_repo
        self.run_repo = run_repo
        self.max_triggers = max_triggers

    async def list_workflows(
        self,
        agency_id: str,
        *,
        include_runs: bool = False,
        runs_limit: int = 5,
        enabled: bool | None = None,
        query: str | None = None,
        limit: int = MAX_LIST_LIMIT,
    ) -> tuple[list[Workflow], dict[str, list[WorkflowRun]]]:
        """Workflows newest first, plus their latest runs when requested"""
        workflows = await self.workflow_repo.get_by_agency(
            agency_id, enabled=enabled, query=query, limit=min(limit, MAX_LIST_LIMIT)
        )
        runs: dict[str, list[WorkflowRun]] = {}
        if include_runs and workflows:
            runs = await self.run_repo.recent_by_workflow(
                agency_id, [w.id for w in workflows], per_workflow=runs_limit
            )
        return workflows, runs

    async def get_workflow(self, workflow_id: str, agency_id: str) -> Workflow:
        workflow = await self.workflow_repo.get_by_id(workflow_id, agency_id)
        if not workflow:
            raise ResourceNotFoundException("Workflow", workflow_id)
        return workflow

    @traced("workflow_service.create")
    async def create_workflow(
        self, agency_id: str, user_id: str | None, data: dict[str, Any]
    ) -> Workflow:
        """Validate and persist a new workflow"""
        triggers = _normalize_triggers(data.get("triggers") or [])
        actions = _normalize_actions(data.get("actions") or [])
        ensure_valid_definition(
            name=data.get("name"),
            triggers=triggers,
            actions=actions,
            max_triggers=self.max_triggers,
        )

        workflow = Workflow(
            agency_id=agency_id,
            name=data["name"].strip(),
            description=data.get("description"),
            triggers=triggers,
            actions=actions,
            is_active=data.get("is_active", True),
            run_count=0,
            success_count=0,
            created_by=user_id,
            updated_by=user_id,
        )
        return await self.workflow_repo.create(workflow)

    @traced("workflow_service.update")
    async def update_workflow(
        self, workflow_id: str, agency_id: str, user_id: str | None, changes: dict[str, Any]
    ) -> Workflow:
        """Apply a partial update; only the supplied parts are validated"""
        workflow = await self.get_workflow(workflow_id, agency_id)

        triggers = (
            _normalize_triggers(changes["triggers"]) if changes.get("triggers") is not None else None
        )
        actions = (
            _normalize_actions(changes["actions"]) if changes.get("actions") is not None else None
        )
        ensure_valid_definition(
            name=changes.get("name"),
            triggers=triggers,
            actions=actions,
            partial=True,
            max_triggers=self.max_triggers,
        )

        if changes.get("name") is not None:
            workflow.name = changes["name"].strip()
        if "description" in changes:
            workflow.description = changes["description"]
        if triggers is not None:
            workflow.triggers = triggers
        if actions is not None:
            workflow.actions = actions
        if changes.get("is_active") is not None:
            workflow.is_active = changes["is_active"]
        workflow.updated_by = user_id

        return await self.workflow_repo.update(workflow)

    async def toggle_workflow(
        self, workflow_id: str, agency_id: str, is_active: bool, user_id: str | None = None
    ) -> Workflow:
        workflow = await self.workflow_repo.set_active(workflow_id, agency_id, is_active, user_id)
        if not workflow:
            raise ResourceNotFoundException("Workflow", workflow_id)
        logger.info(
            "Workflow %s %s by %s", workflow_id, "enabled" if is_active else "disabled", user_id
        )
        return workflow

    async def delete_workflow(
        self, workflow_id: str, agency_id: str, user_id: str | None = None
    ) -> None:
        if not await self.workflow_repo.soft_delete(workflow_id, agency_id, user_id):
            raise ResourceNotFoundException("Workflow", workflow_id)

    async def list_runs(
        self,
        agency_id: str,
        workflow_id: str | None = None,
        *,
        status: str | None = None,
        limit: int = 50,
    ) -> list[WorkflowRun]:
        """Run history for one workflow (404 if it is not visible) or the whole agency"""
        if workflow_id is not None:
            await self.get_workflow(workflow_id, agency_id)
        return await self.run_repo.list_runs(
            agency_id, workflow_id, status=status, limit=min(limit, MAX_RUNS_LIMIT)
        )

    async def get_run(self, run_id: str, agency_id: str) -> WorkflowRun:
        run = await self.run_repo.get_by_id(run_id, agency_id)
        if not run:
            raise ResourceNotFoundException("WorkflowRun", run_id)
        return run

    async def run_analytics(self, workflow_id: str, agency_id: str) -> dict[str, Any]:
        await self.get_workflow(workflow_id, agency_id)
        return await self.run_repo.get_analytics(agency_id, workflow_id)
