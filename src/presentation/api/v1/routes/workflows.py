"""Workflow API endpoints"""

from dataclasses import asdict
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from src.application.services.action_registry import (AVAILABLE_VARIABLES,
                                                      DELAY_PRESETS,
                                                      get_action_types)
from src.application.services.trigger_matcher import TriggerEvent
from src.application.services.trigger_registry import (AVAILABLE_TIMEZONES,
                                                       COMMON_SCHEDULES,
                                                       get_trigger_types,
                                                       parse_cron_expression)
from src.application.use_cases.workflows.workflow_engine import WorkflowEngine
from src.application.use_cases.workflows.workflow_operations import WorkflowService
from src.domain.exceptions import ValidationException
from src.infrastructure.persistence.models.agency import Agency
from src.infrastructure.persistence.models.workflow import Workflow
from src.infrastructure.scheduling.run_dispatcher import RunDispatcher
from src.presentation.api.dependencies import (get_current_agency,
                                               get_current_user,
                                               get_run_dispatcher,
                                               get_workflow_engine,
                                               get_workflow_service,
                                               get_workflow_service_transactional,
                                               require_permission)
from src.presentation.api.v1.schemas.token import TokenPayload
from src.presentation.api.v1.schemas.workflow import (
    ActionCatalogResponse, RunAnalytics, TriggerCatalogResponse,
    WorkflowCreate, WorkflowEventRequest, WorkflowEventResponse,
    WorkflowListResponse, WorkflowResponse, WorkflowRunListResponse,
    WorkflowRunResponse, WorkflowToggle, WorkflowToggleResponse,
    WorkflowUpdate)
from src.shared.enums import DelayMode, WorkflowRunStatus

router = APIRouter()


def _status_filter(value: str | None) -> str | None:
    if value is not None and value not in WorkflowRunStatus.values():
        raise ValidationException(
            f"Invalid status filter: {value}",
            field="status",
            errors=[f"Status must be one of: {', '.join(WorkflowRunStatus.values())}"],
        )
    return value


# Static paths are declared before /{workflow_id} so they are not captured by it


@router.get(
    "/actions/types",
    response_model=ActionCatalogResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def list_action_types():
    """Action catalog for the builder: types, template variables and delay presets"""
    return ActionCatalogResponse(
        types=[meta.to_dict() for meta in get_action_types()],
        variables=[asdict(variable) for variable in AVAILABLE_VARIABLES],
        delay_presets=[asdict(preset) for preset in DELAY_PRESETS],
    )


@router.get(
    "/triggers/types",
    response_model=TriggerCatalogResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def list_trigger_types():
    """Trigger catalog for the builder: types, common schedules and timezones"""
    return TriggerCatalogResponse(
        types=[meta.to_dict() for meta in get_trigger_types()],
        schedules=[
            {**asdict(schedule), "summary": parse_cron_expression(schedule.cron)}
            for schedule in COMMON_SCHEDULES
        ],
        timezones=list(AVAILABLE_TIMEZONES),
    )


@router.get(
    "/runs",
    response_model=WorkflowRunListResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def list_agency_runs(
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
    run_status: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
):
    """Run history across every workflow of the agency, newest first"""
    runs = await service.list_runs(agency.id, status=_status_filter(run_status), limit=limit)
    return WorkflowRunListResponse(runs=[WorkflowRunResponse.model_validate(r) for r in runs])


@router.get(
    "/runs/{run_id}",
    response_model=WorkflowRunResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def get_run(
    run_id: str,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
):
    """Get one run with its per-action results"""
    run = await service.get_run(run_id, agency.id)
    return WorkflowRunResponse.model_validate(run)


@router.post(
    "/events",
    response_model=WorkflowEventResponse,
    dependencies=[Depends(require_permission("workflow", "execute"))],
)
async def ingest_event(
    data: WorkflowEventRequest,
    agency: Annotated[Agency, Depends(get_current_agency)],
    engine: Annotated[WorkflowEngine, Depends(get_workflow_engine)],
    dispatcher: Annotated[RunDispatcher, Depends(get_run_dispatcher)],
):
    """
    Offer a domain event to the agency's active workflows.

    Returns the runs it produced (one per fired workflow). Action failures
    are reported inside the runs, never as an error response. When action
    delays are slept out the runs come back ``running`` and finish in the
    background.
    """
    occurred_at = data.occurred_at or datetime.now(UTC)
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=UTC)

    event = TriggerEvent(
        type=data.type, client=data.client, data=data.data, occurred_at=occurred_at
    )
    fields = {"id": agency.id, "name": agency.name}
    if engine.delay_mode == DelayMode.SKIP:
        runs = await engine.process_event(event, agency.id, fields)
    else:
        runs = await dispatcher.dispatch(event, agency.id, fields)
    return WorkflowEventResponse(runs=[WorkflowRunResponse.model_validate(r) for r in runs])


@router.get(
    "",
    response_model=WorkflowListResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def list_workflows(
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
    include_runs: bool = Query(False),
    runs_limit: int = Query(5, ge=1, le=50),
    enabled: bool | None = Query(None),
    q: str | None = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=100),
):
    """List workflows for the agency, newest first"""
    workflows, runs = await service.list_workflows(
        agency.id,
        include_runs=include_runs,
        runs_limit=runs_limit,
        enabled=enabled,
        query=q,
        limit=limit,
    )

    items = []
    for workflow in workflows:
        item = WorkflowResponse.model_validate(workflow)
        if include_runs:
            item.runs = [WorkflowRunResponse.model_validate(r) for r in runs.get(workflow.id, [])]
        items.append(item)
    return WorkflowListResponse(workflows=items)


@router.post(
    "",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission("workflow", "create"))],
)
async def create_workflow(
    data: WorkflowCreate,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service_transactional)],
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
):
    """
    Create new workflow.

    Workflows run their actions when any of their triggers matches an event.
    Example: create a welcome-call task when a client moves to "Live".
    """
    created = await service.create_workflow(agency.id, current_user.sub, data.model_dump())
    return WorkflowResponse.model_validate(created)


@router.get(
    "/{workflow_id}",
    response_model=WorkflowResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def get_workflow(
    workflow_id: str,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
):
    """Get workflow by ID"""
    workflow = await service.get_workflow(workflow_id, agency.id)
    return WorkflowResponse.model_validate(workflow)


@router.patch(
    "/{workflow_id}",
    response_model=WorkflowResponse,
    dependencies=[Depends(require_permission("workflow", "update"))],
)
async def update_workflow(
    workflow_id: str,
    data: WorkflowUpdate,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service_transactional)],
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
):
    """Update workflow (partial)"""
    updated = await service.update_workflow(
        workflow_id, agency.id, current_user.sub, data.model_dump(exclude_unset=True)
    )
    return WorkflowResponse.model_validate(updated)


@router.patch(
    "/{workflow_id}/toggle",
    response_model=WorkflowToggleResponse,
    dependencies=[Depends(require_permission("workflow", "update"))],
)
async def toggle_workflow(
    workflow_id: str,
    data: WorkflowToggle,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service_transactional)],
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
):
    """Enable or disable a workflow"""
    workflow: Workflow = await service.toggle_workflow(
        workflow_id, agency.id, data.is_active, current_user.sub
    )
    return WorkflowToggleResponse(
        **WorkflowResponse.model_validate(workflow).model_dump(),
        message="Automation enabled" if workflow.is_active else "Automation disabled",
    )


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permission("workflow", "delete"))],
)
async def delete_workflow(
    workflow_id: str,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service_transactional)],
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
):
    """Soft delete workflow; its run history is kept"""
    await service.delete_workflow(workflow_id, agency.id, current_user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{workflow_id}/runs",
    response_model=WorkflowRunListResponse,
    dependencies=[Depends(require_permission("workflow", "read"))],
)
async def list_workflow_runs(
    workflow_id: str,
    agency: Annotated[Agency, Depends(get_current_agency)],
    service: Annotated[WorkflowService, Depends(get_workflow_service)],
    run_status: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    analytics: bool = Query(False),
):
    """Run history for one workflow, newest first, with optional analytics"""
    runs = await service.list_runs(
        agency.id, workflow_id, status=_status_filter(run_status), limit=limit
    )
    summary = None
    if analytics:
        summary = RunAnalytics(**await service.run_analytics(workflow_id, agency.id))
    return WorkflowRunListResponse(
        runs=[WorkflowRunResponse.model_validate(r) for r in runs], analytics=summary
    )
