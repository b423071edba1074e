"""Pydantic schemas for workflows"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowCreate(BaseModel):
    """Create workflow request

    Triggers and actions stay loosely typed here; the workflow validator
    checks them and reports every problem at once.
    """

    name: str | None = Field(None, max_length=200)
    description: str | None = None
    triggers: list[dict[str, Any]] = Field(default_factory=list)
    actions: list[dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True


class WorkflowUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged"""

    name: str | None = Field(None, max_length=200)
    description: str | None = None
    triggers: list[dict[str, Any]] | None = None
    actions: list[dict[str, Any]] | None = None
    is_active: bool | None = None


class WorkflowToggle(BaseModel):
    is_active: bool


class WorkflowRunResponse(BaseModel):
    """Workflow run response"""

    id: str
    agency_id: str
    workflow_id: str
    trigger_data: dict[str, Any] | None
    status: str
    executed_actions: list[dict[str, Any]]
    error_message: str | None
    started_at: datetime | None
    completed_at: datetime | None
    duration_ms: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkflowResponse(BaseModel):
    """Workflow response"""

    id: str
    agency_id: str
    name: str
    description: str | None
    triggers: list[dict[str, Any]]
    actions: list[dict[str, Any]]
    is_active: bool
    run_count: int
    success_count: int
    success_rate: int | None = None
    last_run_at: datetime | None
    created_by: str | None
    updated_by: str | None
    created_at: datetime
    updated_at: datetime
    runs: list[WorkflowRunResponse] | None = None

    model_config = ConfigDict(from_attributes=True)


class WorkflowToggleResponse(WorkflowResponse):
    message: str


class WorkflowListResponse(BaseModel):
    workflows: list[WorkflowResponse]


class RunAnalytics(BaseModel):
    total: int
    completed: int
    failed: int
    success_rate: int | None
    average_duration_ms: int | None


class WorkflowRunListResponse(BaseModel):
    runs: list[WorkflowRunResponse]
    analytics: RunAnalytics | None = None


class WorkflowEventRequest(BaseModel):
    """Domain event offered to the agency's active workflows"""

    type: str = Field(..., min_length=1, max_length=50)
    client: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime | None = None


class WorkflowEventResponse(BaseModel):
    runs: list[WorkflowRunResponse]


class ActionCatalogResponse(BaseModel):
    types: list[dict[str, Any]]
    variables: list[dict[str, Any]]
    delay_presets: list[dict[str, Any]]


class TriggerCatalogResponse(BaseModel):
    types: list[dict[str, Any]]
    schedules: list[dict[str, Any]]
    timezones: list[str]
