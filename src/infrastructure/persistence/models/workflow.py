"""
Workflow automation models.

Workflows define triggers and actions:
- Triggers: when to fire (stage change, new message, schedule, ...)
- Actions: ordered steps to perform, each with an optional delay
"""
from datetime import datetime
from typing import Any

from sqlalchemy import (JSON, Boolean, CheckConstraint, DateTime, ForeignKey,
                        Integer, String, Text)
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.entities.workflow import (ActionResult, WorkflowAction,
                                          WorkflowTrigger,
                                          ensure_run_transition, success_rate)
from src.infrastructure.persistence.database import Base
from src.infrastructure.persistence.models.mixins import (
    AuditedMultiTenantModel, MultiTenantModel, utc_now)
from src.shared.enums import WorkflowRunStatus


class Workflow(AuditedMultiTenantModel, Base):
    """
    Automation definition: IF any trigger matches THEN run the actions in order.

    Inherits from AuditedMultiTenantModel:
        - id: CUID primary key
        - agency_id: Foreign key to agency
        - created_at, updated_at: Timestamps
        - created_by, updated_by: User tracking
        - deleted_at: Soft delete support

    Example workflow:
    {
        "name": "Welcome new live clients",
        "triggers": [
            {"id": "t1", "type": "stage_change", "config": {"toStage": "Live"}}
        ],
        "actions": [
            {
                "id": "a1",
                "type": "create_task",
                "config": {"title": "Welcome call with {{client.name}}"},
                "delay_minutes": 0
            }
        ]
    }
    """

    __tablename__ = "workflow"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    triggers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, comment="OR-combined triggers [{id, type, config}]"
    )
    actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered actions [{id, type, config, delay_minutes}, ...]",
    )

    # Accounting, only ever changed through an atomic UPDATE
    run_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("success_count <= run_count", name="workflow_success_le_runs_check"),
    )

    def trigger_entities(self) -> list[WorkflowTrigger]:
        return [WorkflowTrigger.from_dict(t) for t in self.triggers or []]

    def action_entities(self) -> list[WorkflowAction]:
        return [WorkflowAction.from_dict(a) for a in self.actions or []]

    @property
    def success_rate(self) -> int | None:
        return success_rate(self.run_count, self.success_count)

    def __repr__(self):
        return f"<Workflow(id={self.id}, name={self.name}, active={self.is_active})>"


class WorkflowRun(MultiTenantModel, Base):
    """
    One execution of a workflow.

    Inherits from MultiTenantModel:
        - id: CUID primary key
        - agency_id: Foreign key to agency
        - created_at, updated_at: Timestamps

    Lifecycle: pending -> running -> completed | failed. Terminal runs are
    never modified again. Runs outlive their workflow's soft delete.
    """

    __tablename__ = "workflow_run"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    trigger_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Snapshot of the triggering event and matched trigger id"
    )

    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=WorkflowRunStatus.PENDING.value,
        index=True,
        comment="pending | running | completed | failed",
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    executed_actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, comment="Per-action results in execution order"
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            f"status IN {tuple(WorkflowRunStatus.values())}", name="workflow_run_status_check"
        ),
    )

    def mark_running(self, now: datetime | None = None) -> None:
        ensure_run_transition(self.status, WorkflowRunStatus.RUNNING, self.id)
        self.status = WorkflowRunStatus.RUNNING.value
        self.started_at = now or utc_now()

    def complete(self, results: list[ActionResult], now: datetime | None = None) -> None:
        ensure_run_transition(self.status, WorkflowRunStatus.COMPLETED, self.id)
        self.status = WorkflowRunStatus.COMPLETED.value
        self.executed_actions = [r.to_dict() for r in results]
        self.completed_at = now or utc_now()

    def fail(
        self, error_message: str, results: list[ActionResult], now: datetime | None = None
    ) -> None:
        ensure_run_transition(self.status, WorkflowRunStatus.FAILED, self.id)
        self.status = WorkflowRunStatus.FAILED.value
        self.error_message = error_message
        self.executed_actions = [r.to_dict() for r in results]
        self.completed_at = now or utc_now()

    @property
    def all_actions_succeeded(self) -> bool:
        return self.status == WorkflowRunStatus.COMPLETED.value and all(
            r.get("success") for r in self.executed_actions or []
        )

    @property
    def duration_ms(self) -> int | None:
        if not self.started_at or not self.completed_at:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def __repr__(self):
        return f"<WorkflowRun(id={self.id}, workflow_id={self.workflow_id}, status={self.status})>"
