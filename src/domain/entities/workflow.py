"""
Workflow domain entities.

These represent the automation concepts (triggers, actions, runs) independent
of how they are stored. Triggers and actions are persisted as JSON lists on
the workflow row; these dataclasses are the typed view over that JSON.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.domain.exceptions import (InvalidRunTransitionException,
                                   ValidationException)
from src.shared.enums import WorkflowRunStatus

MIN_DELAY_MINUTES = 0
MAX_DELAY_MINUTES = 1440

# pending -> running -> {completed | failed}; terminal states are final
RUN_TRANSITIONS: dict[WorkflowRunStatus, frozenset[WorkflowRunStatus]] = {
    WorkflowRunStatus.PENDING: frozenset({WorkflowRunStatus.RUNNING}),
    WorkflowRunStatus.RUNNING: frozenset(
        {WorkflowRunStatus.COMPLETED, WorkflowRunStatus.FAILED}
    ),
    WorkflowRunStatus.COMPLETED: frozenset(),
    WorkflowRunStatus.FAILED: frozenset(),
}


def ensure_run_transition(
    current: str | WorkflowRunStatus,
    target: WorkflowRunStatus,
    run_id: str | None = None,
) -> WorkflowRunStatus:
    """Return ``target`` if the run may move there from ``current``, else raise."""
    current_status = WorkflowRunStatus(current)
    if target not in RUN_TRANSITIONS[current_status]:
        raise InvalidRunTransitionException(run_id, current_status.value, target.value)
    return target


def _first_present(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _config_mapping(value: Any, kind: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationException(
            f"{kind} config must be an object", field=f"{kind.lower()}s"
        )
    return dict(value)


@dataclass
class WorkflowTrigger:
    """A condition that fires its workflow when satisfied by an event"""

    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowTrigger":
        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or ""),
            config=_config_mapping(data.get("config"), "Trigger"),
            name=data.get("name"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type, "config": dict(self.config)}
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass
class WorkflowAction:
    """
    One step of a workflow's effect sequence.

    ``delay_minutes`` is kept as supplied (it may come from deserialized
    storage or a client payload) so the validator can report bad values
    instead of having them coerced away.
    """

    id: str
    type: str
    name: str = ""
    config: dict[str, Any] = field(default_factory=dict)
    delay_minutes: Any = 0
    continue_on_failure: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowAction":
        delay = _first_present(data, "delay_minutes", "delayMinutes", default=0)
        continue_on_failure = _first_present(
            data, "continue_on_failure", "continueOnFailure", default=True
        )
        return cls(
            id=str(data.get("id") or ""),
            type=str(data.get("type") or ""),
            name=str(data.get("name") or ""),
            config=_config_mapping(data.get("config"), "Action"),
            delay_minutes=0 if delay is None else delay,
            continue_on_failure=bool(continue_on_failure),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "config": dict(self.config),
            "delay_minutes": self.delay_minutes,
            "continue_on_failure": self.continue_on_failure,
        }


@dataclass
class ActionResult:
    """Outcome of one action within a run"""

    action_id: str
    action_type: str
    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    scheduled_for: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action_id": self.action_id,
            "action_type": self.action_type,
            "success": self.success,
        }
        if self.success:
            data["output"] = self.output or {}
        else:
            data["error"] = self.error
        for key in ("scheduled_for", "started_at", "completed_at"):
            value = getattr(self, key)
            data[key] = value.isoformat() if value else None
        return data


def success_rate(run_count: int, success_count: int) -> int | None:
    """Percentage of fully successful runs; None when nothing has run yet"""
    if run_count <= 0:
        return None
    return round(success_count / run_count * 100)
