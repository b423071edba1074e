"""
Client-side cache of the agency's automations.

Mirrors the workflow list and run history for a dashboard and holds the
builder's draft. Every consumer creates its own store through
``create_automations_state``; there is no shared module-level instance.
"""

from dataclasses import dataclass, field
from typing import Any

from src.application.services.workflow_validator import (DEFAULT_MAX_TRIGGERS,
                                                         validate_workflow)
from src.domain.exceptions import AgencyOpsException
from src.presentation.client.api_client import WorkflowApiClient
from src.shared.telemetry.logging import get_logger
from src.shared.utils import generate_cuid

logger = get_logger(__name__)


@dataclass
class AutomationsStore:
    api: WorkflowApiClient
    max_triggers: int = DEFAULT_MAX_TRIGGERS

    workflows: list[dict[str, Any]] = field(default_factory=list)
    is_loading: bool = False
    error: str | None = None
    runs: list[dict[str, Any]] = field(default_factory=list)
    runs_loading: bool = False

    # Builder draft
    show_builder: bool = False
    editing_workflow: dict[str, Any] | None = None
    builder_name: str = ""
    builder_description: str = ""
    builder_triggers: list[dict[str, Any]] = field(default_factory=list)
    builder_actions: list[dict[str, Any]] = field(default_factory=list)
    validation_errors: list[str] = field(default_factory=list)
    is_saving: bool = False

    # Builder

    def open_builder(self, workflow: dict[str, Any] | None = None) -> None:
        """Open the builder empty, or pre-filled with ``workflow`` for editing"""
        self.show_builder = True
        self.editing_workflow = workflow
        self.validation_errors = []
        if workflow is None:
            self._reset_draft()
            return
        self.builder_name = workflow.get("name") or ""
        self.builder_description = workflow.get("description") or ""
        self.builder_triggers = [dict(t) for t in workflow.get("triggers") or []]
        self.builder_actions = [dict(a) for a in workflow.get("actions") or []]

    def close_builder(self) -> None:
        self.show_builder = False
        self.editing_workflow = None
        self.validation_errors = []
        self._reset_draft()

    def _reset_draft(self) -> None:
        self.builder_name = ""
        self.builder_description = ""
        self.builder_triggers = []
        self.builder_actions = []

    def add_trigger(self, trigger: dict[str, Any]) -> None:
        self.builder_triggers.append({**trigger, "id": trigger.get("id") or generate_cuid()})

    def remove_trigger(self, trigger_id: str) -> None:
        self.builder_triggers = [t for t in self.builder_triggers if t.get("id") != trigger_id]

    def update_trigger(self, trigger_id: str, config: dict[str, Any]) -> None:
        """Replace the config of one trigger"""
        self.builder_triggers = [
            {**t, "config": dict(config)} if t.get("id") == trigger_id else t
            for t in self.builder_triggers
        ]

    def add_action(self, action: dict[str, Any]) -> None:
        self.builder_actions.append({**action, "id": action.get("id") or generate_cuid()})

    def remove_action(self, action_id: str) -> None:
        self.builder_actions = [a for a in self.builder_actions if a.get("id") != action_id]

    def update_action(self, action_id: str, changes: dict[str, Any]) -> None:
        """Merge ``changes`` into one action (config, name, delay...)"""
        self.builder_actions = [
            {**a, **changes} if a.get("id") == action_id else a for a in self.builder_actions
        ]

    def reorder_actions(self, actions: list[dict[str, Any]]) -> None:
        self.builder_actions = list(actions)

    # Computed

    def get_active_count(self) -> int:
        return sum(1 for w in self.workflows if w.get("is_active"))

    def get_total_runs(self) -> int:
        return sum(w.get("run_count") or 0 for w in self.workflows)

    def get_success_rate(self) -> int:
        """Aggregate success percentage over all workflows; 0 with no runs"""
        total = self.get_total_runs()
        if total == 0:
            return 0
        succeeded = sum(w.get("success_count") or 0 for w in self.workflows)
        return round(succeeded / total * 100)

    # Server calls

    async def fetch_workflows(self) -> None:
        self.is_loading = True
        self.error = None
        try:
            self.workflows = await self.api.list_workflows()
        except AgencyOpsException as e:
            logger.warning("Failed to fetch workflows: %s", e.message)
            self.error = e.message
        finally:
            self.is_loading = False

    async def fetch_runs(self, workflow_id: str | None = None, limit: int = 50) -> None:
        self.runs_loading = True
        try:
            self.runs = await self.api.list_runs(workflow_id, limit=limit)
        except AgencyOpsException as e:
            logger.warning("Failed to fetch runs: %s", e.message)
            self.error = e.message
        finally:
            self.runs_loading = False

    async def save_workflow(self) -> dict[str, Any] | None:
        """
        Validate the builder draft and create or update it on the server.

        Returns the saved workflow, or None when validation or the request
        failed (see ``validation_errors`` and ``error``).
        """
        result = validate_workflow(
            self.builder_name, self.builder_triggers, self.builder_actions, self.max_triggers
        )
        self.validation_errors = list(result.errors)
        if not result.valid:
            return None

        payload = {
            "name": self.builder_name.strip(),
            "description": self.builder_description or None,
            "triggers": self.builder_triggers,
            "actions": self.builder_actions,
        }

        self.is_saving = True
        self.error = None
        try:
            if self.editing_workflow:
                saved = await self.api.update_workflow(self.editing_workflow["id"], payload)
            else:
                saved = await self.api.create_workflow(payload)
        except AgencyOpsException as e:
            logger.warning("Failed to save workflow: %s", e.message)
            self.error = e.message
            return None
        finally:
            self.is_saving = False

        self._upsert(saved)
        self.close_builder()
        return saved

    async def toggle_workflow(self, workflow_id: str, is_active: bool) -> bool:
        try:
            updated = await self.api.toggle_workflow(workflow_id, is_active)
        except AgencyOpsException as e:
            self.error = e.message
            return False
        updated.pop("message", None)
        self._upsert(updated)
        return True

    async def delete_workflow(self, workflow_id: str) -> bool:
        try:
            await self.api.delete_workflow(workflow_id)
        except AgencyOpsException as e:
            self.error = e.message
            return False
        self.workflows = [w for w in self.workflows if w.get("id") != workflow_id]
        return True

    def _upsert(self, workflow: dict[str, Any]) -> None:
        for index, existing in enumerate(self.workflows):
            if existing.get("id") == workflow.get("id"):
                self.workflows[index] = workflow
                return
        self.workflows.insert(0, workflow)


def create_automations_state(
    api: WorkflowApiClient, max_triggers: int = DEFAULT_MAX_TRIGGERS
) -> AutomationsStore:
    """Build a fresh, empty store bound to ``api``"""
    return AutomationsStore(api=api, max_triggers=max_triggers)
