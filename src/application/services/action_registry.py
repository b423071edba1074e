"""
Action registry.

Static catalog of the action types a workflow can run. The registry is a
module-level constant built once at import; there is no runtime registration.
Each entry's ``config_schema`` drives both the builder form and the
required-field checks in the workflow validator.
"""

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any

from src.domain.enums import ActionCategory, ActionType


@dataclass(frozen=True)
class ConfigField:
    """One field of a type's config form"""

    name: str
    label: str
    kind: str  # text | textarea | select | multiselect | number | boolean | mapping
    required: bool = False
    required_message: str | None = None
    options: tuple[str, ...] = ()
    placeholder: str | None = None
    supports_variables: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["options"] = list(self.options)
        data.pop("required_message")
        return data


@dataclass(frozen=True)
class ActionTypeMetadata:
    type: ActionType
    name: str
    description: str
    icon: str
    category: ActionCategory
    supports_approval: bool
    config_schema: tuple[ConfigField, ...] = field(default_factory=tuple)

    def required_fields(self) -> tuple[ConfigField, ...]:
        return tuple(f for f in self.config_schema if f.required)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "supports_approval": self.supports_approval,
            "config_schema": [f.to_dict() for f in self.config_schema],
        }


@dataclass(frozen=True)
class DelayPreset:
    label: str
    minutes: int


@dataclass(frozen=True)
class VariableDefinition:
    path: str
    label: str
    description: str
    example: str


PRIORITIES = ("low", "medium", "high", "urgent")

_ACTION_TYPES: dict[ActionType, ActionTypeMetadata] = {
    ActionType.CREATE_TASK: ActionTypeMetadata(
        type=ActionType.CREATE_TASK,
        name="Create Task",
        description="Create a task for a team member on the client's record",
        icon="check-square",
        category=ActionCategory.TASK,
        supports_approval=False,
        config_schema=(
            ConfigField(
                "title",
                "Task title",
                "text",
                required=True,
                required_message="Create task action requires a title",
                placeholder="Follow up with {{client.name}}",
                supports_variables=True,
            ),
            ConfigField("description", "Description", "textarea", supports_variables=True),
            ConfigField("assignee", "Assignee", "select"),
            ConfigField("priority", "Priority", "select", options=PRIORITIES),
            ConfigField("due_in_days", "Due in (days)", "number"),
        ),
    ),
    ActionType.SEND_NOTIFICATION: ActionTypeMetadata(
        type=ActionType.SEND_NOTIFICATION,
        name="Send Notification",
        description="Notify team members over Slack, email or in-app",
        icon="bell",
        category=ActionCategory.COMMUNICATION,
        supports_approval=False,
        config_schema=(
            ConfigField("channel", "Channel", "select", options=("slack", "email", "in_app")),
            ConfigField(
                "message",
                "Message",
                "textarea",
                required=True,
                required_message="Send notification action requires a message",
                placeholder="{{client.name}} moved to {{client.stage}}",
                supports_variables=True,
            ),
            ConfigField(
                "recipients",
                "Recipients",
                "multiselect",
                required=True,
                required_message="Send notification action requires at least one recipient",
            ),
        ),
    ),
    ActionType.DRAFT_COMMUNICATION: ActionTypeMetadata(
        type=ActionType.DRAFT_COMMUNICATION,
        name="Draft Communication",
        description="Draft a client message for review before it is sent",
        icon="mail",
        category=ActionCategory.COMMUNICATION,
        supports_approval=True,
        config_schema=(
            ConfigField(
                "platform",
                "Platform",
                "select",
                required=True,
                required_message="Draft communication action requires a platform",
                options=("gmail", "slack", "linkedin"),
            ),
            ConfigField(
                "template",
                "Template",
                "textarea",
                required=True,
                required_message="Draft communication action requires a template",
                supports_variables=True,
            ),
            ConfigField("subject", "Subject", "text", supports_variables=True),
            ConfigField("require_approval", "Require approval", "boolean"),
        ),
    ),
    ActionType.CREATE_TICKET: ActionTypeMetadata(
        type=ActionType.CREATE_TICKET,
        name="Create Ticket",
        description="Open a support ticket for the client",
        icon="ticket",
        category=ActionCategory.TASK,
        supports_approval=False,
        config_schema=(
            ConfigField(
                "title",
                "Ticket title",
                "text",
                required=True,
                required_message="Create ticket action requires a title",
                supports_variables=True,
            ),
            ConfigField("description", "Description", "textarea", supports_variables=True),
            ConfigField(
                "category",
                "Category",
                "select",
                required=True,
                required_message="Create ticket action requires a category",
                options=("technical", "billing", "general", "onboarding"),
            ),
            ConfigField(
                "priority",
                "Priority",
                "select",
                required=True,
                required_message="Create ticket action requires a priority",
                options=PRIORITIES,
            ),
        ),
    ),
    ActionType.UPDATE_CLIENT: ActionTypeMetadata(
        type=ActionType.UPDATE_CLIENT,
        name="Update Client",
        description="Change fields on the client record (stage, health, owner)",
        icon="user-cog",
        category=ActionCategory.DATA,
        supports_approval=True,
        config_schema=(
            ConfigField(
                "updates",
                "Field updates",
                "mapping",
                required=True,
                required_message="Update client action requires at least one update",
            ),
        ),
    ),
    ActionType.CREATE_ALERT: ActionTypeMetadata(
        type=ActionType.CREATE_ALERT,
        name="Create Alert",
        description="Raise an alert on the dashboard",
        icon="alert-triangle",
        category=ActionCategory.ALERT,
        supports_approval=False,
        config_schema=(
            ConfigField(
                "title",
                "Alert title",
                "text",
                required=True,
                required_message="Create alert action requires a title",
                supports_variables=True,
            ),
            ConfigField(
                "type",
                "Alert type",
                "select",
                required=True,
                required_message="Create alert action requires a type",
                options=("risk_detected", "kpi_drop", "inactivity", "custom"),
            ),
            ConfigField(
                "severity",
                "Severity",
                "select",
                required=True,
                required_message="Create alert action requires a severity",
                options=("low", "medium", "high", "critical"),
            ),
            ConfigField("description", "Description", "textarea", supports_variables=True),
        ),
    ),
}

ACTION_TYPES = MappingProxyType(_ACTION_TYPES)

DELAY_PRESETS: tuple[DelayPreset, ...] = (
    DelayPreset("Immediately", 0),
    DelayPreset("5 minutes", 5),
    DelayPreset("15 minutes", 15),
    DelayPreset("30 minutes", 30),
    DelayPreset("1 hour", 60),
    DelayPreset("2 hours", 120),
    DelayPreset("4 hours", 240),
    DelayPreset("8 hours", 480),
    DelayPreset("24 hours", 1440),
)

AVAILABLE_VARIABLES: tuple[VariableDefinition, ...] = (
    VariableDefinition("{{client.name}}", "Client name", "The client's company name", "Acme Corp"),
    VariableDefinition("{{client.stage}}", "Pipeline stage", "Current pipeline stage", "Onboarding"),
    VariableDefinition("{{client.health}}", "Health status", "Current health status", "green"),
    VariableDefinition("{{client.owner}}", "Account owner", "Team member who owns the client", "Jane"),
    VariableDefinition("{{client.contactName}}", "Contact name", "Primary contact's name", "John Doe"),
    VariableDefinition(
        "{{client.contactEmail}}", "Contact email", "Primary contact's email", "john@acme.com"
    ),
    VariableDefinition(
        "{{client.daysInStage}}", "Days in stage", "Days spent in the current stage", "14"
    ),
    VariableDefinition("{{trigger.date}}", "Trigger date", "Date the action ran (UTC)", "2025-01-31"),
    VariableDefinition("{{trigger.time}}", "Trigger time", "Time the action ran (UTC)", "09:30"),
    VariableDefinition("{{agency.name}}", "Agency name", "Your agency's name", "Northwind"),
)


def get_action_types() -> list[ActionTypeMetadata]:
    """All registered action types in registry order"""
    return list(ACTION_TYPES.values())


def get_action_types_by_category(category: ActionCategory | str) -> list[ActionTypeMetadata]:
    """Action types in ``category``, preserving registry order"""
    value = category.value if isinstance(category, ActionCategory) else category
    return [meta for meta in ACTION_TYPES.values() if meta.category.value == value]


def get_action_metadata(action_type: ActionType | str | None) -> ActionTypeMetadata | None:
    """Lookup by type key; unknown keys return None"""
    parsed = action_type if isinstance(action_type, ActionType) else ActionType.parse(action_type)
    if parsed is None:
        return None
    return ACTION_TYPES.get(parsed)
