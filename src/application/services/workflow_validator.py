"""
Workflow validator.

Pure, stateless checks used both for interactive builder feedback and for
server-side enforcement before a workflow is persisted. Every check runs;
callers get the full list of human-readable errors, never a partial one.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.application.services.action_registry import get_action_metadata
from src.application.services.trigger_registry import (KPI_OPERATORS,
                                                       build_cron_trigger,
                                                       get_trigger_metadata,
                                                       resolve_timezone)
from src.domain.entities.workflow import (MAX_DELAY_MINUTES, MIN_DELAY_MINUTES,
                                          WorkflowAction, WorkflowTrigger)
from src.domain.enums import TriggerType
from src.domain.exceptions import ValidationException

DELAY_ERROR = "Delay must be between 0 and 1440 minutes (24 hours)"
DEFAULT_MAX_TRIGGERS = 2


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def is_missing(value: Any) -> bool:
    """Missing key, blank string and empty collection all count as missing"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def is_valid_delay(value: Any) -> bool:
    # bool is an int subclass but never a meaningful delay
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_DELAY_MINUTES <= value <= MAX_DELAY_MINUTES


def _as_action(action: WorkflowAction | Mapping[str, Any]) -> WorkflowAction:
    if isinstance(action, WorkflowAction):
        return action
    return WorkflowAction.from_dict(dict(action))


def _as_trigger(trigger: WorkflowTrigger | Mapping[str, Any]) -> WorkflowTrigger:
    if isinstance(trigger, WorkflowTrigger):
        return trigger
    return WorkflowTrigger.from_dict(dict(trigger))


def validate_action_config(action: WorkflowAction | Mapping[str, Any]) -> ValidationResult:
    """Check an action's required config fields and its delay bounds"""
    action = _as_action(action)

    metadata = get_action_metadata(action.type)
    if metadata is None:
        return ValidationResult.from_errors([f"Unknown action type: {action.type}"])

    errors: list[str] = []
    for config_field in metadata.required_fields():
        if is_missing(action.config.get(config_field.name)):
            errors.append(
                config_field.required_message
                or f"{metadata.name} action requires {config_field.name}"
            )

    if not is_valid_delay(action.delay_minutes):
        errors.append(DELAY_ERROR)

    return ValidationResult.from_errors(errors)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_trigger_config(trigger: WorkflowTrigger | Mapping[str, Any]) -> ValidationResult:
    """Check a trigger's config against the rules of its type"""
    trigger = _as_trigger(trigger)

    metadata = get_trigger_metadata(trigger.type)
    if metadata is None:
        return ValidationResult.from_errors([f"Unknown trigger type: {trigger.type}"])

    config = trigger.config
    errors: list[str] = []

    if metadata.type == TriggerType.STAGE_CHANGE:
        if not config.get("anyStage") and is_missing(config.get("toStage")):
            errors.append("Stage change trigger requires a target stage")

    elif metadata.type == TriggerType.INACTIVITY:
        days = config.get("days")
        if not _is_number(days) or days < 1:
            errors.append("Inactivity trigger requires days >= 1")

    elif metadata.type == TriggerType.KPI_THRESHOLD:
        if is_missing(config.get("metric")):
            errors.append("KPI threshold trigger requires a metric")
        if config.get("operator") not in KPI_OPERATORS:
            errors.append("KPI threshold trigger requires an operator")
        if not _is_number(config.get("value")):
            errors.append("KPI threshold trigger requires a value")

    elif metadata.type == TriggerType.KEYWORD_MATCH:
        keywords = config.get("keywords")
        if not isinstance(keywords, list) or not any(
            isinstance(k, str) and k.strip() for k in keywords
        ):
            errors.append("Keyword match trigger requires at least one keyword")

    elif metadata.type == TriggerType.SCHEDULED:
        schedule = config.get("schedule")
        timezone = config.get("timezone")
        timezone_ok = True
        if timezone is not None:
            try:
                resolve_timezone(timezone)
            except ValueError:
                timezone_ok = False
                errors.append("Scheduled trigger has an unknown timezone")

        if is_missing(schedule):
            errors.append("Scheduled trigger requires a schedule")
        elif isinstance(schedule, str):
            try:
                build_cron_trigger(schedule, timezone if timezone_ok else None)
            except ValueError:
                errors.append("Scheduled trigger has an invalid cron expression")
        else:
            errors.append("Scheduled trigger has an invalid cron expression")

    # new_message and ticket_created only carry optional filters

    return ValidationResult.from_errors(errors)


def _parse_items(items, parse) -> tuple[list, list[str]]:
    """Parse every item, collecting malformed ones as errors instead of raising"""
    parsed, errors = [], []
    for item in items or []:
        try:
            parsed.append(parse(item))
        except ValidationException as exc:
            errors.append(exc.message)
    return parsed, errors


def _duplicate_ids(items: Sequence[WorkflowTrigger | WorkflowAction]) -> bool:
    ids = [item.id for item in items]
    return len(ids) != len(set(ids))


def validate_workflow(
    name: str | None,
    triggers: Sequence[WorkflowTrigger | Mapping[str, Any]],
    actions: Sequence[WorkflowAction | Mapping[str, Any]],
    max_triggers: int = DEFAULT_MAX_TRIGGERS,
) -> ValidationResult:
    """Whole-workflow check used by the builder before saving"""
    errors: list[str] = []

    if name is None or not name.strip():
        errors.append("Name is required")

    parsed_triggers, parse_errors = _parse_items(triggers, _as_trigger)
    errors.extend(parse_errors)
    if not triggers:
        errors.append("At least one trigger is required")
    elif len(triggers) > max_triggers:
        errors.append(f"Maximum {max_triggers} triggers allowed")
    if _duplicate_ids(parsed_triggers):
        errors.append("Trigger ids must be unique")

    parsed_actions, parse_errors = _parse_items(actions, _as_action)
    errors.extend(parse_errors)
    if not actions:
        errors.append("At least one action is required")
    if _duplicate_ids(parsed_actions):
        errors.append("Action ids must be unique")

    for trigger in parsed_triggers:
        errors.extend(validate_trigger_config(trigger).errors)
    for action in parsed_actions:
        errors.extend(validate_action_config(action).errors)

    return ValidationResult.from_errors(errors)


def ensure_valid_definition(
    *,
    name: str | None = None,
    triggers: Sequence[Mapping[str, Any]] | None = None,
    actions: Sequence[Mapping[str, Any]] | None = None,
    partial: bool = False,
    max_triggers: int = DEFAULT_MAX_TRIGGERS,
) -> None:
    """
    Gate a workflow definition before it is persisted.

    With ``partial=True`` only the supplied parts are checked (PATCH
    semantics). Raises ValidationException carrying the offending field and
    the complete list of errors for it.
    """
    if not partial or name is not None:
        if name is None or not name.strip():
            raise ValidationException("Name is required", field="name")

    if not partial or triggers is not None:
        if not triggers:
            raise ValidationException("At least one trigger is required", field="triggers")
        if len(triggers) > max_triggers:
            raise ValidationException(
                f"Maximum {max_triggers} triggers allowed", field="triggers"
            )
        parsed_triggers = [_as_trigger(t) for t in triggers]
        if _duplicate_ids(parsed_triggers):
            raise ValidationException(
                "Invalid trigger configuration",
                field="triggers",
                errors=["Trigger ids must be unique"],
            )
        trigger_errors = [
            error for t in parsed_triggers for error in validate_trigger_config(t).errors
        ]
        if trigger_errors:
            raise ValidationException(
                "Invalid trigger configuration", field="triggers", errors=trigger_errors
            )

    if not partial or actions is not None:
        if not actions:
            raise ValidationException("At least one action is required", field="actions")
        parsed_actions = [_as_action(a) for a in actions]
        if _duplicate_ids(parsed_actions):
            raise ValidationException(
                "Invalid action configuration",
                field="actions",
                errors=["Action ids must be unique"],
            )
        action_errors = [
            error for a in parsed_actions for error in validate_action_config(a).errors
        ]
        if action_errors:
            raise ValidationException(
                "Invalid action configuration", field="actions", errors=action_errors
            )
