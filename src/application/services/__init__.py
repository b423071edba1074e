"""Application services."""

from src.application.services.action_registry import (ACTION_TYPES,
                                                      AVAILABLE_VARIABLES,
                                                      DELAY_PRESETS,
                                                      get_action_metadata,
                                                      get_action_types,
                                                      get_action_types_by_category)
from src.application.services.authorization_service import AuthorizationService
from src.application.services.trigger_matcher import (TriggerEvent,
                                                      find_matching_trigger,
                                                      trigger_matches)
from src.application.services.trigger_registry import (AVAILABLE_TIMEZONES,
                                                       COMMON_SCHEDULES,
                                                       TRIGGER_TYPES,
                                                       get_trigger_metadata,
                                                       get_trigger_types,
                                                       get_trigger_types_by_category,
                                                       parse_cron_expression)
from src.application.services.variable_substitution import (format_delay,
                                                            substitute_config,
                                                            substitute_variables)
from src.application.services.workflow_validator import (ValidationResult,
                                                         ensure_valid_definition,
                                                         validate_workflow,
                                                         validate_action_config,
                                                         validate_trigger_config)

__all__ = [
    "ACTION_TYPES",
    "AVAILABLE_VARIABLES",
    "DELAY_PRESETS",
    "get_action_types",
    "get_action_types_by_category",
    "get_action_metadata",
    "TRIGGER_TYPES",
    "COMMON_SCHEDULES",
    "AVAILABLE_TIMEZONES",
    "get_trigger_types",
    "get_trigger_types_by_category",
    "get_trigger_metadata",
    "parse_cron_expression",
    "substitute_variables",
    "substitute_config",
    "format_delay",
    "ValidationResult",
    "validate_action_config",
    "validate_trigger_config",
    "validate_workflow",
    "ensure_valid_definition",
    "TriggerEvent",
    "trigger_matches",
    "find_matching_trigger",
    "AuthorizationService",
]
