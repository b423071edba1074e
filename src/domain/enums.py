"""Domain enumerations for the Agency Ops application."""

from enum import Enum


class AgencyStatus(str, Enum):
    """Agency (tenant) status enumeration"""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]


class ActionType(str, Enum):
    """Closed set of workflow action types"""

    CREATE_TASK = "create_task"
    SEND_NOTIFICATION = "send_notification"
    DRAFT_COMMUNICATION = "draft_communication"
    CREATE_TICKET = "create_ticket"
    UPDATE_CLIENT = "update_client"
    CREATE_ALERT = "create_alert"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [action.value for action in cls]

    @classmethod
    def parse(cls, value: str | None) -> "ActionType | None":
        """Lookup by value; unknown keys return None"""
        try:
            return cls(value)
        except ValueError:
            return None


class ActionCategory(str, Enum):
    """Action grouping used by the builder palette"""

    TASK = "task"
    COMMUNICATION = "communication"
    DATA = "data"
    ALERT = "alert"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [category.value for category in cls]


class TriggerType(str, Enum):
    """Closed set of workflow trigger types"""

    STAGE_CHANGE = "stage_change"
    NEW_MESSAGE = "new_message"
    KEYWORD_MATCH = "keyword_match"
    INACTIVITY = "inactivity"
    KPI_THRESHOLD = "kpi_threshold"
    TICKET_CREATED = "ticket_created"
    SCHEDULED = "scheduled"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [trigger.value for trigger in cls]

    @classmethod
    def parse(cls, value: str | None) -> "TriggerType | None":
        """Lookup by value; unknown keys return None"""
        try:
            return cls(value)
        except ValueError:
            return None


class TriggerCategory(str, Enum):
    """Trigger grouping used by the builder palette"""

    EVENT = "event"
    CONDITION = "condition"
    SCHEDULE = "schedule"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [category.value for category in cls]
