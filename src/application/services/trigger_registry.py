"""
Trigger registry.

Static catalog of trigger types plus the schedule helpers the builder and the
run engine share. Cron expressions are standard 5-field crontab strings and
are evaluated with APScheduler's ``CronTrigger``.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger

from src.application.services.action_registry import ConfigField
from src.domain.enums import TriggerCategory, TriggerType


@dataclass(frozen=True)
class TriggerTypeMetadata:
    type: TriggerType
    name: str
    description: str
    icon: str
    category: TriggerCategory
    config_schema: tuple[ConfigField, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category.value,
            "config_schema": [f.to_dict() for f in self.config_schema],
        }


@dataclass(frozen=True)
class ScheduleOption:
    label: str
    cron: str
    description: str


KPI_OPERATORS = ("above", "below", "equals")

_TRIGGER_TYPES: dict[TriggerType, TriggerTypeMetadata] = {
    TriggerType.STAGE_CHANGE: TriggerTypeMetadata(
        type=TriggerType.STAGE_CHANGE,
        name="Stage Change",
        description="When a client moves between pipeline stages",
        icon="git-branch",
        category=TriggerCategory.EVENT,
        config_schema=(
            ConfigField("fromStage", "From stage", "select"),
            ConfigField("toStage", "To stage", "select", required=True),
            ConfigField("anyStage", "Any stage change", "boolean"),
        ),
    ),
    TriggerType.NEW_MESSAGE: TriggerTypeMetadata(
        type=TriggerType.NEW_MESSAGE,
        name="New Message",
        description="When a new communication arrives from a client",
        icon="message-square",
        category=TriggerCategory.EVENT,
        config_schema=(
            ConfigField("platform", "Platform", "select", options=("gmail", "slack", "linkedin")),
        ),
    ),
    TriggerType.KEYWORD_MATCH: TriggerTypeMetadata(
        type=TriggerType.KEYWORD_MATCH,
        name="Keyword Match",
        description="When an incoming message mentions one of the keywords",
        icon="search",
        category=TriggerCategory.EVENT,
        config_schema=(
            ConfigField("keywords", "Keywords", "multiselect", required=True),
            ConfigField("platform", "Platform", "select", options=("gmail", "slack", "linkedin")),
            ConfigField("caseSensitive", "Case sensitive", "boolean"),
        ),
    ),
    TriggerType.INACTIVITY: TriggerTypeMetadata(
        type=TriggerType.INACTIVITY,
        name="Inactivity",
        description="When a client has had no activity for a number of days",
        icon="clock",
        category=TriggerCategory.CONDITION,
        config_schema=(ConfigField("days", "Days without activity", "number", required=True),),
    ),
    TriggerType.KPI_THRESHOLD: TriggerTypeMetadata(
        type=TriggerType.KPI_THRESHOLD,
        name="KPI Threshold",
        description="When a client metric crosses a threshold",
        icon="trending-down",
        category=TriggerCategory.CONDITION,
        config_schema=(
            ConfigField("metric", "Metric", "select", required=True),
            ConfigField("operator", "Operator", "select", required=True, options=KPI_OPERATORS),
            ConfigField("value", "Value", "number", required=True),
        ),
    ),
    TriggerType.TICKET_CREATED: TriggerTypeMetadata(
        type=TriggerType.TICKET_CREATED,
        name="Ticket Created",
        description="When a support ticket is opened for a client",
        icon="ticket",
        category=TriggerCategory.EVENT,
        config_schema=(
            ConfigField("priority", "Priority", "select", options=("low", "medium", "high", "urgent")),
            ConfigField("category", "Category", "select"),
        ),
    ),
    TriggerType.SCHEDULED: TriggerTypeMetadata(
        type=TriggerType.SCHEDULED,
        name="Scheduled",
        description="On a recurring schedule",
        icon="calendar",
        category=TriggerCategory.SCHEDULE,
        config_schema=(
            ConfigField("schedule", "Schedule (cron)", "text", required=True),
            ConfigField("timezone", "Timezone", "select"),
        ),
    ),
}

TRIGGER_TYPES = MappingProxyType(_TRIGGER_TYPES)

COMMON_SCHEDULES: tuple[ScheduleOption, ...] = (
    ScheduleOption("Every hour", "0 * * * *", "At the start of every hour"),
    ScheduleOption("Daily at 9am", "0 9 * * *", "Every day at 9:00"),
    ScheduleOption("Weekdays at 9am", "0 9 * * 1-5", "Monday to Friday at 9:00"),
    ScheduleOption("Every Monday", "0 9 * * 1", "Every Monday at 9:00"),
    ScheduleOption("First of the month", "0 9 1 * *", "First day of each month at 9:00"),
)

AVAILABLE_TIMEZONES: tuple[str, ...] = (
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Dubai",
    "Asia/Kolkata",
    "Asia/Singapore",
    "Asia/Tokyo",
    "Australia/Sydney",
)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
# crontab weekday numbers (0 and 7 are Sunday) to APScheduler weekday names
_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")


def get_trigger_types() -> list[TriggerTypeMetadata]:
    """All registered trigger types in registry order"""
    return list(TRIGGER_TYPES.values())


def get_trigger_types_by_category(category: TriggerCategory | str) -> list[TriggerTypeMetadata]:
    """Trigger types in ``category``, preserving registry order"""
    value = category.value if isinstance(category, TriggerCategory) else category
    return [meta for meta in TRIGGER_TYPES.values() if meta.category.value == value]


def get_trigger_metadata(trigger_type: TriggerType | str | None) -> TriggerTypeMetadata | None:
    """Lookup by type key; unknown keys return None"""
    parsed = (
        trigger_type if isinstance(trigger_type, TriggerType) else TriggerType.parse(trigger_type)
    )
    if parsed is None:
        return None
    return TRIGGER_TYPES.get(parsed)


def parse_cron_expression(expression: str) -> str:
    """Describe a cron expression for humans; unrecognised shapes are returned as-is"""
    parts = expression.split()
    if len(parts) != 5:
        return expression

    minute, hour, day, month, weekday = parts
    if minute == "0" and hour == "*" and day == "*" and month == "*" and weekday == "*":
        return "Every hour"

    if not (minute.isdigit() and hour.isdigit()):
        return expression
    at = f"{int(hour)}:{int(minute):02d}"

    if month != "*":
        return expression
    if day == "*" and weekday == "*":
        return f"Daily at {at}"
    if day == "*" and weekday == "1-5":
        return f"Weekdays at {at}"
    if day == "*" and weekday.isdigit() and int(weekday) <= 7:
        return f"Every {DAY_NAMES[int(weekday) % 7]} at {at}"
    if day == "1" and weekday == "*":
        return f"First day of month at {at}"
    return expression


def _translate_weekdays(field_expr: str) -> str:
    """Rewrite a crontab day-of-week field using APScheduler weekday names"""
    if field_expr == "*":
        return field_expr

    names: list[str] = []
    for part in field_expr.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
        if part == "*":
            start, end = 0, 6
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
        elif part.isdigit():
            start = end = int(part)
        else:
            # Already a name (mon, tue, ...)
            names.append(part.lower())
            continue
        if not (0 <= start <= 7 and 0 <= end <= 7 and start <= end):
            raise ValueError(f"Invalid day-of-week value: {part}")
        for number in range(start, end + 1, step):
            name = _CRON_WEEKDAYS[number]
            if name not in names:
                names.append(name)
    return ",".join(names)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for ``name`` (UTC when empty); raises ValueError when unknown"""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def build_cron_trigger(expression: str, timezone: str | None = None) -> CronTrigger:
    """Build an APScheduler CronTrigger from a 5-field crontab expression"""
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f"Wrong number of fields in cron expression: {expression!r}")

    minute, hour, day, month, weekday = parts
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_translate_weekdays(weekday),
        timezone=resolve_timezone(timezone),
    )


def cron_matches(expression: str, instant: datetime, timezone: str | None = None) -> bool:
    """True when the schedule fires in the minute containing ``instant``"""
    trigger = build_cron_trigger(expression, timezone)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    minute_start = instant.replace(second=0, microsecond=0)
    fire_time = trigger.get_next_fire_time(None, minute_start)
    return fire_time is not None and fire_time < minute_start + timedelta(minutes=1)
