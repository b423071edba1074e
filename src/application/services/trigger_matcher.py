"""
Trigger matching.

Decides whether a workflow trigger is satisfied by an incoming domain event.
Each trigger type has its own predicate; triggers of a workflow are OR-combined
and the first one that matches fires the workflow.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.application.services.trigger_registry import cron_matches
from src.domain.entities.workflow import WorkflowTrigger
from src.domain.enums import TriggerType
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

MESSAGE_TEXT_FIELDS = ("content", "body", "text", "subject", "snippet")


@dataclass
class TriggerEvent:
    """A domain event offered to the run engine"""

    type: str
    client: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe copy stored as a run's trigger_data"""
        return {
            "type": self.type,
            "client": dict(self.client),
            "data": dict(self.data),
            "occurred_at": self.occurred_at.isoformat(),
        }


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _same(left: Any, right: Any) -> bool:
    return str(left).strip().lower() == str(right).strip().lower()


def _match_stage_change(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    from_stage = _get(event.data, "fromStage", "from_stage")
    to_stage = _get(event.data, "toStage", "to_stage") or _get(event.client, "stage")

    if config.get("anyStage"):
        return from_stage is None or to_stage is None or not _same(from_stage, to_stage)

    if to_stage is None or not _same(config.get("toStage", ""), to_stage):
        return False
    wanted_from = config.get("fromStage")
    if wanted_from:
        return from_stage is not None and _same(wanted_from, from_stage)
    return True


def _platform_allowed(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    wanted = config.get("platform")
    if not wanted:
        return True
    platform = event.data.get("platform")
    return platform is not None and _same(wanted, platform)


def _match_new_message(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    return _platform_allowed(config, event)


def _match_keyword(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    if not _platform_allowed(config, event):
        return False

    text = " ".join(
        str(event.data[key]) for key in MESSAGE_TEXT_FIELDS if event.data.get(key)
    )
    keywords = [k for k in config.get("keywords") or [] if isinstance(k, str) and k.strip()]
    if not text or not keywords:
        return False

    if config.get("caseSensitive"):
        return any(keyword in text for keyword in keywords)
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _match_inactivity(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    threshold = config.get("days")
    inactive_days = _get(event.data, "days", "daysInactive", "days_inactive")
    if inactive_days is None:
        inactive_days = _get(event.client, "daysSinceActivity", "days_since_activity")
    try:
        return float(inactive_days) >= float(threshold)
    except (TypeError, ValueError):
        return False


def _match_kpi_threshold(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    metric = event.data.get("metric")
    if metric is None or not _same(config.get("metric", ""), metric):
        return False
    try:
        observed = float(event.data.get("value"))
        threshold = float(config.get("value"))
    except (TypeError, ValueError):
        return False

    operator = config.get("operator")
    if operator == "above":
        return observed > threshold
    if operator == "below":
        return observed < threshold
    if operator == "equals":
        return observed == threshold
    return False


def _match_ticket_created(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    for key in ("priority", "category"):
        wanted = config.get(key)
        if wanted and not (event.data.get(key) and _same(wanted, event.data[key])):
            return False
    return True


def _match_scheduled(config: Mapping[str, Any], event: TriggerEvent) -> bool:
    schedule = config.get("schedule")
    if not schedule:
        return False
    try:
        return cron_matches(schedule, event.occurred_at, config.get("timezone"))
    except ValueError as e:
        logger.warning("Skipping scheduled trigger with bad config %s: %s", schedule, e)
        return False


_MATCHERS: dict[TriggerType, Callable[[Mapping[str, Any], TriggerEvent], bool]] = {
    TriggerType.STAGE_CHANGE: _match_stage_change,
    TriggerType.NEW_MESSAGE: _match_new_message,
    TriggerType.KEYWORD_MATCH: _match_keyword,
    TriggerType.INACTIVITY: _match_inactivity,
    TriggerType.KPI_THRESHOLD: _match_kpi_threshold,
    TriggerType.TICKET_CREATED: _match_ticket_created,
    TriggerType.SCHEDULED: _match_scheduled,
}

# Keyword triggers listen to incoming messages
_ACCEPTED_EVENTS: dict[TriggerType, frozenset[str]] = {
    TriggerType.KEYWORD_MATCH: frozenset(
        {TriggerType.NEW_MESSAGE.value, TriggerType.KEYWORD_MATCH.value}
    ),
}


def trigger_matches(trigger: WorkflowTrigger, event: TriggerEvent) -> bool:
    """True when ``event`` satisfies ``trigger``; unknown trigger types never match"""
    trigger_type = TriggerType.parse(trigger.type)
    if trigger_type is None:
        return False

    accepted = _ACCEPTED_EVENTS.get(trigger_type, frozenset({trigger_type.value}))
    if event.type not in accepted:
        return False
    return _MATCHERS[trigger_type](trigger.config, event)


def find_matching_trigger(
    triggers: Iterable[WorkflowTrigger], event: TriggerEvent
) -> WorkflowTrigger | None:
    """First trigger, in declaration order, that ``event`` satisfies"""
    for trigger in triggers:
        if trigger_matches(trigger, event):
            return trigger
    return None
