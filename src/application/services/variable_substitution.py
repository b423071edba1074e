"""
Variable substitution for action templates.

Templates carry ``{{namespace.field}}`` tokens resolved against a context of
the form ``{"client": {...}, "trigger": {...}, "agency": {...}}``. Resolution
is fail-soft: a missing namespace or field becomes the empty string, so a
partially populated context still yields a sendable message.

A backslash before the opening braces (``\\{{client.name}}``) keeps the token
literally. Tokens in namespaces other than client/trigger/agency are left
untouched.
"""

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

KNOWN_NAMESPACES = frozenset({"client", "trigger", "agency"})

_TOKEN_PATTERN = re.compile(r"(\\)?\{\{\s*([A-Za-z_][\w]*)\.([A-Za-z_][\w]*)\s*\}\}")

# "health" is an alias; records may carry any of these spellings
_CLIENT_ALIASES: dict[str, tuple[str, ...]] = {
    "health": ("healthStatus", "health_status", "health"),
    "contactName": ("contactName", "contact_name"),
    "contactEmail": ("contactEmail", "contact_email"),
    "daysInStage": ("daysInStage", "days_in_stage"),
}


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _resolve_client(client: Mapping[str, Any], field: str) -> Any:
    for key in _CLIENT_ALIASES.get(field, (field,)):
        if client.get(key) is not None:
            return client[key]
    return None


def _resolve_trigger(trigger: Mapping[str, Any], field: str, now: datetime) -> Any:
    # Built-ins reflect substitution time, not when the event occurred
    if field == "date":
        return now.strftime("%Y-%m-%d")
    if field == "time":
        return now.strftime("%H:%M")
    return trigger.get(field)


def substitute_variables(
    template: str, context: Mapping[str, Any] | None = None, now: datetime | None = None
) -> str:
    """
    Replace every ``{{namespace.field}}`` token in ``template``.

    Never raises on missing data; unresolved fields in known namespaces become
    the empty string. Tokens are substituted independently, left to right.
    """
    if not template or "{{" not in template:
        return template

    context = context or {}
    now = now or datetime.now(UTC)

    def replace(match: re.Match[str]) -> str:
        escaped, namespace, field = match.groups()
        if escaped:
            return match.group(0)[1:]
        if namespace not in KNOWN_NAMESPACES:
            return match.group(0)

        scope = context.get(namespace)
        if not isinstance(scope, Mapping):
            scope = {}

        if namespace == "client":
            value = _resolve_client(scope, field)
        elif namespace == "trigger":
            value = _resolve_trigger(scope, field, now)
        else:
            value = scope.get(field)
        return _stringify(value)

    return _TOKEN_PATTERN.sub(replace, template)


def substitute_config(
    value: Any, context: Mapping[str, Any] | None = None, now: datetime | None = None
) -> Any:
    """Apply substitution to every string nested inside an action config"""
    now = now or datetime.now(UTC)
    if isinstance(value, str):
        return substitute_variables(value, context, now)
    if isinstance(value, Mapping):
        return {key: substitute_config(item, context, now) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_config(item, context, now) for item in value]
    return value


def format_delay(minutes: int) -> str:
    """Human label for an action delay"""
    if minutes <= 0:
        return "Immediately"
    if minutes < 60:
        return f"{minutes} minutes"

    hours, remainder = divmod(minutes, 60)
    label = "1 hour" if hours == 1 else f"{hours} hours"
    if remainder:
        label += f" {format_delay(remainder)}"
    return label
