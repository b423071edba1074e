from datetime import UTC, datetime

import pytest
from freezegun import freeze_time

from src.application.services.variable_substitution import (format_delay,
                                                            substitute_config,
                                                            substitute_variables)

FROZEN_TIME = "2025-01-31T09:30:00Z"

CONTEXT = {
    "client": {
        "name": "Acme Corp",
        "stage": "Onboarding",
        "healthStatus": "green",
        "contact_name": "John Doe",
        "contactEmail": "john@acme.com",
        "daysInStage": 14,
        "vip": True,
    },
    "trigger": {"type": "stage_change", "toStage": "Live"},
    "agency": {"id": "agency-1", "name": "Northwind"},
}


class TestSubstituteVariables:
    """Unit tests for {{namespace.field}} resolution."""

    def test_resolves_each_namespace(self):
        """
        GIVEN a template using client, trigger and agency variables
        WHEN it is substituted
        THEN each token is replaced from its namespace.
        """
        template = "{{client.name}} moved to {{trigger.toStage}} ({{agency.name}})"

        assert substitute_variables(template, CONTEXT) == "Acme Corp moved to Live (Northwind)"

    def test_client_aliases(self):
        """health reads healthStatus; contactName falls back to contact_name."""
        template = "{{client.health}} / {{client.contactName}} / {{client.daysInStage}}"

        assert substitute_variables(template, CONTEXT) == "green / John Doe / 14"

    def test_missing_fields_become_empty_strings(self):
        """
        GIVEN tokens for fields or namespaces absent from the context
        WHEN substituted
        THEN they resolve to the empty string without raising.
        """
        assert substitute_variables("Hi {{client.owner}}!", CONTEXT) == "Hi !"
        assert substitute_variables("Hi {{client.name}}!", {}) == "Hi !"
        assert substitute_variables("Hi {{client.name}}!", None) == "Hi !"

    def test_booleans_render_lowercase(self):
        assert substitute_variables("VIP: {{client.vip}}", CONTEXT) == "VIP: true"

    def test_whitespace_inside_braces_is_tolerated(self):
        assert substitute_variables("{{ client.name }}", CONTEXT) == "Acme Corp"

    def test_escaped_token_is_kept_literally(self):
        """A backslash before the braces keeps the token and drops the backslash."""
        assert substitute_variables("Use \\{{client.name}} here", CONTEXT) == "Use {{client.name}} here"

    def test_unknown_namespace_is_left_untouched(self):
        assert substitute_variables("{{user.email}}", CONTEXT) == "{{user.email}}"

    def test_template_without_tokens_is_returned_as_is(self):
        assert substitute_variables("Plain text", CONTEXT) == "Plain text"
        assert substitute_variables("", CONTEXT) == ""

    @freeze_time(FROZEN_TIME)
    def test_trigger_date_and_time_use_current_utc_time(self):
        """
        GIVEN the clock frozen at 2025-01-31 09:30 UTC
        WHEN trigger.date and trigger.time are substituted
        THEN they render the substitution instant.
        """
        result = substitute_variables("{{trigger.date}} {{trigger.time}}", CONTEXT)

        assert result == "2025-01-31 09:30"

    def test_explicit_now_overrides_the_clock(self):
        now = datetime(2024, 12, 25, 18, 5, tzinfo=UTC)

        assert substitute_variables("{{trigger.date}}T{{trigger.time}}", CONTEXT, now) == "2024-12-25T18:05"


class TestSubstituteConfig:
    def test_recurses_into_nested_config(self):
        """
        GIVEN an action config with nested strings and lists
        WHEN substituted
        THEN every string is resolved and non-strings are kept.
        """
        config = {
            "message": "Welcome {{client.name}}",
            "recipients": ["{{client.contactEmail}}", "ops@northwind.test"],
            "updates": {"note": "Moved by {{agency.name}}"},
            "due_in_days": 3,
        }

        result = substitute_config(config, CONTEXT)

        assert result == {
            "message": "Welcome Acme Corp",
            "recipients": ["john@acme.com", "ops@northwind.test"],
            "updates": {"note": "Moved by Northwind"},
            "due_in_days": 3,
        }
        assert config["message"] == "Welcome {{client.name}}"


class TestFormatDelay:
    @pytest.mark.parametrize(
        "minutes, label",
        [
            (0, "Immediately"),
            (-5, "Immediately"),
            (1, "1 minutes"),
            (30, "30 minutes"),
            (60, "1 hour"),
            (90, "1 hour 30 minutes"),
            (120, "2 hours"),
            (1440, "24 hours"),
        ],
    )
    def test_labels(self, minutes, label):
        assert format_delay(minutes) == label
