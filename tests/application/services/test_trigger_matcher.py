from datetime import UTC, datetime

import pytest

from src.application.services.trigger_matcher import (TriggerEvent,
                                                      find_matching_trigger,
                                                      trigger_matches)
from src.domain.entities.workflow import WorkflowTrigger


def trigger(trigger_type: str, config: dict | None = None, trigger_id: str = "t1") -> WorkflowTrigger:
    return WorkflowTrigger(id=trigger_id, type=trigger_type, config=config or {})


class TestStageChange:
    def test_matches_target_stage_case_insensitively(self):
        event = TriggerEvent(type="stage_change", data={"fromStage": "Onboarding", "toStage": "live"})

        assert trigger_matches(trigger("stage_change", {"toStage": "Live"}), event)

    def test_from_stage_must_match_when_configured(self):
        """
        GIVEN a trigger for Onboarding -> Live
        WHEN a client moves Audit -> Live
        THEN it does not fire.
        """
        config = {"fromStage": "Onboarding", "toStage": "Live"}
        event = TriggerEvent(type="stage_change", data={"fromStage": "Audit", "toStage": "Live"})

        assert not trigger_matches(trigger("stage_change", config), event)

    def test_any_stage_fires_on_a_real_move(self):
        moved = TriggerEvent(type="stage_change", data={"fromStage": "Audit", "toStage": "Live"})
        unchanged = TriggerEvent(type="stage_change", data={"fromStage": "Live", "toStage": "Live"})

        assert trigger_matches(trigger("stage_change", {"anyStage": True}), moved)
        assert not trigger_matches(trigger("stage_change", {"anyStage": True}), unchanged)

    def test_other_event_types_never_match(self):
        event = TriggerEvent(type="new_message", data={"toStage": "Live"})

        assert not trigger_matches(trigger("stage_change", {"toStage": "Live"}), event)


class TestMessages:
    def test_platform_filter(self):
        event = TriggerEvent(type="new_message", data={"platform": "slack", "content": "hello"})

        assert trigger_matches(trigger("new_message"), event)
        assert trigger_matches(trigger("new_message", {"platform": "Slack"}), event)
        assert not trigger_matches(trigger("new_message", {"platform": "gmail"}), event)

    @pytest.mark.parametrize(
        "content, case_sensitive, expected",
        [
            ("We want to CANCEL our plan", False, True),
            ("We want to CANCEL our plan", True, False),
            ("Thanks for the update", False, False),
        ],
    )
    def test_keyword_match_on_incoming_messages(self, content, case_sensitive, expected):
        """
        GIVEN a keyword trigger for "cancel"
        WHEN a message arrives
        THEN it fires when the text contains the keyword, honouring caseSensitive.
        """
        config = {"keywords": ["cancel", "refund"], "caseSensitive": case_sensitive}
        event = TriggerEvent(type="new_message", data={"content": content})

        assert trigger_matches(trigger("keyword_match", config), event) is expected

    def test_keyword_match_reads_subject_too(self):
        event = TriggerEvent(type="new_message", data={"subject": "Refund request", "body": ""})

        assert trigger_matches(trigger("keyword_match", {"keywords": ["refund"]}), event)


class TestConditions:
    def test_inactivity_threshold(self):
        config = {"days": 7}

        assert trigger_matches(trigger("inactivity", config), TriggerEvent(type="inactivity", data={"days": 9}))
        assert not trigger_matches(
            trigger("inactivity", config), TriggerEvent(type="inactivity", data={"days": 3})
        )

    def test_inactivity_falls_back_to_client_record(self):
        event = TriggerEvent(type="inactivity", client={"daysSinceActivity": 10})

        assert trigger_matches(trigger("inactivity", {"days": 7}), event)

    @pytest.mark.parametrize(
        "operator, observed, expected",
        [
            ("above", 80, True),
            ("above", 50, False),
            ("below", 20, True),
            ("equals", 50, True),
            ("equals", 50.5, False),
        ],
    )
    def test_kpi_threshold_operators(self, operator, observed, expected):
        config = {"metric": "nps", "operator": operator, "value": 50}
        event = TriggerEvent(type="kpi_threshold", data={"metric": "NPS", "value": observed})

        assert trigger_matches(trigger("kpi_threshold", config), event) is expected

    def test_ticket_filters(self):
        event = TriggerEvent(type="ticket_created", data={"priority": "high", "category": "billing"})

        assert trigger_matches(trigger("ticket_created", {"priority": "high"}), event)
        assert not trigger_matches(trigger("ticket_created", {"category": "technical"}), event)


class TestScheduled:
    def test_fires_in_matching_minute(self):
        event = TriggerEvent(type="scheduled", occurred_at=datetime(2025, 3, 3, 9, 0, tzinfo=UTC))

        assert trigger_matches(trigger("scheduled", {"schedule": "0 9 * * 1-5"}), event)

    def test_bad_schedule_never_fires(self):
        """An invalid cron stored on a trigger is skipped instead of raising."""
        event = TriggerEvent(type="scheduled", occurred_at=datetime(2025, 3, 3, 9, 0, tzinfo=UTC))

        assert not trigger_matches(trigger("scheduled", {"schedule": "whenever"}), event)


class TestFindMatchingTrigger:
    def test_first_matching_trigger_wins(self):
        """
        GIVEN two triggers that both match the event
        WHEN the matching trigger is looked up
        THEN the first one in declaration order is returned.
        """
        triggers = [
            trigger("new_message", trigger_id="first"),
            trigger("new_message", {"platform": "slack"}, trigger_id="second"),
        ]
        event = TriggerEvent(type="new_message", data={"platform": "slack"})

        assert find_matching_trigger(triggers, event).id == "first"

    def test_unknown_trigger_type_is_ignored(self):
        triggers = [trigger("moon_phase"), trigger("new_message", trigger_id="t2")]

        assert find_matching_trigger(triggers, TriggerEvent(type="new_message")).id == "t2"

    def test_no_match_returns_none(self):
        assert find_matching_trigger([trigger("inactivity", {"days": 30})], TriggerEvent(type="new_message")) is None
