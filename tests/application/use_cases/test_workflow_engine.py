"""Tests for the workflow run engine against a real (sqlite) repository"""

import asyncio
from datetime import UTC, datetime

import pytest

from src.application.services.trigger_matcher import TriggerEvent
from src.application.use_cases.workflows.workflow_engine import (
    CANCELLED_MESSAGE, WorkflowEngine)
from src.domain.exceptions import ActionExecutionError, UnrecoverableActionError
from src.infrastructure.persistence.models.workflow import Workflow
from src.infrastructure.persistence.repositories import (WorkflowRepository,
                                                         WorkflowRunRepository)
from src.shared.enums import DelayMode, WorkflowRunStatus
from tests.fakes import BlockingSleep, RecordingEffects

STARTED = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)


def task(action_id: str, title: str = "Call {{client.name}}", delay: int = 0, **extra) -> dict:
    return {
        "id": action_id,
        "type": "create_task",
        "name": f"Task {action_id}",
        "config": {"title": title},
        "delay_minutes": delay,
        **extra,
    }


def notify(action_id: str, delay: int = 0, **extra) -> dict:
    return {
        "id": action_id,
        "type": "send_notification",
        "name": f"Notify {action_id}",
        "config": {"message": "{{client.name}} at {{agency.name}}", "recipients": ["ops"]},
        "delay_minutes": delay,
        **extra,
    }


STAGE_LIVE = {"id": "t1", "type": "stage_change", "config": {"toStage": "Live"}}
LIVE_EVENT = TriggerEvent(
    type="stage_change",
    client={"name": "Acme Corp"},
    data={"fromStage": "Onboarding", "toStage": "Live"},
    occurred_at=STARTED,
)


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def workflow_repo(test_db):
    return WorkflowRepository(test_db)


@pytest.fixture
def run_repo(test_db):
    return WorkflowRunRepository(test_db)


@pytest.fixture
def make_workflow(workflow_repo, test_agency):
    async def _make(actions, triggers=None, name="Go-live", is_active=True) -> Workflow:
        return await workflow_repo.create(
            Workflow(
                agency_id=test_agency.id,
                name=name,
                triggers=triggers or [STAGE_LIVE],
                actions=actions,
                is_active=is_active,
                run_count=0,
                success_count=0,
            )
        )

    return _make


@pytest.fixture
def make_engine(workflow_repo, run_repo):
    def _make(effects, **kwargs) -> WorkflowEngine:
        kwargs.setdefault("delay_mode", DelayMode.SKIP)
        kwargs.setdefault("clock", lambda: STARTED)
        return WorkflowEngine(workflow_repo, run_repo, effects, **kwargs)

    return _make


@pytest.mark.asyncio
async def test_successful_run_executes_actions_in_order(make_workflow, make_engine, test_db):
    """
    GIVEN an active workflow with two actions
    WHEN a matching event is processed
    THEN both actions run in order with substituted config and the run completes.
    """
    # GIVEN
    workflow = await make_workflow([task("a1"), notify("a2")])
    effects = RecordingEffects()
    engine = make_engine(effects)

    # WHEN
    runs = await engine.process_event(LIVE_EVENT, workflow.agency_id, {"name": "Northwind"})

    # THEN
    assert len(runs) == 1
    run = runs[0]
    assert run.status == WorkflowRunStatus.COMPLETED.value
    assert run.error_message is None
    assert [c["type"] for c in effects.calls] == ["create_task", "send_notification"]
    assert effects.calls[0]["config"]["title"] == "Call Acme Corp"
    assert effects.calls[1]["config"]["message"] == "Acme Corp at Northwind"
    assert [r["action_id"] for r in run.executed_actions] == ["a1", "a2"]
    assert all(r["success"] for r in run.executed_actions)
    assert run.trigger_data["trigger_id"] == "t1"
    assert run.trigger_data["data"]["toStage"] == "Live"

    await test_db.refresh(workflow)
    assert workflow.run_count == 1
    assert workflow.success_count == 1
    assert workflow.last_run_at is not None


@pytest.mark.asyncio
async def test_non_matching_event_creates_no_run(make_workflow, make_engine, run_repo):
    workflow = await make_workflow([task("a1")])
    event = TriggerEvent(type="stage_change", data={"toStage": "Churned"})

    runs = await make_engine(RecordingEffects()).process_event(event, workflow.agency_id)

    assert runs == []
    assert await run_repo.list_runs(workflow.agency_id) == []


@pytest.mark.asyncio
async def test_inactive_workflow_is_not_evaluated(make_workflow, make_engine):
    workflow = await make_workflow([task("a1")], is_active=False)

    runs = await make_engine(RecordingEffects()).process_event(LIVE_EVENT, workflow.agency_id)

    assert runs == []


@pytest.mark.asyncio
async def test_one_run_per_workflow_even_when_both_triggers_match(make_workflow, make_engine):
    """
    GIVEN a workflow whose two triggers both match the event
    WHEN the event is processed
    THEN exactly one run is created, attributed to the first trigger.
    """
    triggers = [STAGE_LIVE, {"id": "t2", "type": "stage_change", "config": {"anyStage": True}}]
    workflow = await make_workflow([task("a1")], triggers=triggers)

    runs = await make_engine(RecordingEffects()).process_event(LIVE_EVENT, workflow.agency_id)

    assert len(runs) == 1
    assert runs[0].trigger_data["trigger_id"] == "t1"


@pytest.mark.asyncio
async def test_recoverable_failure_continues_and_counts_as_unsuccessful(
    make_workflow, make_engine, failing_effects, test_db
):
    """
    GIVEN a notification action whose effect fails recoverably
    WHEN the workflow runs
    THEN the next action still runs, the run completes and success_count is not bumped.
    """
    workflow = await make_workflow([notify("a1"), task("a2")])

    runs = await make_engine(failing_effects).process_event(LIVE_EVENT, workflow.agency_id)

    run = runs[0]
    assert run.status == WorkflowRunStatus.COMPLETED.value
    assert [r["success"] for r in run.executed_actions] == [False, True]
    assert run.executed_actions[0]["error"] == "Slack is down"
    assert not run.all_actions_succeeded

    await test_db.refresh(workflow)
    assert workflow.run_count == 1
    assert workflow.success_count == 0


@pytest.mark.asyncio
async def test_continue_on_failure_false_stops_the_run(make_workflow, make_engine, failing_effects):
    workflow = await make_workflow([notify("a1", continue_on_failure=False), task("a2")])

    runs = await make_engine(failing_effects).process_event(LIVE_EVENT, workflow.agency_id)

    run = runs[0]
    assert run.status == WorkflowRunStatus.FAILED.value
    assert run.error_message == "Action 'Notify a1' failed: Slack is down"
    assert [r["action_id"] for r in run.executed_actions] == ["a1"]
    assert [c["type"] for c in failing_effects.calls] == ["send_notification"]


@pytest.mark.asyncio
async def test_unrecoverable_error_fails_the_run(make_workflow, make_engine, test_db):
    """
    GIVEN an effect that raises UnrecoverableActionError
    WHEN the workflow runs
    THEN remaining actions are skipped and the run is failed and still counted.
    """
    effects = RecordingEffects(
        failures={"create_task": UnrecoverableActionError("create_task", "Project archived")}
    )
    workflow = await make_workflow([task("a1"), notify("a2")])

    runs = await make_engine(effects).process_event(LIVE_EVENT, workflow.agency_id)

    run = runs[0]
    assert run.status == WorkflowRunStatus.FAILED.value
    assert "Project archived" in run.error_message
    assert len(run.executed_actions) == 1

    await test_db.refresh(workflow)
    assert workflow.run_count == 1
    assert workflow.success_count == 0


@pytest.mark.asyncio
async def test_invalid_stored_action_is_unrecoverable(make_workflow, make_engine):
    """An action whose stored config no longer validates aborts the run before dispatch."""
    workflow = await make_workflow([task("a1", title=""), notify("a2")])
    effects = RecordingEffects()

    runs = await make_engine(effects).process_event(LIVE_EVENT, workflow.agency_id)

    assert runs[0].status == WorkflowRunStatus.FAILED.value
    assert runs[0].executed_actions[0]["error"] == "Create task action requires a title"
    assert effects.calls == []


@pytest.mark.asyncio
async def test_action_timeout_is_recorded_as_failure(make_workflow, make_engine):
    class SlowEffects:
        async def perform(self, action_type, config, context):
            await asyncio.sleep(1)
            return {}

    workflow = await make_workflow([task("a1")])

    runs = await make_engine(SlowEffects(), action_timeout_seconds=0.01).process_event(
        LIVE_EVENT, workflow.agency_id
    )

    result = runs[0].executed_actions[0]
    assert not result["success"]
    assert result["error"] == "Action timed out after 0.01 seconds"
    assert runs[0].status == WorkflowRunStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_delays_are_measured_from_workflow_start(make_workflow, make_engine):
    """
    GIVEN actions delayed 5 and 10 minutes
    WHEN the engine runs in sleep mode
    THEN it waits until start+5m and start+10m, not 5m after the previous action.
    """
    workflow = await make_workflow([task("a1", delay=5), notify("a2", delay=10)])
    sleep = SleepRecorder()

    runs = await make_engine(
        RecordingEffects(), delay_mode=DelayMode.SLEEP, sleep=sleep
    ).process_event(LIVE_EVENT, workflow.agency_id)

    assert sleep.calls == [300.0, 600.0]
    scheduled = [r["scheduled_for"] for r in runs[0].executed_actions]
    assert scheduled == ["2025-03-03T09:05:00+00:00", "2025-03-03T09:10:00+00:00"]


@pytest.mark.asyncio
async def test_skip_mode_never_sleeps(make_workflow, make_engine):
    workflow = await make_workflow([task("a1", delay=60)])
    sleep = SleepRecorder()

    runs = await make_engine(RecordingEffects(), sleep=sleep).process_event(
        LIVE_EVENT, workflow.agency_id
    )

    assert sleep.calls == []
    assert runs[0].executed_actions[0]["scheduled_for"] == "2025-03-03T10:00:00+00:00"


@pytest.mark.asyncio
async def test_other_agency_workflows_are_not_triggered(make_workflow, make_engine, other_agency):
    await make_workflow([task("a1")])
    effects = RecordingEffects()

    runs = await make_engine(effects).process_event(LIVE_EVENT, other_agency.id)

    assert runs == []
    assert effects.calls == []


@pytest.mark.asyncio
async def test_run_cancelled_during_delay_is_persisted_as_failed(
    make_workflow, make_engine, run_repo, test_db
):
    """
    GIVEN a run whose second action is delayed 60 minutes
    WHEN its task is cancelled while waiting out that delay
    THEN the run is failed with the first action recorded and counted once.
    """
    # GIVEN
    workflow = await make_workflow([task("a1"), notify("a2", delay=60)])
    effects = RecordingEffects()
    sleep = BlockingSleep()
    engine = make_engine(effects, delay_mode=DelayMode.SLEEP, sleep=sleep)

    # WHEN
    pending = asyncio.create_task(engine.process_event(LIVE_EVENT, workflow.agency_id))
    await sleep.waiting.wait()
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    # THEN
    runs = await run_repo.list_runs(workflow.agency_id, workflow.id)
    assert len(runs) == 1
    assert runs[0].status == WorkflowRunStatus.FAILED.value
    assert runs[0].error_message == CANCELLED_MESSAGE
    assert [r["action_id"] for r in runs[0].executed_actions] == ["a1"]
    assert [c["type"] for c in effects.calls] == ["create_task"]

    await test_db.refresh(workflow)
    assert (workflow.run_count, workflow.success_count) == (1, 0)


@pytest.mark.asyncio
async def test_date_variables_use_the_engine_clock(make_workflow, make_engine):
    workflow = await make_workflow([task("a1", title="Review on {{trigger.date}} at {{trigger.time}}")])
    effects = RecordingEffects()

    await make_engine(effects).process_event(LIVE_EVENT, workflow.agency_id)

    assert effects.calls[0]["config"]["title"] == "Review on 2025-03-03 at 09:00"


@pytest.mark.asyncio
async def test_event_fields_are_not_shadowed_by_trigger_defaults(make_workflow, make_engine):
    """
    GIVEN an event whose data carries its own id and type
    WHEN a workflow templates them
    THEN the event's values win and the trigger's stay reachable as trigger_id/trigger_type.
    """
    workflow = await make_workflow(
        [task("a1", title="{{trigger.id}}/{{trigger.type}} via {{trigger.trigger_id}}")]
    )
    effects = RecordingEffects()
    event = TriggerEvent(
        type="stage_change",
        data={"toStage": "Live", "id": "deal-42", "type": "upsell"},
        occurred_at=STARTED,
    )

    await make_engine(effects).process_event(event, workflow.agency_id)

    assert effects.calls[0]["config"]["title"] == "deal-42/upsell via t1"
    assert effects.calls[0]["context"]["trigger"]["trigger_type"] == "stage_change"
