from datetime import UTC, datetime

import pytest

from src.application.services.trigger_matcher import TriggerEvent
from src.application.use_cases.workflows.workflow_engine import (
    CANCELLED_MESSAGE, WorkflowEngine)
from src.infrastructure.persistence.models.workflow import Workflow
from src.infrastructure.persistence.repositories import (WorkflowRepository,
                                                         WorkflowRunRepository)
from src.infrastructure.scheduling.run_dispatcher import RunDispatcher
from src.shared.enums import DelayMode, WorkflowRunStatus
from tests.fakes import BlockingSleep, RecordingEffects

STARTED = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)
LIVE_EVENT = TriggerEvent(
    type="stage_change",
    client={"name": "Acme Corp"},
    data={"toStage": "Live"},
    occurred_at=STARTED,
)


async def instant_sleep(seconds: float) -> None:
    return None


@pytest.fixture
async def delayed_workflow(test_db, test_agency):
    workflow = Workflow(
        agency_id=test_agency.id,
        name="Go-live follow-up",
        triggers=[{"id": "t1", "type": "stage_change", "config": {"toStage": "Live"}}],
        actions=[
            {
                "id": "a1",
                "type": "create_task",
                "name": "Welcome call",
                "config": {"title": "Call {{client.name}}"},
                "delay_minutes": 0,
            },
            {
                "id": "a2",
                "type": "send_notification",
                "name": "Check in",
                "config": {"message": "Check in on {{client.name}}", "recipients": ["ops"]},
                "delay_minutes": 60,
            },
        ],
        is_active=True,
        run_count=0,
        success_count=0,
    )
    test_db.add(workflow)
    await test_db.commit()
    return workflow


@pytest.fixture
def make_dispatcher(session_factory):
    def _make(effects, sleep) -> RunDispatcher:
        return RunDispatcher(
            session_factory,
            lambda session: WorkflowEngine(
                WorkflowRepository(session),
                WorkflowRunRepository(session),
                effects,
                delay_mode=DelayMode.SLEEP,
                sleep=sleep,
                clock=lambda: STARTED,
            ),
        )

    return _make


async def load_run(session_factory, run_id: str):
    async with session_factory() as session:
        return await WorkflowRunRepository(session).get_by_id(run_id)


async def load_workflow(session_factory, workflow_id: str) -> Workflow:
    async with session_factory() as session:
        return await WorkflowRepository(session).get_by_id(workflow_id)


@pytest.mark.asyncio
async def test_sleeping_run_is_committed_as_running_and_failed_on_shutdown(
    make_dispatcher, delayed_workflow, session_factory
):
    """
    GIVEN a workflow whose second action is delayed 60 minutes
    WHEN an event is dispatched and the dispatcher shuts down during the delay
    THEN the run is visible as running meanwhile and ends failed with its counters bumped.
    """
    # GIVEN
    effects = RecordingEffects()
    sleep = BlockingSleep()
    dispatcher = make_dispatcher(effects, sleep)

    # WHEN
    runs = await dispatcher.dispatch(LIVE_EVENT, delayed_workflow.agency_id)
    await sleep.waiting.wait()

    # THEN
    assert len(runs) == 1
    assert dispatcher.in_flight == 1
    in_flight = await load_run(session_factory, runs[0].id)
    assert in_flight.status == WorkflowRunStatus.RUNNING.value

    await dispatcher.shutdown()

    stopped = await load_run(session_factory, runs[0].id)
    assert stopped.status == WorkflowRunStatus.FAILED.value
    assert stopped.error_message == CANCELLED_MESSAGE
    assert [r["action_id"] for r in stopped.executed_actions] == ["a1"]
    assert [c["type"] for c in effects.calls] == ["create_task"]

    workflow = await load_workflow(session_factory, delayed_workflow.id)
    assert (workflow.run_count, workflow.success_count) == (1, 0)
    assert dispatcher.in_flight == 0


@pytest.mark.asyncio
async def test_background_run_completes_in_its_own_session(
    make_dispatcher, delayed_workflow, session_factory
):
    effects = RecordingEffects()
    dispatcher = make_dispatcher(effects, instant_sleep)

    runs = await dispatcher.dispatch(LIVE_EVENT, delayed_workflow.agency_id)
    await dispatcher.shutdown(cancel=False)

    finished = await load_run(session_factory, runs[0].id)
    assert finished.status == WorkflowRunStatus.COMPLETED.value
    assert [r["success"] for r in finished.executed_actions] == [True, True]
    assert effects.calls[1]["config"]["message"] == "Check in on Acme Corp"

    workflow = await load_workflow(session_factory, delayed_workflow.id)
    assert (workflow.run_count, workflow.success_count) == (1, 1)


@pytest.mark.asyncio
async def test_dispatch_without_matching_workflow_spawns_nothing(
    make_dispatcher, delayed_workflow
):
    dispatcher = make_dispatcher(RecordingEffects(), instant_sleep)

    runs = await dispatcher.dispatch(TriggerEvent(type="new_message"), delayed_workflow.agency_id)

    assert runs == []
    assert dispatcher.in_flight == 0
