from datetime import UTC, datetime

import pytest

from src.infrastructure.persistence.models.agency import Agency
from src.infrastructure.persistence.models.workflow import Workflow
from src.infrastructure.persistence.repositories import WorkflowRunRepository
from src.infrastructure.scheduling.run_dispatcher import RunDispatcher
from src.infrastructure.scheduling.schedule_ticker import ScheduleTicker
from src.presentation.api.dependencies import build_workflow_engine
from tests.fakes import RecordingEffects

MONDAY_NINE = datetime(2025, 3, 3, 9, 0, 30, tzinfo=UTC)


@pytest.fixture
async def scheduled_workflow(test_db, test_agency):
    workflow = Workflow(
        agency_id=test_agency.id,
        name="Weekday standup reminder",
        triggers=[
            {"id": "t1", "type": "scheduled", "config": {"schedule": "0 9 * * 1-5", "timezone": "UTC"}}
        ],
        actions=[
            {
                "id": "a1",
                "type": "send_notification",
                "name": "Remind",
                "config": {"message": "Standup at {{agency.name}}", "recipients": ["team"]},
            }
        ],
        is_active=True,
        run_count=0,
        success_count=0,
    )
    test_db.add(workflow)
    await test_db.commit()
    return workflow


@pytest.fixture
def ticker_effects():
    return RecordingEffects()


@pytest.fixture
def ticker(session_factory, ticker_effects):
    return ScheduleTicker(
        session_factory=session_factory,
        dispatcher=RunDispatcher(
            session_factory, lambda session: build_workflow_engine(session, ticker_effects)
        ),
    )


@pytest.mark.asyncio
async def test_tick_fires_matching_schedules_once_per_minute(
    ticker, ticker_effects, scheduled_workflow, session_factory
):
    """
    GIVEN a weekday 9:00 schedule
    WHEN the ticker runs twice within 9:00 on a Monday
    THEN exactly one run is created and the agency name is substituted.
    """
    assert await ticker.tick(MONDAY_NINE) == 1
    assert await ticker.tick(MONDAY_NINE.replace(second=55)) == 0

    assert ticker_effects.calls[0]["config"]["message"] == "Standup at Northwind Agency"
    async with session_factory() as session:
        runs = await WorkflowRunRepository(session).list_runs(scheduled_workflow.agency_id)
    assert len(runs) == 1
    assert runs[0].trigger_data["type"] == "scheduled"


@pytest.mark.asyncio
async def test_tick_outside_schedule_creates_nothing(ticker, ticker_effects, scheduled_workflow):
    assert await ticker.tick(datetime(2025, 3, 3, 9, 1, tzinfo=UTC)) == 0
    assert await ticker.tick(datetime(2025, 3, 9, 9, 0, tzinfo=UTC)) == 0
    assert ticker_effects.calls == []


@pytest.mark.asyncio
async def test_suspended_agency_is_skipped(ticker, ticker_effects, scheduled_workflow, test_db):
    agency = await test_db.get(Agency, scheduled_workflow.agency_id)
    agency.status = "suspended"
    await test_db.commit()

    assert await ticker.tick(MONDAY_NINE) == 0
    assert ticker_effects.calls == []
