"""Periodic ticker that offers ``scheduled`` events to every agency.

Wraps APScheduler's ``AsyncIOScheduler`` with a single interval job. Each tick
is floored to the minute and processed at most once, so cron triggers fire
once per matching minute whatever the tick interval. Runs go through the
``RunDispatcher``, so one agency's delayed actions never hold up the next.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.application.services.trigger_matcher import TriggerEvent
from src.domain.enums import TriggerType
from src.infrastructure.persistence.repositories.agency_repo import AgencyRepository
from src.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from src.infrastructure.scheduling.run_dispatcher import RunDispatcher
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

JOB_ID = "workflow-schedule-tick"


class ScheduleTicker:
    """Emits one ``scheduled`` event per agency per minute"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: RunDispatcher,
        interval_seconds: int = 60,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._scheduler: AsyncIOScheduler | None = None
        self._last_minute: datetime | None = None
        self._pending: set[asyncio.Task] = set()

    def start(self) -> None:
        if self._scheduler and self._scheduler.running:
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._spawn_tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Schedule ticker started (every %ss)", self.interval_seconds)

    def shutdown(self) -> None:
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Schedule ticker stopped")
        for task in self._pending:
            task.cancel()
        self._pending.clear()

    async def _spawn_tick(self) -> None:
        # Ticks outlive the scheduler job's own timeout on large fan-outs
        task = asyncio.create_task(self.tick())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def tick(self, now: datetime | None = None) -> int:
        """Process one minute; returns the number of runs created"""
        minute = (now or self._clock()).replace(second=0, microsecond=0)
        if self._last_minute is not None and minute <= self._last_minute:
            return 0
        self._last_minute = minute

        async with self.session_factory() as session:
            agency_ids = await WorkflowRepository(session).get_agencies_with_active_workflows()

        total = 0
        for agency_id in agency_ids:
            try:
                total += await self._tick_agency(agency_id, minute)
            except Exception:
                logger.exception("Scheduled tick failed for agency %s", agency_id)

        if total:
            logger.info("Scheduled tick %s created %d run(s)", minute.isoformat(), total)
        return total

    async def _tick_agency(self, agency_id: str, minute: datetime) -> int:
        async with self.session_factory() as session:
            agency = await AgencyRepository(session).get_active(agency_id)
            if agency is None:
                return 0
            fields = {"id": agency.id, "name": agency.name}

        runs = await self.dispatcher.dispatch(
            TriggerEvent(type=TriggerType.SCHEDULED.value, occurred_at=minute),
            agency_id,
            fields,
        )
        return len(runs)
