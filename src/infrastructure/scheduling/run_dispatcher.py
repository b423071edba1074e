"""Runs fired workflows outside the caller's transaction.

Every dispatch commits its runs as ``running`` in a session of its own, so
in-flight runs are visible and survive a caller that goes away. With
``DelayMode.SKIP`` the runs finish inline; with ``DelayMode.SLEEP`` each run
finishes in a background task with its own session, so a request or a
ticker never waits out action delays.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.application.services.trigger_matcher import TriggerEvent
from src.application.use_cases.workflows.workflow_engine import (StartedRun,
                                                                 WorkflowEngine)
from src.infrastructure.persistence.models.workflow import WorkflowRun
from src.shared.enums import DelayMode
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class RunDispatcher:
    """Starts runs in their own transaction and completes them off the caller's path"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine_factory: Callable[[AsyncSession], WorkflowEngine],
    ):
        self.session_factory = session_factory
        self.engine_factory = engine_factory
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def dispatch(
        self,
        event: TriggerEvent,
        agency_id: str,
        agency: dict[str, Any] | None = None,
    ) -> list[WorkflowRun]:
        """
        Fire ``event`` for one agency.

        Returns the runs it produced: terminal when delays are skipped,
        still ``running`` when they complete in the background.
        """
        async with self.session_factory() as session:
            engine = self.engine_factory(session)
            started = await engine.start_runs(event, agency_id, agency)
            await session.commit()

            if engine.delay_mode == DelayMode.SKIP:
                try:
                    return [await engine.complete_run(item) for item in started]
                finally:
                    await session.commit()

        for item in started:
            task = asyncio.create_task(self._complete(item), name=f"workflow-run-{item.run.id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return [item.run for item in started]

    async def _complete(self, started: StartedRun) -> None:
        async with self.session_factory() as session:
            try:
                await self.engine_factory(session).complete_run(started)
            finally:
                await session.commit()

    async def shutdown(self, cancel: bool = True) -> None:
        """
        Stop background runs.

        Cancelled runs are persisted as failed with the actions they got
        through; ``cancel=False`` waits for them to finish instead.
        """
        tasks = list(self._tasks)
        if not tasks:
            return
        if cancel:
            for task in tasks:
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(
            "%s %d in-flight workflow run(s)", "Cancelled" if cancel else "Finished", len(tasks)
        )
