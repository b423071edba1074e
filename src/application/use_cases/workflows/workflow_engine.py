"""
Workflow automation engine.

Matches incoming domain events against an agency's active workflows and runs
the matched workflows' actions in order, recording one result per action and
accounting every finished run against the workflow counters.

A run is executed in two steps so callers can commit between them:
``start_runs`` persists every fired run as ``running``, ``complete_run``
executes its actions (waiting out delays) and finalizes it. A run whose
task is cancelled mid-way is still finalized as failed before the
cancellation propagates.

Failure policy per action:
- recoverable (effect error, timeout): recorded, the run moves on
- unrecoverable (UnrecoverableActionError, unknown type, invalid config at
  dispatch, or a failing action with continue_on_failure=False): the rest
  of the run is skipped and the run is persisted as failed

Errors never propagate past ``process_event``/``complete_run``; callers
always get run records back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from src.application.services.trigger_matcher import (TriggerEvent,
                                                      find_matching_trigger)
from src.application.services.variable_substitution import substitute_config
from src.application.services.workflow_validator import (is_valid_delay,
                                                         validate_action_config)
from src.domain.entities.workflow import (ActionResult, WorkflowAction,
                                          WorkflowTrigger)
from src.domain.enums import ActionType
from src.domain.exceptions import (ActionExecutionError, RunFatalError,
                                   UnrecoverableActionError)
from src.infrastructure.persistence.models.workflow import WorkflowRun
from src.shared.enums import DelayMode, WorkflowRunStatus
from src.shared.telemetry.logging import get_logger
from src.shared.telemetry.tracing import add_span_attributes, add_span_event, traced

if TYPE_CHECKING:
    from src.application.interfaces import (IActionEffects,
                                            IWorkflowRepository,
                                            IWorkflowRunRepository)
    from src.infrastructure.persistence.models.workflow import Workflow

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Run cancelled before all actions executed"


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class StartedRun:
    """A run persisted as running whose actions have not been executed yet"""

    run: WorkflowRun
    workflow_id: str
    agency_id: str
    workflow_name: str
    actions: list[WorkflowAction]
    context: dict[str, Any]
    started_at: datetime


class WorkflowEngine:
    """Execute workflows triggered by events"""

    def __init__(
        self,
        workflow_repo: "IWorkflowRepository",
        run_repo: "IWorkflowRunRepository",
        effects: "IActionEffects",
        *,
        action_timeout_seconds: float = 30.0,
        delay_mode: DelayMode | str = DelayMode.SLEEP,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.workflow_repo = workflow_repo
        self.run_repo = run_repo
        self.effects = effects
        self.action_timeout_seconds = action_timeout_seconds
        self.delay_mode = DelayMode(delay_mode)
        self._sleep = sleep
        self._clock = clock

    @traced("workflow_engine.process_event")
    async def process_event(
        self,
        event: TriggerEvent,
        agency_id: str,
        agency: dict[str, Any] | None = None,
    ) -> list[WorkflowRun]:
        """
        Find and execute workflows triggered by event, inline.

        Args:
            event: Event offered to the agency's workflows
            agency_id: Agency (tenant) the event belongs to
            agency: Agency fields exposed to templates as ``{{agency.*}}``

        Returns:
            One run per fired workflow, in workflow creation order
        """
        started = await self.start_runs(event, agency_id, agency)
        return [await self.complete_run(item) for item in started]

    @traced("workflow_engine.start_runs")
    async def start_runs(
        self,
        event: TriggerEvent,
        agency_id: str,
        agency: dict[str, Any] | None = None,
    ) -> list[StartedRun]:
        """Create a running run for every workflow the event fires"""
        add_span_attributes(agency_id=agency_id, event_type=event.type)

        try:
            workflows = await self.workflow_repo.get_active_for_agency(agency_id)
        except Exception:
            logger.exception("Could not load workflows for agency %s", agency_id)
            return []

        started: list[StartedRun] = []
        for workflow in workflows:
            # One run per workflow per event, from the first matching trigger
            trigger = find_matching_trigger(workflow.trigger_entities(), event)
            if trigger is None:
                continue

            item = await self.start_run(workflow, event, trigger, agency)
            if item is not None:
                started.append(item)

        logger.info(
            "Event %s for agency %s fired %d workflow(s)", event.type, agency_id, len(started)
        )
        return started

    async def start_run(
        self,
        workflow: "Workflow",
        event: TriggerEvent,
        trigger: WorkflowTrigger,
        agency: dict[str, Any] | None = None,
    ) -> StartedRun | None:
        add_span_attributes(workflow_id=workflow.id, trigger_id=trigger.id)
        logger.info(
            "Executing workflow '%s' (id: %s) triggered by %s",
            workflow.name,
            workflow.id,
            trigger.type,
        )

        try:
            run = await self.run_repo.create(
                WorkflowRun(
                    agency_id=workflow.agency_id,
                    workflow_id=workflow.id,
                    status=WorkflowRunStatus.PENDING.value,
                    trigger_data={
                        **event.snapshot(),
                        "trigger_id": trigger.id,
                        "trigger_type": trigger.type,
                    },
                    executed_actions=[],
                )
            )
            started_at = self._clock()
            run.mark_running(started_at)
            await self.run_repo.save(run)
        except Exception:
            logger.exception("Could not start a run for workflow %s", workflow.id)
            return None

        return StartedRun(
            run=run,
            workflow_id=workflow.id,
            agency_id=workflow.agency_id,
            workflow_name=workflow.name,
            actions=workflow.action_entities(),
            context=self._build_context(workflow, event, trigger, agency),
            started_at=started_at,
        )

    @traced("workflow_engine.complete_run")
    async def complete_run(self, started: StartedRun) -> WorkflowRun:
        """Execute a started run's actions and persist its terminal state"""
        run = started.run
        add_span_attributes(workflow_id=started.workflow_id, run_id=run.id)

        results: list[ActionResult] = []
        fatal: RunFatalError | None = None
        try:
            fatal = await self._run_actions(started, results)
        except asyncio.CancelledError:
            logger.warning("Workflow run %s cancelled after %d action(s)", run.id, len(results))
            await self._finalize(started, results, RunFatalError(run.id, CANCELLED_MESSAGE))
            raise
        except Exception as e:
            logger.exception("Workflow run %s aborted", run.id)
            fatal = RunFatalError(run.id, f"Unexpected error: {e}")

        await self._finalize(started, results, fatal)
        return run

    async def _finalize(
        self,
        started: StartedRun,
        results: list[ActionResult],
        fatal: RunFatalError | None,
    ) -> None:
        run = started.run
        completed_at = self._clock()
        succeeded = fatal is None and all(result.success for result in results)
        try:
            if fatal is not None:
                run.fail(fatal.message, results, completed_at)
            else:
                run.complete(results, completed_at)
            await self.run_repo.save(run)
            await self.workflow_repo.record_run_outcome(
                started.workflow_id, started.agency_id, succeeded, completed_at
            )
        except Exception:
            logger.exception("Could not finalize workflow run %s", run.id)
            return

        logger.info(
            "Workflow run %s %s: %d succeeded, %d failed",
            run.id,
            run.status,
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )

    def _build_context(
        self,
        workflow: "Workflow",
        event: TriggerEvent,
        trigger: WorkflowTrigger,
        agency: dict[str, Any] | None,
    ) -> dict[str, Any]:
        # Event data wins over the defaults; the trigger_* keys are reserved
        return {
            "client": dict(event.client),
            "trigger": {
                "type": event.type,
                "id": trigger.id,
                "occurred_at": event.occurred_at.isoformat(),
                **event.data,
                "trigger_id": trigger.id,
                "trigger_type": event.type,
            },
            "agency": {"id": workflow.agency_id, **(agency or {})},
        }

    async def _run_actions(
        self, started: StartedRun, results: list[ActionResult]
    ) -> RunFatalError | None:
        """Execute actions strictly in order; returns the fatal error that stopped the run, if any"""
        for action in started.actions:
            delay = action.delay_minutes if is_valid_delay(action.delay_minutes) else 0
            # Delays are relative to the workflow start, not the previous action
            scheduled_for = started.started_at + timedelta(minutes=delay)
            await self._wait_until(scheduled_for)

            result, unrecoverable = await self._execute_action(
                action, started.context, scheduled_for
            )
            results.append(result)

            if unrecoverable:
                add_span_event(
                    "workflow.run_aborted", {"action.id": action.id, "action.type": action.type}
                )
                return RunFatalError(
                    started.run.id, f"Action '{action.name or action.id}' failed: {result.error}"
                )
        return None

    async def _wait_until(self, scheduled_for: datetime) -> None:
        if self.delay_mode == DelayMode.SKIP:
            return
        remaining = (scheduled_for - self._clock()).total_seconds()
        if remaining > 0:
            await self._sleep(remaining)

    async def _execute_action(
        self,
        action: WorkflowAction,
        context: dict[str, Any],
        scheduled_for: datetime,
    ) -> tuple[ActionResult, bool]:
        """Dispatch one action; returns its result and whether the failure is unrecoverable"""
        started_at = self._clock()

        def failed(error: str) -> ActionResult:
            return ActionResult(
                action_id=action.id,
                action_type=action.type,
                success=False,
                error=error,
                scheduled_for=scheduled_for,
                started_at=started_at,
                completed_at=self._clock(),
            )

        action_type = ActionType.parse(action.type)
        if action_type is None:
            return failed(f"Unknown action type: {action.type}"), True

        validation = validate_action_config(action)
        if not validation.valid:
            return failed("; ".join(validation.errors)), True

        config = substitute_config(action.config, context, now=self._clock())
        try:
            output = await asyncio.wait_for(
                self.effects.perform(action_type, config, context),
                timeout=self.action_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Action %s timed out after %ss", action.id, self.action_timeout_seconds)
            return failed(
                f"Action timed out after {self.action_timeout_seconds:g} seconds"
            ), not action.continue_on_failure
        except UnrecoverableActionError as e:
            logger.warning("Action %s failed unrecoverably: %s", action.id, e.message)
            return failed(e.message), True
        except ActionExecutionError as e:
            logger.warning("Action %s failed: %s", action.id, e.message)
            return failed(e.message), not action.continue_on_failure
        except Exception as e:
            logger.exception("Action %s raised unexpectedly", action.id)
            return failed(str(e) or e.__class__.__name__), not action.continue_on_failure

        return (
            ActionResult(
                action_id=action.id,
                action_type=action.type,
                success=True,
                output=output or {},
                scheduled_for=scheduled_for,
                started_at=started_at,
                completed_at=self._clock(),
            ),
            False,
        )
