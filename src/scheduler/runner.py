"""TaskRunner — the live execution loop for one task."""

from __future__ import annotations

import asyncio
import enum
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from src.errors import Cancelled, CourierError
from src.scheduler.context import RunContext
from src.scheduler.models import EveryFixed
from src.scheduler.triggers import to_fixed_interval, to_trigger

if TYPE_CHECKING:
    from apscheduler.triggers.base import BaseTrigger

    from src.scheduler.executor import ExecutionPipeline
    from src.scheduler.models import Task

logger = logging.getLogger(__name__)

_EPSILON = timedelta(microseconds=1)


class RunnerState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class TaskRunner:
    """Runs a task immediately, then on every fire time of its schedule.

    Executions are strictly sequential: the next fire time is computed only
    after the previous run returns, so fire times missed while a run
    overran are skipped rather than overlapped.  A failing run is logged and
    the loop carries on.

    The APScheduler trigger only supplies fire times; jobs are not added to an
    AsyncIOScheduler, because each runner owns a RunContext that must abort
    its in-flight query or upload when the task is stopped or replaced.

    Args:
        task: Snapshot of the task, taken at start time.
        pipeline: Executes each run.
        trigger: APScheduler trigger override (default: from the task schedule).
    """

    def __init__(
        self,
        task: Task,
        pipeline: ExecutionPipeline,
        trigger: BaseTrigger | None = None,
    ) -> None:
        self.task = task
        self.state = RunnerState.CREATED
        self.runs = 0
        self.interval: timedelta | None = None
        self._pipeline = pipeline
        self._trigger = trigger
        self._ctx = RunContext()
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state is RunnerState.RUNNING

    def prepare(self) -> None:
        """Resolve the schedule. Raises ScheduleParseError if it is malformed."""
        if self._trigger is not None:
            return
        descriptor = self.task.descriptor
        if isinstance(descriptor, EveryFixed):
            self.interval = to_fixed_interval(descriptor)
        self._trigger = to_trigger(descriptor, self.task.timezone)

    def start(self) -> None:
        """Spawn the loop. Must be called from a running event loop."""
        if self.state is not RunnerState.CREATED:
            msg = f"runner for '{self.task.name}' is already {self.state.value}"
            raise RuntimeError(msg)
        self.prepare()
        self._loop_task = asyncio.create_task(self._loop(), name=f"runner:{self.task.name}")
        self.state = RunnerState.RUNNING
        logger.info("Started runner for task '%s' (schedule=%s)", self.task.name, self.task.schedule)

    def stop(self) -> None:
        """Cancel future runs and abort the in-flight call, if any. Idempotent."""
        if self.state is RunnerState.STOPPED:
            return
        self._ctx.cancel()
        self.state = RunnerState.STOPPED
        logger.info("Stopped runner for task '%s'", self.task.name)

    async def wait(self) -> None:
        """Wait for the loop to finish (after :meth:`stop`)."""
        if self._loop_task is not None:
            await self._loop_task

    def next_fire_time(self, previous: datetime | None = None) -> datetime | None:
        """Next fire time strictly after *previous* and not in the past."""
        now = datetime.now(self._trigger.timezone)
        if previous is not None:
            now = max(now, previous + _EPSILON)
        return self._trigger.get_next_fire_time(None, now)

    # -- Internal --------------------------------------------------------------

    async def _loop(self) -> None:
        await self._run_once()
        previous: datetime | None = None
        while not self._ctx.cancelled:
            fire_at = self.next_fire_time(previous)
            if fire_at is None:
                logger.info("Task '%s' has no further fire times", self.task.name)
                break
            delay = (fire_at - datetime.now(self._trigger.timezone)).total_seconds()
            logger.debug("Task '%s' next run at %s", self.task.name, fire_at.isoformat())
            if not await self._ctx.sleep(delay):
                break
            previous = fire_at
            await self._run_once()

    async def _run_once(self) -> None:
        self.runs += 1
        logger.debug("Run #%d of task '%s'", self.runs, self.task.name)
        try:
            await self._pipeline.run(self._ctx, self.task)
        except Cancelled:
            logger.info("Run of task '%s' cancelled", self.task.name)
        except CourierError as exc:
            logger.error("Error executing task '%s': %s", self.task.name, exc)
        except Exception:
            logger.exception("Unexpected error executing task '%s'", self.task.name)
