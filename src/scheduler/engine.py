"""Scheduler — the registry of live task runners."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.errors import ScheduleParseError
from src.scheduler.runner import TaskRunner

if TYPE_CHECKING:
    from src.scheduler.executor import ExecutionPipeline
    from src.scheduler.models import Task
    from src.store import TaskStore

logger = logging.getLogger(__name__)


class Scheduler:
    """Starts and stops one TaskRunner per task name.

    Every registry read and write happens under a single lock, so a
    concurrent ``start`` can never interleave with ``stop_all``.

    Args:
        store: TaskStore providing the tasks for :meth:`start_all`.
        pipeline: ExecutionPipeline shared by all runners.
    """

    def __init__(self, store: TaskStore, pipeline: ExecutionPipeline) -> None:
        self._store = store
        self._pipeline = pipeline
        self._runners: dict[str, TaskRunner] = {}
        self._lock = asyncio.Lock()

    @property
    def pipeline(self) -> ExecutionPipeline:
        return self._pipeline

    # -- Lifecycle -------------------------------------------------------------

    async def start_all(self) -> int:
        """Start every task in the store. Returns the number started.

        Raises:
            ScheduleParseError: a task's schedule is malformed; tasks started
                before it keep running.
        """
        tasks = self._store.list()
        for task in tasks:
            try:
                await self.start(task)
            except ScheduleParseError as exc:
                msg = f"failed to start task {task.name}: {exc}"
                raise ScheduleParseError(msg) from exc
        logger.info("Scheduler started %d task(s)", len(tasks))
        return len(tasks)

    async def start(self, task: Task) -> TaskRunner:
        """Start *task*, replacing any runner already registered under its name.

        The schedule is validated before the registry is touched, so a bad
        schedule leaves an existing runner in place.
        """
        runner = TaskRunner(task, self._pipeline)
        runner.prepare()

        async with self._lock:
            previous = self._runners.pop(task.name, None)
            if previous is not None:
                logger.info("Replacing running task '%s'", task.name)
                previous.stop()
                await previous.wait()
            self._runners[task.name] = runner
            runner.start()
        return runner

    async def stop(self, name: str) -> None:
        """Stop the runner for *name*. Unknown names are a no-op."""
        async with self._lock:
            runner = self._runners.pop(name, None)
            if runner is None:
                logger.debug("stop: task '%s' is not running", name)
                return
            runner.stop()
        await runner.wait()

    async def stop_all(self) -> None:
        """Stop every runner and clear the registry."""
        async with self._lock:
            runners = list(self._runners.values())
            for runner in runners:
                runner.stop()
            self._runners.clear()
        await asyncio.gather(*(runner.wait() for runner in runners))
        if runners:
            logger.info("Scheduler stopped %d task(s)", len(runners))

    async def serve(self) -> None:
        """Start all tasks and block until cancelled, then stop them."""
        await self.start_all()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop_all()

    # -- Introspection ---------------------------------------------------------

    async def running(self) -> list[str]:
        """Names of the tasks with a live runner, sorted."""
        async with self._lock:
            return sorted(self._runners)

    async def is_running(self, name: str) -> bool:
        async with self._lock:
            return name in self._runners

    async def get_runner(self, name: str) -> TaskRunner | None:
        async with self._lock:
            return self._runners.get(name)
