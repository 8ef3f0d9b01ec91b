"""ExecutionPipeline — runs a task's query, shapes the rows and delivers them."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import psycopg2

from src.config import settings
from src.destinations.dispatcher import Dispatcher
from src.errors import QueryError
from src.scheduler.context import RunContext
from src.scheduler.database import get_connection
from src.scheduler.shaping import QueryResult, shape

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.scheduler.database import DataSource, _AsyncConnection, _AsyncCursor
    from src.scheduler.models import Task
    from src.store import DataSourceRegistry, DestinationStore

    Progress = Callable[[str], None]

logger = logging.getLogger(__name__)

_DRIVER_ERRORS = (psycopg2.Error, OSError)


class ExecutionPipeline:
    """Executes one run of a task: query → shape → deliver.

    Args:
        databases: Registry resolving a task's data source by name.
        destinations: Store resolving a task's destination by name.
        dispatcher: Delivers shaped payloads (default Dispatcher()).
        connect: Async callable opening a connection for a DataSource.
    """

    def __init__(
        self,
        databases: DataSourceRegistry,
        destinations: DestinationStore,
        dispatcher: Dispatcher | None = None,
        connect: Callable[[DataSource], Awaitable[_AsyncConnection]] = get_connection,
    ) -> None:
        self._databases = databases
        self._destinations = destinations
        self._dispatcher = dispatcher or Dispatcher()
        self._connect = connect

    async def run(self, ctx: RunContext, task: Task) -> QueryResult:
        """Run *task* once, bounded by *ctx*.

        Raises:
            ConfigNotFound: unknown database or destination.
            QueryError: connection, execution or deadline failure.
            FormatError: the result could not be shaped.
            DeliveryError: the destination rejected the payload.
            Cancelled: *ctx* was cancelled mid-run.
        """
        return await self._execute(ctx, task, None)

    async def run_once(
        self,
        task: Task,
        progress: Progress = print,
        timeout: float | None = None,
    ) -> QueryResult:
        """Run *task* once with step-by-step progress for operator diagnosis.

        Checks the connection before querying and propagates the first failure.
        """
        ctx = RunContext(timeout if timeout is not None else settings.run_once_timeout_seconds)
        progress(f"Running task: {task.name}")
        progress(f"Database: {task.database}")
        progress(f"Query: {task.query}\n")
        return await self._execute(ctx, task, progress)

    # -- Internal --------------------------------------------------------------

    async def _execute(self, ctx: RunContext, task: Task, progress: Progress | None) -> QueryResult:
        logger.info(
            "Executing task '%s' (database=%s destination=%s format=%s)",
            task.name,
            task.database,
            task.destination,
            task.output_format,
        )
        source = self._databases.get(task.database)

        if progress:
            progress("1. database connection...")
        result = await self._query(ctx, task, source, progress)
        if progress:
            progress(
                f"✓ Query execution successful (retrieved {result.row_count} rows"
                f" in {result.duration.total_seconds():.3f}s)"
            )
            progress("\n3. destination...")

        destination = self._destinations.get(task.destination)
        with shape(result, task) as payload:
            await self._dispatcher.deliver(ctx, destination, payload, task.message)

        if progress:
            progress("✓ Destination successful")
        logger.info(
            "Task '%s' delivered %d row(s) to '%s' (query took %.3fs)",
            task.name,
            result.row_count,
            destination.name,
            result.duration.total_seconds(),
        )
        return result

    async def _query(
        self,
        ctx: RunContext,
        task: Task,
        source: DataSource,
        progress: Progress | None,
    ) -> QueryResult:
        try:
            conn = await ctx.guard(self._connect(source))
        except TimeoutError as exc:
            msg = f"timed out connecting to database {task.database}"
            raise QueryError(msg) from exc
        except _DRIVER_ERRORS as exc:
            msg = f"failed to connect to database {task.database}: {exc}"
            raise QueryError(msg) from exc

        try:
            if progress:
                await ctx.guard(conn.ping())
                progress("✓ Database connection successful")
                progress("2. query execution...")

            started = time.monotonic()
            cursor = await ctx.guard(conn.execute(task.query))
            result = QueryResult(task=task.name, columns=cursor.columns)
            await ctx.guard(self._collect(cursor, result))
            result.duration = timedelta(seconds=time.monotonic() - started)
            result.timestamp = datetime.now(UTC)
            return result
        except TimeoutError as exc:
            msg = f"query for task {task.name} timed out"
            raise QueryError(msg) from exc
        except _DRIVER_ERRORS as exc:
            msg = f"failed to execute query for task {task.name}: {exc}"
            raise QueryError(msg) from exc
        finally:
            await conn.close()

    @staticmethod
    async def _collect(cursor: _AsyncCursor, result: QueryResult) -> None:
        async for row in cursor.rows():
            result.add_row(row)
