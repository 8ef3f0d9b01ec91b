"""Shared test fixtures."""

from __future__ import annotations

import asyncio

import pytest

from src.scheduler.models import Task


class FakeCursor:
    """Stands in for the async psycopg2 cursor wrapper."""

    def __init__(self, columns: list[str], rows: list[tuple]) -> None:
        self.columns = list(columns)
        self._rows = rows

    async def rows(self):
        for row in self._rows:
            yield row


class FakeConnection:
    """Stands in for the async psycopg2 connection wrapper."""

    def __init__(
        self,
        columns: list[str] | None = None,
        rows: list[tuple] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self._columns = columns or []
        self._rows = rows or []
        self._error = error
        self._delay = delay
        self.executed: list[str] = []
        self.pinged = False
        self.closed = False

    async def execute(self, sql: str) -> FakeCursor:
        self.executed.append(sql)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return FakeCursor(self._columns, self._rows)

    async def ping(self) -> None:
        self.pinged = True

    async def close(self) -> None:
        self.closed = True


class RecordingChannel:
    """A delivery channel that records what it was asked to deliver."""

    def __init__(self, name: str = "slack", error: Exception | None = None) -> None:
        self._name = name
        self._error = error
        self.calls: list[dict] = []
        self.delivered = asyncio.Event()

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, destination, payload, message: str) -> None:
        self.calls.append(
            {
                "destination": destination,
                "filename": payload.filename,
                "content_type": payload.content_type,
                "path": payload.path,
                "body": payload.read_bytes(),
                "message": message,
            }
        )
        self.delivered.set()
        if self._error is not None:
            raise self._error


def make_task(name: str = "report", **kwargs) -> Task:
    defaults = {
        "database": "sales",
        "schedule": "every_5min",
        "timezone": "UTC",
        "query": "SELECT id FROM orders",
        "destination": "ops-channel",
        "message": "Daily numbers",
        "output_format": "csv",
    }
    defaults.update(kwargs)
    return Task(name=name, **defaults)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll *predicate* until it is true or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            msg = "condition not met in time"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


@pytest.fixture(autouse=True)
def _temp_dir(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Keep CSV temp files inside the test's tmp_path."""
    out = tmp_path / "out"
    monkeypatch.setattr("src.config.settings.temp_dir", out)
    return out
