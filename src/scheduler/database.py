"""Async PostgreSQL access over psycopg2.

Provides a thin async wrapper around the synchronous ``psycopg2`` driver using
``asyncio.to_thread()``.  Cancelling a pending ``execute`` also cancels the
statement on the server so the worker thread is released.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import psycopg2

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_FETCH_SIZE = 500


@dataclass(frozen=True)
class DataSource:
    """Connection details for one named database."""

    host: str
    user: str
    dbname: str
    port: int = 5432
    password: str = field(default="", repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataSource:
        return cls(
            host=str(data.get("host", "localhost")),
            port=int(data.get("port") or 5432),
            user=str(data.get("user", "")),
            password=str(data.get("password") or ""),
            dbname=str(data.get("dbname", "")),
        )


class _AsyncCursor:
    """Thin async wrapper around a synchronous psycopg2 cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    @property
    def columns(self) -> list[str]:
        if self._cursor.description is None:
            return []
        return [col[0] for col in self._cursor.description]

    async def fetchmany(self, size: int = _FETCH_SIZE) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchmany, size)

    async def rows(self) -> AsyncIterator[tuple]:
        """Yield rows in server order, fetching in batches."""
        if self._cursor.description is None:
            return
        while True:
            batch = await self.fetchmany()
            if not batch:
                break
            for row in batch:
                yield row


class _AsyncConnection:
    """Thin async wrapper around a synchronous psycopg2 connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str) -> _AsyncCursor:
        cursor = self._conn.cursor()
        try:
            await asyncio.to_thread(cursor.execute, sql)
        except asyncio.CancelledError:
            self._conn.cancel()
            raise
        return _AsyncCursor(cursor)

    async def ping(self) -> None:
        cursor = await self.execute("SELECT 1")
        await cursor.fetchmany(1)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


async def get_connection(source: DataSource) -> _AsyncConnection:
    """Open a read-only-by-convention connection to *source*."""
    conn = await asyncio.to_thread(
        psycopg2.connect,
        host=source.host,
        port=source.port,
        user=source.user,
        password=source.password,
        dbname=source.dbname,
        connect_timeout=settings.db_connect_timeout_seconds,
    )
    return _AsyncConnection(conn)
