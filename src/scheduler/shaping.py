"""Query result records and their CSV / JSON payloads."""

from __future__ import annotations

import contextlib
import csv
import io
import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from src.config import settings
from src.errors import FormatError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from src.scheduler.models import Task

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"csv": "text/csv", "json": "application/json"}

_UNSAFE_FILENAME = re.compile(r"[^\w.-]+")


def to_display(value: Any) -> str | None:
    """Convert a driver-native column value to its display string."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    return str(value)


@dataclass
class QueryResult:
    """Rows returned by one execution of a task's query."""

    task: str
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, str | None]] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration: timedelta = field(default_factory=timedelta)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def add_row(self, values: Sequence[Any]) -> None:
        self.rows.append({col: to_display(v) for col, v in zip(self.columns, values, strict=False)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "timestamp": self.timestamp.isoformat(),
            "execution_time": f"{self.duration.total_seconds():.3f}s",
            "row_count": self.row_count,
            "columns": self.columns,
            "data": self.rows,
        }


@dataclass(frozen=True)
class Payload:
    """A shaped result ready for delivery, backed by a file or by bytes."""

    filename: str
    content_type: str
    path: Path | None = None
    content: bytes = b""

    def read_bytes(self) -> bytes:
        if self.path is not None:
            return self.path.read_bytes()
        return self.content


def csv_headers(result: QueryResult, columns: Sequence[str] = ()) -> list[str]:
    """Pick the CSV header order: declared columns, else the first row's order."""
    if columns:
        if result.columns and not set(columns) & set(result.columns):
            logger.warning(
                "Task '%s': none of the declared columns %s were returned (got %s)",
                result.task,
                list(columns),
                result.columns,
            )
        return list(columns)
    if result.rows:
        return list(result.rows[0])
    return list(result.columns)


def render_csv(result: QueryResult, columns: Sequence[str] = ()) -> str:
    """Render rows as CSV; columns missing from a row become empty cells."""
    headers = csv_headers(result, columns)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in result.rows:
        writer.writerow([row.get(h) or "" for h in headers])
    return buf.getvalue()


def render_json(result: QueryResult) -> bytes:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")


def _base_name(result: QueryResult) -> str:
    name = _UNSAFE_FILENAME.sub("_", result.task) or "result"
    return f"{name}_{result.timestamp:%Y%m%d_%H%M%S}"


@contextlib.contextmanager
def csv_payload(
    result: QueryResult,
    columns: Sequence[str] = (),
    directory: Path | None = None,
) -> Iterator[Payload]:
    """Write the CSV to a temporary file that is removed when the block exits."""
    directory = directory or settings.temp_dir
    base = _base_name(result)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=f"{base}_", suffix=".csv", dir=directory)
    except OSError as exc:
        msg = f"failed to create CSV file: {exc}"
        raise FormatError(msg) from exc

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(render_csv(result, columns))
        except OSError as exc:
            msg = f"failed to write CSV file: {exc}"
            raise FormatError(msg) from exc
        yield Payload(filename=f"{base}.csv", content_type=CONTENT_TYPES["csv"], path=path)
    finally:
        path.unlink(missing_ok=True)


@contextlib.contextmanager
def shape(result: QueryResult, task: Task) -> Iterator[Payload]:
    """Shape *result* per the task's output format.

    Raises:
        FormatError: unknown output format, or the payload could not be written.
    """
    fmt = task.output_format
    if fmt == "csv":
        with csv_payload(result, task.columns) as payload:
            yield payload
    elif fmt == "json":
        yield Payload(
            filename=f"{_base_name(result)}.json",
            content_type=CONTENT_TYPES["json"],
            content=render_json(result),
        )
    else:
        msg = f"unsupported output format: {fmt!r}"
        raise FormatError(msg)
