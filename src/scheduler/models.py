"""Task and schedule descriptor models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import time, timedelta
from typing import Any

from src.config import settings
from src.errors import ScheduleParseError

OUTPUT_FORMATS = ("csv", "json")

# Weekly day tokens accepted after ``weekly``, mapped to systemd's
# abbreviated day syntax.
WEEKLY_DAYS: dict[str, str] = {
    "Sunday": "Sun",
    "Monday": "Mon",
    "Tuesday": "Tue",
    "Wednesday": "Wed",
    "Thursday": "Thu",
    "Friday": "Fri",
    "Saturday": "Sat",
    "Monday-Friday": "Mon..Fri",
    "Saturday,Sunday": "Sat,Sun",
}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_DURATION_RE = re.compile(r"^(\d+)([smh])$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours"}


# -- Schedule descriptors ------------------------------------------------------


@dataclass(frozen=True)
class EveryFixed:
    """Repeat at a fixed interval. *token* is the descriptor it was parsed from."""

    interval: timedelta
    token: str


@dataclass(frozen=True)
class Daily:
    at: time


@dataclass(frozen=True)
class Weekly:
    days: str
    at: time


@dataclass(frozen=True)
class Monthly:
    day: int
    at: time


ScheduleDescriptor = EveryFixed | Daily | Weekly | Monthly


def _parse_time(token: str) -> time:
    match = _TIME_RE.match(token)
    if not match:
        msg = f"invalid time {token!r}, expected HH:MM"
        raise ScheduleParseError(msg)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        msg = f"invalid time {token!r}, expected HH:MM"
        raise ScheduleParseError(msg)
    return time(hour, minute)


def _expect_tokens(tokens: list[str], count: int, usage: str) -> None:
    if len(tokens) != count:
        msg = f"expected '{usage}', got {' '.join(tokens)!r}"
        raise ScheduleParseError(msg)


def parse(descriptor: str) -> ScheduleDescriptor:
    """Parse a schedule string such as ``weekly Monday-Friday 09:00``.

    Raises:
        ScheduleParseError: on an unknown leading token, the wrong number of
            tokens, a malformed ``HH:MM``, or an out-of-range day.
    """
    tokens = descriptor.split()
    if not tokens:
        raise ScheduleParseError("schedule is empty")

    kind = tokens[0]
    if kind == "every_5min":
        _expect_tokens(tokens, 1, "every_5min")
        return EveryFixed(timedelta(minutes=5), kind)

    if kind == "every_hour":
        _expect_tokens(tokens, 1, "every_hour")
        return EveryFixed(timedelta(hours=1), kind)

    if kind == "every":
        _expect_tokens(tokens, 2, "every <N><s|m|h>")
        match = _DURATION_RE.match(tokens[1])
        if not match or int(match.group(1)) == 0:
            msg = f"invalid interval {tokens[1]!r}"
            raise ScheduleParseError(msg)
        unit = _DURATION_UNITS[match.group(2)]
        return EveryFixed(timedelta(**{unit: int(match.group(1))}), f"every {tokens[1]}")

    if kind == "daily":
        _expect_tokens(tokens, 2, "daily HH:MM")
        return Daily(_parse_time(tokens[1]))

    if kind == "weekly":
        _expect_tokens(tokens, 3, "weekly <days> HH:MM")
        if tokens[1] not in WEEKLY_DAYS:
            msg = f"invalid weekly days {tokens[1]!r}"
            raise ScheduleParseError(msg)
        return Weekly(tokens[1], _parse_time(tokens[2]))

    if kind == "monthly":
        _expect_tokens(tokens, 3, "monthly <day> HH:MM")
        try:
            day = int(tokens[1])
        except ValueError:
            msg = f"invalid day of month {tokens[1]!r}"
            raise ScheduleParseError(msg) from None
        if not 1 <= day <= 31:
            msg = f"day of month must be between 1 and 31, got {day}"
            raise ScheduleParseError(msg)
        return Monthly(day, _parse_time(tokens[2]))

    msg = f"unknown schedule type {kind!r}"
    raise ScheduleParseError(msg)


def render(descriptor: ScheduleDescriptor) -> str:
    """Render a descriptor back to its canonical schedule string."""
    if isinstance(descriptor, EveryFixed):
        return descriptor.token
    if isinstance(descriptor, Daily):
        return f"daily {descriptor.at:%H:%M}"
    if isinstance(descriptor, Weekly):
        return f"weekly {descriptor.days} {descriptor.at:%H:%M}"
    if isinstance(descriptor, Monthly):
        return f"monthly {descriptor.day} {descriptor.at:%H:%M}"
    msg = f"unsupported schedule descriptor: {descriptor!r}"
    raise TypeError(msg)


# -- Task ----------------------------------------------------------------------


@dataclass(frozen=True)
class Task:
    """A named query bound to a schedule and a destination.

    Attributes:
        name: Unique task name.
        database: Name of the data source the query runs against.
        schedule: Schedule descriptor string (see :func:`parse`).
        timezone: IANA zone the schedule is interpreted in.
        query: SQL text, run verbatim.
        columns: Output column order for CSV; empty means "as returned".
        message: Annotation delivered alongside the result.
        destination: Name of the destination to deliver to.
        output_format: ``"csv"`` or ``"json"``.
    """

    name: str
    database: str
    schedule: str
    query: str
    destination: str
    timezone: str = ""
    columns: tuple[str, ...] = field(default_factory=tuple)
    message: str = ""
    output_format: str = "csv"

    def __post_init__(self) -> None:
        if not self.timezone:
            object.__setattr__(self, "timezone", settings.default_timezone)
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def descriptor(self) -> ScheduleDescriptor:
        """The parsed schedule. Raises ScheduleParseError if malformed."""
        return parse(self.schedule)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> Task:
        """Build a task from its YAML record."""
        return cls(
            name=name,
            database=str(data.get("database", "")),
            schedule=str(data.get("schedule", "")),
            timezone=str(data.get("timezone") or ""),
            query=str(data.get("query", "")),
            columns=tuple(str(c) for c in data.get("columns") or ()),
            message=str(data.get("message") or ""),
            destination=str(data.get("destination", "")),
            output_format=str(data.get("output_format") or "csv").lower(),
        )
