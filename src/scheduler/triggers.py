"""Schedule translation: in-process triggers and systemd calendar rules."""

from __future__ import annotations

import logging
import zoneinfo
from dataclasses import dataclass
from datetime import timedelta

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.errors import ScheduleParseError
from src.scheduler.models import (
    WEEKLY_DAYS,
    Daily,
    EveryFixed,
    Monthly,
    ScheduleDescriptor,
    Weekly,
    parse,
)

logger = logging.getLogger(__name__)

# Weekly day tokens in APScheduler's cron ``day_of_week`` syntax.
_CRON_DAYS: dict[str, str] = {
    "Sunday": "sun",
    "Monday": "mon",
    "Tuesday": "tue",
    "Wednesday": "wed",
    "Thursday": "thu",
    "Friday": "fri",
    "Saturday": "sat",
    "Monday-Friday": "mon-fri",
    "Saturday,Sunday": "sat,sun",
}

_SYSTEMD_UNITS = {"s": "s", "m": "min", "h": "h"}


@dataclass(frozen=True)
class CalendarRule:
    """A systemd timer directive: ``OnUnitActiveSec`` or ``OnCalendar``."""

    key: str
    value: str

    @property
    def relative(self) -> bool:
        return self.key == "OnUnitActiveSec"

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


FALLBACK_RULE = CalendarRule("OnUnitActiveSec", "5min")


def load_zone(name: str) -> zoneinfo.ZoneInfo:
    """Return the ZoneInfo for *name*. Raises ScheduleParseError if unknown."""
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        msg = f"unknown timezone {name!r}"
        raise ScheduleParseError(msg) from None


def to_fixed_interval(descriptor: ScheduleDescriptor) -> timedelta:
    """Return the repeat interval for a fixed-interval schedule.

    Calendar schedules (daily, weekly, monthly) have no fixed interval and
    raise ScheduleParseError; use :func:`to_trigger` for those.
    """
    if isinstance(descriptor, EveryFixed):
        return descriptor.interval
    msg = f"{type(descriptor).__name__.lower()} schedules have no fixed interval"
    raise ScheduleParseError(msg)


def to_trigger(descriptor: ScheduleDescriptor, timezone: str):
    """Build the APScheduler trigger that computes fire times in-process."""
    tz = load_zone(timezone)
    if isinstance(descriptor, EveryFixed):
        return IntervalTrigger(seconds=descriptor.interval.total_seconds(), timezone=tz)
    if isinstance(descriptor, Daily):
        return CronTrigger(hour=descriptor.at.hour, minute=descriptor.at.minute, timezone=tz)
    if isinstance(descriptor, Weekly):
        return CronTrigger(
            day_of_week=_CRON_DAYS[descriptor.days],
            hour=descriptor.at.hour,
            minute=descriptor.at.minute,
            timezone=tz,
        )
    if isinstance(descriptor, Monthly):
        return CronTrigger(
            day=descriptor.day,
            hour=descriptor.at.hour,
            minute=descriptor.at.minute,
            timezone=tz,
        )
    msg = f"unsupported schedule descriptor: {descriptor!r}"
    raise TypeError(msg)


def to_calendar_rule(descriptor: ScheduleDescriptor, timezone: str) -> CalendarRule:
    """Translate a descriptor into a systemd timer directive in *timezone*."""
    if isinstance(descriptor, EveryFixed):
        if descriptor.token == "every_5min":
            return CalendarRule("OnUnitActiveSec", "5min")
        if descriptor.token == "every_hour":
            return CalendarRule("OnCalendar", "*:00:00")
        amount = descriptor.token.split()[1]
        return CalendarRule("OnUnitActiveSec", amount[:-1] + _SYSTEMD_UNITS[amount[-1]])
    if isinstance(descriptor, Daily):
        return CalendarRule("OnCalendar", f"*-*-* {descriptor.at:%H:%M}:00 {timezone}")
    if isinstance(descriptor, Weekly):
        days = WEEKLY_DAYS[descriptor.days]
        return CalendarRule("OnCalendar", f"{days} *-*-* {descriptor.at:%H:%M}:00 {timezone}")
    if isinstance(descriptor, Monthly):
        return CalendarRule(
            "OnCalendar", f"*-*-{descriptor.day:02d} {descriptor.at:%H:%M}:00 {timezone}"
        )
    msg = f"unsupported schedule descriptor: {descriptor!r}"
    raise TypeError(msg)


def calendar_rule_for(schedule: str, timezone: str) -> CalendarRule:
    """Translate a raw schedule string for a systemd timer.

    Malformed schedules fall back to a 5 minute relative repeat and unknown
    zones to UTC; both fallbacks are logged.
    """
    try:
        load_zone(timezone)
    except ScheduleParseError:
        logger.warning("Unknown timezone %r, using UTC for the timer", timezone)
        timezone = "UTC"

    try:
        descriptor = parse(schedule)
    except ScheduleParseError as exc:
        logger.warning(
            "Cannot translate schedule %r (%s), falling back to %s",
            schedule,
            exc,
            FALLBACK_RULE,
        )
        return FALLBACK_RULE
    return to_calendar_rule(descriptor, timezone)
