"""Tests for schedule translation — fixed intervals, triggers and systemd rules."""

import logging
import zoneinfo
from datetime import datetime, timedelta

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.errors import ScheduleParseError
from src.scheduler.models import parse
from src.scheduler.triggers import (
    FALLBACK_RULE,
    CalendarRule,
    calendar_rule_for,
    to_calendar_rule,
    to_fixed_interval,
    to_trigger,
)

TOKYO = zoneinfo.ZoneInfo("Asia/Tokyo")

# -- to_fixed_interval ---------------------------------------------------------


def test_fixed_interval_every_5min() -> None:
    assert to_fixed_interval(parse("every_5min")) == timedelta(minutes=5)


def test_fixed_interval_every_hour() -> None:
    assert to_fixed_interval(parse("every_hour")) == timedelta(hours=1)


@pytest.mark.parametrize("descriptor", ["daily 21:00", "weekly Monday 09:00", "monthly 1 00:00"])
def test_fixed_interval_rejects_calendar_schedules(descriptor: str) -> None:
    with pytest.raises(ScheduleParseError, match="no fixed interval"):
        to_fixed_interval(parse(descriptor))


# -- to_trigger ----------------------------------------------------------------


def test_trigger_for_interval() -> None:
    trigger = to_trigger(parse("every_5min"), "UTC")
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval == timedelta(minutes=5)


def test_trigger_daily_next_fire_time() -> None:
    trigger = to_trigger(parse("daily 21:00"), "Asia/Tokyo")
    assert isinstance(trigger, CronTrigger)
    now = datetime(2025, 1, 6, 22, 0, tzinfo=TOKYO)
    assert trigger.get_next_fire_time(None, now) == datetime(2025, 1, 7, 21, 0, tzinfo=TOKYO)


def test_trigger_weekly_skips_weekend() -> None:
    trigger = to_trigger(parse("weekly Monday-Friday 09:00"), "Asia/Tokyo")
    saturday = datetime(2025, 1, 4, 0, 0, tzinfo=TOKYO)
    assert trigger.get_next_fire_time(None, saturday) == datetime(2025, 1, 6, 9, 0, tzinfo=TOKYO)


def test_trigger_monthly_skips_short_months() -> None:
    trigger = to_trigger(parse("monthly 31 08:00"), "UTC")
    utc = zoneinfo.ZoneInfo("UTC")
    after = datetime(2025, 2, 1, tzinfo=utc)
    assert trigger.get_next_fire_time(None, after) == datetime(2025, 3, 31, 8, 0, tzinfo=utc)


def test_trigger_unknown_timezone() -> None:
    with pytest.raises(ScheduleParseError, match="unknown timezone"):
        to_trigger(parse("daily 09:00"), "Mars/Olympus")


# -- to_calendar_rule ----------------------------------------------------------


def test_rule_every_5min_is_relative() -> None:
    rule = to_calendar_rule(parse("every_5min"), "UTC")
    assert rule == CalendarRule("OnUnitActiveSec", "5min")
    assert rule.relative is True
    assert str(rule) == "OnUnitActiveSec=5min"


def test_rule_every_hour() -> None:
    assert to_calendar_rule(parse("every_hour"), "UTC") == CalendarRule("OnCalendar", "*:00:00")


def test_rule_legacy_duration() -> None:
    assert to_calendar_rule(parse("every 30m"), "UTC").value == "30min"
    assert to_calendar_rule(parse("every 2h"), "UTC").value == "2h"


def test_rule_daily() -> None:
    rule = to_calendar_rule(parse("daily 21:00"), "Europe/London")
    assert rule == CalendarRule("OnCalendar", "*-*-* 21:00:00 Europe/London")
    assert rule.relative is False


def test_rule_weekly_weekdays_in_tokyo() -> None:
    rule = to_calendar_rule(parse("weekly Monday-Friday 09:00"), "Asia/Tokyo")
    assert rule.value == "Mon..Fri *-*-* 09:00:00 Asia/Tokyo"


def test_rule_weekly_weekend() -> None:
    rule = to_calendar_rule(parse("weekly Saturday,Sunday 10:00"), "UTC")
    assert rule.value == "Sat,Sun *-*-* 10:00:00 UTC"


def test_rule_weekly_single_day() -> None:
    rule = to_calendar_rule(parse("weekly Wednesday 07:15"), "UTC")
    assert rule.value == "Wed *-*-* 07:15:00 UTC"


def test_rule_monthly() -> None:
    rule = to_calendar_rule(parse("monthly 5 06:00"), "UTC")
    assert rule.value == "*-*-05 06:00:00 UTC"


# -- calendar_rule_for ---------------------------------------------------------


def test_rule_for_valid_schedule() -> None:
    rule = calendar_rule_for("weekly Monday-Friday 09:00", "Asia/Tokyo")
    assert rule.value == "Mon..Fri *-*-* 09:00:00 Asia/Tokyo"


def test_rule_for_malformed_schedule_falls_back_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="src.scheduler.triggers"):
        rule = calendar_rule_for("weekly Someday 09:00", "UTC")
    assert rule == FALLBACK_RULE
    assert "falling back" in caplog.text


def test_rule_for_unknown_timezone_uses_utc(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="src.scheduler.triggers"):
        rule = calendar_rule_for("daily 09:00", "Nowhere/City")
    assert rule.value == "*-*-* 09:00:00 UTC"
    assert "Unknown timezone" in caplog.text
