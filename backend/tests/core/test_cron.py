"""
Tests for core/scheduler/cron.py

Covers:
- six-field expressions with seconds
- descriptors and @every intervals
- day-of-week translation from standard cron numbering
- rejection of malformed expressions
"""
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from core.scheduler import InvalidCronExpression, parse_cron_expression
from core.scheduler.cron import parse_duration, translate_day_of_week


UTC = timezone.utc


def _next(trigger, now):
    return trigger.get_next_fire_time(None, now)


# ==================== Six-field expressions ====================

class TestSixFieldExpressions:

    def test_every_five_seconds(self):
        trigger = parse_cron_expression("*/5 * * * * *", timezone=UTC)
        assert isinstance(trigger, CronTrigger)
        now = datetime(2025, 1, 1, 12, 0, 1, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 1, 12, 0, 5, tzinfo=UTC)

    def test_daily_at_fixed_time(self):
        trigger = parse_cron_expression("0 30 1 * * *", timezone=UTC)
        now = datetime(2025, 1, 1, 2, 0, 0, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 2, 1, 30, 0, tzinfo=UTC)

    def test_next_fire_time_is_in_the_future(self):
        trigger = parse_cron_expression("*/5 * * * * *", timezone=UTC)
        now = datetime.now(UTC)
        fire = _next(trigger, now)
        assert fire >= now.replace(microsecond=0)
        assert fire - now <= timedelta(seconds=5)
        assert fire.second % 5 == 0

    def test_question_mark_in_day_of_month(self):
        trigger = parse_cron_expression("0 0 12 ? * *", timezone=UTC)
        now = datetime(2025, 3, 10, 13, 0, 0, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 3, 11, 12, 0, 0, tzinfo=UTC)

    def test_month_names(self):
        trigger = parse_cron_expression("0 0 0 1 jan *", timezone=UTC)
        now = datetime(2025, 6, 1, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2026, 1, 1, tzinfo=UTC)

    def test_timezone_prefix(self):
        trigger = parse_cron_expression("CRON_TZ=UTC 0 0 9 * * *")
        now = datetime(2025, 1, 1, 10, 0, 0, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 2, 9, 0, 0, tzinfo=UTC)

    def test_surrounding_whitespace_is_ignored(self):
        trigger = parse_cron_expression("  0 * * * * *  ", timezone=UTC)
        assert isinstance(trigger, CronTrigger)


# ==================== Day of week ====================

class TestDayOfWeek:

    def test_sunday_as_zero(self):
        # 2025-01-05 is a Sunday
        trigger = parse_cron_expression("0 0 0 * * 0", timezone=UTC)
        now = datetime(2025, 1, 1, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 5, tzinfo=UTC)

    def test_sunday_as_seven(self):
        assert translate_day_of_week("x", "7") == "sun"

    def test_weekday_range(self):
        assert translate_day_of_week("x", "1-5") == "mon,tue,wed,thu,fri"

    def test_full_range_wraps_sunday(self):
        assert translate_day_of_week("x", "0-6") == "mon,tue,wed,thu,fri,sat,sun"

    def test_names_and_lists(self):
        assert translate_day_of_week("x", "SUN,wed") == "wed,sun"

    def test_step(self):
        assert translate_day_of_week("x", "*/2") == "tue,thu,sat,sun"
        assert translate_day_of_week("x", "1/2") == "mon,wed,fri"

    def test_wildcards_pass_through(self):
        assert translate_day_of_week("x", "*") == "*"
        assert translate_day_of_week("x", "?") == "*"

    def test_day_of_month_or_day_of_week(self):
        # 2026-01-02 is the first Friday; the 13th is only reached later
        trigger = parse_cron_expression("0 0 0 13 * 5", timezone=UTC)
        assert isinstance(trigger, OrTrigger)
        now = datetime(2026, 1, 1, tzinfo=UTC)
        fire = _next(trigger, now)
        assert fire == datetime(2026, 1, 2, tzinfo=UTC)

        fires = []
        for _ in range(4):
            fire = _next(trigger, fire + timedelta(seconds=1))
            fires.append(fire.date().isoformat())
        assert fires == ["2026-01-09", "2026-01-13", "2026-01-16", "2026-01-23"]

    @pytest.mark.parametrize("expression", ["0 0 0 13 * *", "0 0 0 13 * ?", "0 0 0 * * 5", "0 0 0 ? * 5"])
    def test_wildcard_day_field_keeps_single_trigger(self, expression):
        assert isinstance(parse_cron_expression(expression, timezone=UTC), CronTrigger)

    def test_wildcard_day_of_week_matches_day_of_month_only(self):
        trigger = parse_cron_expression("0 0 0 13 * ?", timezone=UTC)
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2026, 1, 13, tzinfo=UTC)

    def test_reversed_range_rejected(self):
        with pytest.raises(InvalidCronExpression, match="reversed"):
            translate_day_of_week("x", "5-1")

    def test_out_of_range_rejected(self):
        with pytest.raises(InvalidCronExpression):
            translate_day_of_week("x", "8")


# ==================== Descriptors ====================

class TestDescriptors:

    @pytest.mark.parametrize("descriptor", ["@daily", "@midnight"])
    def test_daily(self, descriptor):
        trigger = parse_cron_expression(descriptor, timezone=UTC)
        now = datetime(2025, 1, 1, 8, 0, 0, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 2, tzinfo=UTC)

    def test_hourly(self):
        trigger = parse_cron_expression("@hourly", timezone=UTC)
        now = datetime(2025, 1, 1, 8, 15, 0, tzinfo=UTC)
        assert _next(trigger, now) == datetime(2025, 1, 1, 9, 0, 0, tzinfo=UTC)

    def test_weekly_fires_on_sunday(self):
        trigger = parse_cron_expression("@weekly", timezone=UTC)
        now = datetime(2025, 1, 1, tzinfo=UTC)
        assert _next(trigger, now).weekday() == 6

    def test_every_interval(self):
        trigger = parse_cron_expression("@every 1h30m", timezone=UTC)
        assert isinstance(trigger, IntervalTrigger)
        assert trigger.interval == timedelta(hours=1, minutes=30)

    def test_unknown_descriptor(self):
        with pytest.raises(InvalidCronExpression, match="unrecognized descriptor"):
            parse_cron_expression("@fortnightly")


class TestParseDuration:

    def test_compound(self):
        assert parse_duration("x", "1h2m3s") == 3723

    def test_fraction(self):
        assert parse_duration("x", "1.5m") == 90

    def test_sub_second_rounds_up(self):
        assert parse_duration("x", "500ms") == 1.0

    @pytest.mark.parametrize("text", ["", "5", "5 s", "abc", "0s"])
    def test_invalid(self, text):
        with pytest.raises(InvalidCronExpression):
            parse_duration("x", text)


# ==================== Rejections ====================

class TestInvalidExpressions:

    @pytest.mark.parametrize("expression", [
        "not-a-cron",
        "",
        "   ",
        "* * * * *",            # five fields
        "* * * * * * *",        # seven fields
        "61 * * * * *",         # second out of range
        "0 0 25 * * *",         # hour out of range
        "0 0 0 32 * *",         # day out of range
        "0 0 0 32 * 5",         # day out of range alongside weekday
        "0 0 0 * 13 *",         # month out of range
        "0 0 0 * * funday",
        "CRON_TZ=Not/AZone 0 0 0 * * *",
        "CRON_TZ=UTC",
    ])
    def test_rejected(self, expression):
        with pytest.raises(InvalidCronExpression):
            parse_cron_expression(expression)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_cron_expression("not-a-cron")

    def test_error_carries_expression(self):
        with pytest.raises(InvalidCronExpression) as exc_info:
            parse_cron_expression("not-a-cron")
        assert exc_info.value.expression == "not-a-cron"
        assert "6 fields" in exc_info.value.reason
