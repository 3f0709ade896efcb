"""
Tests for natural-language due date resolution.

Covers:
- Timezone conversion of explicit clock times
- Part-of-day and date-only defaults
- Relative offsets, weekdays, absolute dates
- Roll-forward of past times with no date
- Bare hours, weekends and half hours
- Impossible, out-of-range and absent dates
- TimeContext construction
"""

from datetime import datetime, timezone

import pytest

from engine.datetimes import DateTimeResolver, resolve_due_date
from engine.models import TimeContext


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def ctx_at(now: datetime, tz: str = "UTC") -> TimeContext:
    return TimeContext.create(tz, now=now)


@pytest.fixture
def resolver():
    return DateTimeResolver()


# ---------------------------------------------------------------------------
# Timezones
# ---------------------------------------------------------------------------

class TestTimezones:
    def test_new_york_clock_time_converts_to_utc(self, resolver, ny_ctx):
        due = resolver.resolve("remind me tomorrow at 5 PM", ny_ctx)
        assert due == utc(2024, 6, 11, 21, 0)

    def test_result_is_aware_utc(self, resolver, ny_ctx):
        due = resolver.resolve("tomorrow at 5 PM", ny_ctx)
        assert due.utcoffset().total_seconds() == 0

    def test_winter_offset(self, resolver):
        ctx = ctx_at(utc(2024, 1, 10), "America/New_York")
        assert resolver.resolve("tomorrow at 5 pm", ctx) == utc(2024, 1, 11, 22, 0)

    def test_eastern_zone(self, resolver):
        ctx = ctx_at(utc(2024, 3, 1), "Asia/Kolkata")
        assert resolver.resolve("tomorrow at 10:30 am", ctx) == utc(2024, 3, 2, 5, 0)

    def test_24_hour_clock(self, resolver, utc_ctx):
        assert resolver.resolve("deploy tomorrow at 17:30", utc_ctx) == utc(2024, 1, 2, 17, 30)


# ---------------------------------------------------------------------------
# Default times
# ---------------------------------------------------------------------------

class TestDefaultTimes:
    def test_tomorrow_morning(self, resolver, utc_ctx):
        assert resolver.resolve("follow up tomorrow morning", utc_ctx) == utc(2024, 1, 2, 9, 0)

    def test_afternoon(self, resolver, utc_ctx):
        assert resolver.resolve("tomorrow afternoon", utc_ctx) == utc(2024, 1, 2, 14, 0)

    def test_tonight_is_evening_today(self, resolver, utc_ctx):
        assert resolver.resolve("call mom tonight", utc_ctx) == utc(2024, 1, 1, 18, 0)

    def test_date_without_time_is_noon(self, resolver, utc_ctx):
        assert resolver.resolve("renew passport tomorrow", utc_ctx) == utc(2024, 1, 2, 12, 0)

    def test_part_of_day_uses_local_zone(self, resolver, ny_ctx):
        # 09:00 EDT
        assert resolver.resolve("tomorrow morning", ny_ctx) == utc(2024, 6, 11, 13, 0)

    def test_noon_and_midnight(self, resolver, utc_ctx):
        assert resolver.resolve("lunch tomorrow at noon", utc_ctx) == utc(2024, 1, 2, 12, 0)
        assert resolver.resolve("tomorrow at midnight", utc_ctx) == utc(2024, 1, 2, 0, 0)


# ---------------------------------------------------------------------------
# Relative and absolute dates
# ---------------------------------------------------------------------------

class TestDates:
    def test_in_days(self, resolver, utc_ctx):
        assert resolver.resolve("call the bank in 3 days", utc_ctx) == utc(2024, 1, 4, 12, 0)

    def test_in_number_word_weeks(self, resolver, utc_ctx):
        assert resolver.resolve("review in two weeks", utc_ctx) == utc(2024, 1, 15, 12, 0)

    def test_in_hours_is_exact_offset(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 10, 15))
        assert resolver.resolve("check the oven in 2 hours", ctx) == utc(2024, 1, 1, 12, 15)

    def test_in_minutes(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 10, 0))
        assert resolver.resolve("in 20 minutes", ctx) == utc(2024, 1, 1, 10, 20)

    def test_day_after_tomorrow(self, resolver, utc_ctx):
        assert resolver.resolve("the day after tomorrow", utc_ctx) == utc(2024, 1, 3, 12, 0)

    def test_next_weekday_is_strictly_after_today(self, resolver, utc_ctx):
        # 2024-01-01 is a Monday
        assert resolver.resolve("submit the report next Monday", utc_ctx) == utc(2024, 1, 8, 12, 0)

    def test_bare_weekday_includes_today(self, resolver, utc_ctx):
        assert resolver.resolve("on monday evening", utc_ctx) == utc(2024, 1, 1, 18, 0)

    def test_upcoming_weekday(self, resolver, utc_ctx):
        assert resolver.resolve("by friday", utc_ctx) == utc(2024, 1, 5, 12, 0)

    def test_day_month_next_occurrence(self, resolver, ny_ctx):
        # Already past this year
        assert resolver.resolve("pay rent on 15th January", ny_ctx) == utc(2025, 1, 15, 17, 0)

    def test_month_day_this_year(self, resolver, utc_ctx):
        assert resolver.resolve("dentist march 3rd at 4pm", utc_ctx) == utc(2024, 3, 3, 16, 0)

    def test_iso_date(self, resolver, utc_ctx):
        assert resolver.resolve("launch on 2024-02-29", utc_ctx) == utc(2024, 2, 29, 12, 0)

    def test_numeric_date(self, resolver, utc_ctx):
        assert resolver.resolve("taxes due 4/15", utc_ctx) == utc(2024, 4, 15, 12, 0)

    def test_next_month(self, resolver):
        ctx = ctx_at(utc(2024, 1, 31))
        assert resolver.resolve("next month", ctx) == utc(2024, 2, 29, 12, 0)


# ---------------------------------------------------------------------------
# Bare hours, weekends, half hours
# ---------------------------------------------------------------------------

class TestLooseExpressions:
    def test_bare_hour_is_afternoon(self, resolver, utc_ctx):
        assert resolver.resolve("meet friday at 3", utc_ctx) == utc(2024, 1, 5, 15, 0)

    def test_late_bare_hour_is_morning(self, resolver, utc_ctx):
        assert resolver.resolve("gym tomorrow at 9", utc_ctx) == utc(2024, 1, 2, 9, 0)

    def test_bare_hour_with_oclock_and_part_of_day(self, resolver, utc_ctx):
        assert resolver.resolve("at 9 o'clock tomorrow morning", utc_ctx) == utc(2024, 1, 2, 9, 0)

    def test_bare_hour_tonight(self, resolver, utc_ctx):
        assert resolver.resolve("call mom at 8 tonight", utc_ctx) == utc(2024, 1, 1, 20, 0)

    def test_bare_hour_uses_local_zone(self, resolver, ny_ctx):
        assert resolver.resolve("pick up the kids tomorrow at 3", ny_ctx) == utc(2024, 6, 11, 19, 0)

    def test_half_hour(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 10, 0))
        assert resolver.resolve("call back in half an hour", ctx) == utc(2024, 1, 1, 10, 30)
        assert resolver.resolve("leave in a half hour", ctx) == utc(2024, 1, 1, 10, 30)

    def test_this_weekend_is_saturday(self, resolver, utc_ctx):
        assert resolver.resolve("clean garage this weekend", utc_ctx) == utc(2024, 1, 6, 12, 0)

    def test_next_weekend(self, resolver, utc_ctx):
        assert resolver.resolve("visit grandma next weekend", utc_ctx) == utc(2024, 1, 13, 12, 0)

    def test_weekend_on_sunday_is_today(self, resolver):
        ctx = ctx_at(utc(2024, 1, 7, 8, 0))
        assert resolver.resolve("mow the lawn this weekend", ctx) == utc(2024, 1, 7, 12, 0)

    def test_weekend_morning(self, resolver, utc_ctx):
        assert resolver.resolve("hike on the weekend morning", utc_ctx) == utc(2024, 1, 6, 9, 0)


# ---------------------------------------------------------------------------
# Time with no date
# ---------------------------------------------------------------------------

class TestTimeOnly:
    def test_future_time_is_today(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 8, 0))
        assert resolver.resolve("standup at 9am", ctx) == utc(2024, 1, 1, 9, 0)

    def test_past_time_rolls_to_tomorrow(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 10, 0))
        assert resolver.resolve("standup at 9am", ctx) == utc(2024, 1, 2, 9, 0)

    def test_explicit_today_does_not_roll(self, resolver):
        ctx = ctx_at(utc(2024, 1, 1, 10, 0))
        assert resolver.resolve("today at 9am", ctx) == utc(2024, 1, 1, 9, 0)


# ---------------------------------------------------------------------------
# Nothing to resolve
# ---------------------------------------------------------------------------

class TestAbsent:
    @pytest.mark.parametrize("text", ["", "   ", "buy milk", "call the vendor"])
    def test_no_date_is_none(self, resolver, utc_ctx, text):
        assert resolver.resolve(text, utc_ctx) is None

    def test_impossible_date_is_ignored(self, resolver, utc_ctx):
        assert resolver.resolve("meet on February 30", utc_ctx) is None

    @pytest.mark.parametrize("text", [
        "call the vendor in 99999999 days",
        "check back in 9999999999 hours",
        "renew in 9999999 months",
        "ping me in 99999999999 minutes",
        "archive in 99999999999999 weeks",
    ])
    def test_out_of_range_offset_is_none(self, resolver, utc_ctx, text):
        assert resolver.resolve(text, utc_ctx) is None

    def test_tomorrow_past_last_representable_day(self, resolver):
        ctx = ctx_at(utc(9999, 12, 31, 12, 0), "Pacific/Kiritimati")
        assert resolver.resolve("tomorrow at 9am", ctx) is None

    def test_none_text(self, resolver, utc_ctx):
        assert resolver.resolve(None, utc_ctx) is None

    def test_module_shortcut(self, ny_ctx):
        assert resolve_due_date("tomorrow at 5 PM", ny_ctx) == utc(2024, 6, 11, 21, 0)


# ---------------------------------------------------------------------------
# TimeContext
# ---------------------------------------------------------------------------

class TestTimeContext:
    def test_defaults_to_utc(self):
        ctx = TimeContext.create(None, now=utc(2024, 1, 1))
        assert ctx.timezone == "UTC"

    def test_unknown_zone_falls_back_to_utc(self):
        ctx = TimeContext.create("Mars/Olympus_Mons", now=utc(2024, 1, 1))
        assert ctx.timezone == "UTC"

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError):
            TimeContext(now=datetime(2024, 1, 1))

    def test_reference_date_is_utc_day(self, ny_ctx):
        # 2024-06-09 20:00 in New York, but "today" is the UTC date
        assert ny_ctx.local_now.day == 9
        assert ny_ctx.reference_date.isoformat() == "2024-06-10"
