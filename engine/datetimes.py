"""
Natural-language due date resolution.

Turns phrases like "tomorrow at 5 PM", "next Monday morning", "in 3 days" or
"15th January" into an absolute UTC instant, relative to a TimeContext.

Rules (shared with the extraction prompt in prompts.py):
    - "today" is the UTC calendar date of the context's current instant
    - clock times and part-of-day defaults are wall-clock times in the user's
      timezone, converted to UTC
    - morning 09:00, afternoon 14:00, evening/tonight 18:00
    - a date with no time of day resolves to 12:00
    - a time with no date means today, or tomorrow if that moment has passed
    - a month/day without a year is the next occurrence (this year or next)
    - a bare hour ("at 3") is afternoon/evening for 1-7, morning for 8-11,
      unless a part of day says otherwise
    - "this weekend" is the coming Saturday (today on a weekend day)
"""

from __future__ import annotations

import re
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta

from .models import TimeContext

logger = logging.getLogger(__name__)

PART_OF_DAY_DEFAULTS = {
    "morning": time(9, 0),
    "afternoon": time(14, 0),
    "evening": time(18, 0),
}
DATE_ONLY_DEFAULT = time(12, 0)
# Bare hours up to this one are read as PM ("at 3" → 15:00)
BARE_HOUR_PM_UNTIL = 7
WEEKEND_START = 5  # Saturday

_PART_ALIASES = {
    "morning": "morning",
    "afternoon": "afternoon",
    "evening": "evening",
    "tonight": "evening",
    "night": "evening",
}

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}
_MONTH_RE = "|".join(sorted(_MONTHS, key=len, reverse=True))

_WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

_NUMBER_WORDS = {
    "a couple of": 2, "a few": 3, "an": 1, "a": 1,
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}
_NUMBER_RE = r"\d+|" + "|".join(sorted(_NUMBER_WORDS, key=len, reverse=True))

_IN_OFFSET = re.compile(
    rf"\bin\s+({_NUMBER_RE})\s+(minute|min|hour|hr|day|week|month)s?\b"
)
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_MONTH_DAY = re.compile(
    rf"\b({_MONTH_RE})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b(?:,?\s*(\d{{4}})\b)?"
)
_DAY_MONTH = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_RE})\b(?:,?\s*(\d{{4}})\b)?"
)
_HALF_HOUR = re.compile(r"\bin\s+(?:half\s+an|a\s+half)\s+hour\b")
_NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
_WEEKEND = re.compile(r"\b(?:(this|next|the)\s+)?weekend\b")
_BARE_HOUR = re.compile(r"\bat\s+(\d{1,2})(?![:/\d])(?:\s*o'?clock)?\b")
_WEEKDAY = re.compile(
    r"\b(?:(next|this|coming|on)\s+)?(" + "|".join(_WEEKDAYS) + r")\b"
)
_AMPM_TIME = re.compile(r"\b(\d{1,2})(?::([0-5]\d))?\s*([ap])\.?\s?m\b\.?")
_24H_TIME = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_PART_OF_DAY = re.compile(r"\b(morning|afternoon|evening|tonight|night)\b")


class DateTimeResolver:
    """Resolves free-text time expressions to aware UTC datetimes.

    Never raises on unparseable or impossible input; returns None instead.
    """

    def resolve(self, text: str, ctx: TimeContext) -> Optional[datetime]:
        t = (text or "").lower()
        if not t.strip():
            return None
        try:
            return self._resolve(t, ctx)
        except (OverflowError, ValueError) as e:
            # "in 99999999 days" and friends land outside the datetime range
            logger.debug(f"Ignoring out-of-range date in '{t}': {e}")
            return None

    def _resolve(self, t: str, ctx: TimeContext) -> Optional[datetime]:
        # "in 20 minutes" / "in 2 hours" are exact offsets from now
        if _HALF_HOUR.search(t):
            return ctx.now + timedelta(minutes=30)
        m = _IN_OFFSET.search(t)
        if m and m.group(2) in ("minute", "min", "hour", "hr"):
            amount = _to_number(m.group(1))
            if m.group(2) in ("minute", "min"):
                return ctx.now + timedelta(minutes=amount)
            return ctx.now + timedelta(hours=amount)

        day, explicit_day = self._find_date(t, ctx)
        part = self._find_part_of_day(t)
        clock = self._find_time(t, part)

        if day is None and clock is None and part is None:
            return None

        if clock is None:
            clock = PART_OF_DAY_DEFAULTS[part] if part else DATE_ONLY_DEFAULT

        roll_forward = day is None and not explicit_day
        day = day or ctx.reference_date
        resolved = _to_utc(day, clock, ctx)
        if roll_forward and resolved <= ctx.now:
            resolved = _to_utc(day + timedelta(days=1), clock, ctx)
        return resolved

    def _find_date(self, t: str, ctx: TimeContext) -> Tuple[Optional[date], bool]:
        """Returns (date, explicit_today). explicit_today marks "today"/"tonight"."""
        ref = ctx.reference_date

        m = _IN_OFFSET.search(t)
        if m:
            amount = _to_number(m.group(1))
            unit = m.group(2)
            if unit == "day":
                return ref + timedelta(days=amount), False
            if unit == "week":
                return ref + timedelta(weeks=amount), False
            return ref + relativedelta(months=amount), False

        for finder in (_find_iso, _find_month_day, _find_day_month, _find_numeric):
            try:
                found = finder(t, ref)
            except ValueError as e:
                logger.debug(f"Ignoring impossible date in '{t}': {e}")
                continue
            if found:
                return found, False

        if re.search(r"\bday after tomorrow\b", t):
            return ref + timedelta(days=2), False
        if re.search(r"\btomorrow\b", t):
            return ref + timedelta(days=1), False
        if re.search(r"\bnext week\b", t):
            return ref + timedelta(days=7), False
        if re.search(r"\bnext month\b", t):
            return ref + relativedelta(months=1), False

        m = _WEEKEND.search(t)
        if m:
            weekday = ref.weekday()
            if weekday == 6:
                days_ahead = 6 if m.group(1) == "next" else 0
            else:
                days_ahead = (WEEKEND_START - weekday) % 7
                if m.group(1) == "next":
                    days_ahead += 7
            return ref + timedelta(days=days_ahead), False

        m = _WEEKDAY.search(t)
        if m:
            target = _WEEKDAYS[m.group(2)]
            days_ahead = (target - ref.weekday()) % 7
            if m.group(1) == "next" and days_ahead == 0:
                days_ahead = 7
            return ref + timedelta(days=days_ahead), False

        if re.search(r"\b(today|tonight|this (morning|afternoon|evening))\b", t):
            return None, True

        return None, False

    @staticmethod
    def _find_time(t: str, part: Optional[str] = None) -> Optional[time]:
        m = _AMPM_TIME.search(t)
        if m:
            hour = int(m.group(1))
            minute = int(m.group(2)) if m.group(2) else 0
            if 1 <= hour <= 12:
                if m.group(3) == "p" and hour != 12:
                    hour += 12
                if m.group(3) == "a" and hour == 12:
                    hour = 0
                return time(hour, minute)

        m = _24H_TIME.search(t)
        if m:
            return time(int(m.group(1)), int(m.group(2)))

        if re.search(r"\b(noon|midday)\b", t):
            return time(12, 0)
        if re.search(r"\bmidnight\b", t):
            return time(0, 0)

        m = _BARE_HOUR.search(t)
        if m:
            hour = int(m.group(1))
            if 1 <= hour <= 11:
                if part in ("afternoon", "evening") or (part is None and hour <= BARE_HOUR_PM_UNTIL):
                    hour += 12
                return time(hour, 0)
            if 12 <= hour <= 23:
                return time(hour, 0)
        return None

    @staticmethod
    def _find_part_of_day(t: str) -> Optional[str]:
        m = _PART_OF_DAY.search(t)
        return _PART_ALIASES[m.group(1)] if m else None


def _to_number(word: str) -> int:
    if word.isdigit():
        return int(word)
    return _NUMBER_WORDS[word]


def _to_utc(day: date, clock: time, ctx: TimeContext) -> datetime:
    local = datetime.combine(day, clock, tzinfo=ctx.zone)
    return local.astimezone(timezone.utc)


def _next_occurrence(month: int, day: int, ref: date) -> date:
    candidate = date(ref.year, month, day)
    if candidate < ref:
        candidate = date(ref.year + 1, month, day)
    return candidate


def _find_iso(t: str, ref: date) -> Optional[date]:
    m = _ISO_DATE.search(t)
    if not m:
        return None
    return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _find_month_day(t: str, ref: date) -> Optional[date]:
    m = _MONTH_DAY.search(t)
    if not m:
        return None
    month, day = _MONTHS[m.group(1)], int(m.group(2))
    if m.group(3):
        return date(int(m.group(3)), month, day)
    return _next_occurrence(month, day, ref)


def _find_day_month(t: str, ref: date) -> Optional[date]:
    m = _DAY_MONTH.search(t)
    if not m:
        return None
    day, month = int(m.group(1)), _MONTHS[m.group(2)]
    if m.group(3):
        return date(int(m.group(3)), month, day)
    return _next_occurrence(month, day, ref)


def _find_numeric(t: str, ref: date) -> Optional[date]:
    # MM/DD or MM/DD/YYYY
    m = _NUMERIC_DATE.search(t)
    if not m:
        return None
    month, day = int(m.group(1)), int(m.group(2))
    if m.group(3) is None:
        return _next_occurrence(month, day, ref)
    year = int(m.group(3))
    if year < 100:
        year += 2000
    return date(year, month, day)


_default_resolver = DateTimeResolver()


def resolve_due_date(text: str, ctx: TimeContext) -> Optional[datetime]:
    """Module-level shortcut for DateTimeResolver().resolve()."""
    return _default_resolver.resolve(text, ctx)
