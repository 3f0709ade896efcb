"""
System instruction for model-based task field extraction.

The date rules embedded here mirror engine/datetimes.py, which applies the
same rules procedurally when the model path falls back.
"""

from .datetimes import BARE_HOUR_PM_UNTIL, DATE_ONLY_DEFAULT, PART_OF_DAY_DEFAULTS
from .fallback import PRIORITY_KEYWORDS
from .models import TaskPriority, TaskStatus, TimeContext


EXTRACTION_PROMPT = """You extract task details from a spoken note.

CURRENT DATE AND TIME:
- User's local time: {local_now} ({timezone})
- UTC: {utc_now}
- "Today" means {reference_date}. Resolve every relative date from this day.

Return ONLY a JSON object with exactly this structure:
{{
  "title": "concise summary of the main action (string or null)",
  "description": "additional details, context or requirements (string or null)",
  "priority": "{priorities} (or null)",
  "dueDate": "ISO 8601 datetime in UTC ending in Z (or null)",
  "status": "{statuses} (or null)"
}}

DATE RULES:
- Relative dates ("tomorrow", "next Monday", "in 3 days") count from {reference_date}.
- Absolute dates ("Jan 15", "15th January") mean the next occurrence on or after {reference_date}.
- An explicit clock time ("at 5 PM", "17:30") is the user's local time in {timezone}.
- No clock time but a part of day: morning = {morning}, afternoon = {afternoon}, evening or tonight = {evening} local time.
- A date with no time of day: {date_only} local time.
- A bare hour with no AM/PM ("at 3"): 1-{pm_until} means PM, {am_from}-11 means AM, unless a part of day is given.
- "This weekend" means the coming Saturday (today if it is already the weekend). "In half an hour" is 30 minutes from now.
- A time with no date: today, or tomorrow if that time has already passed.
- Convert the final local date and time to UTC for "dueDate".
- If no date or time is mentioned, "dueDate" is null.

FIELD RULES:
- "priority" must be exactly one of: {priorities}. Otherwise null.
{priority_rules}
- "status" must be exactly one of: {statuses}. Default to "{default_status}".
- Title: a short imperative summary. Description: anything else worth keeping.
- If you cannot determine a field with confidence, use null.
- Output the JSON object only. No markdown fences, no commentary."""


def _priority_rules() -> str:
    lines = []
    for priority, keywords in PRIORITY_KEYWORDS:
        quoted = ", ".join(f'"{k}"' for k in keywords)
        lines.append(f"- Keywords {quoted} → {priority.value}")
    return "\n".join(lines)


def get_extraction_prompt(ctx: TimeContext) -> str:
    """Build the system instruction for one request."""
    local_now = ctx.local_now
    return EXTRACTION_PROMPT.format(
        local_now=local_now.strftime("%A, %Y-%m-%d %H:%M"),
        timezone=ctx.timezone,
        utc_now=ctx.now.strftime("%Y-%m-%dT%H:%M:%SZ"),
        reference_date=ctx.reference_date.strftime("%A, %Y-%m-%d"),
        priorities="|".join(p.value for p in TaskPriority),
        statuses="|".join(s.value for s in TaskStatus),
        default_status=TaskStatus.TODO.value,
        morning=PART_OF_DAY_DEFAULTS["morning"].strftime("%H:%M"),
        afternoon=PART_OF_DAY_DEFAULTS["afternoon"].strftime("%H:%M"),
        evening=PART_OF_DAY_DEFAULTS["evening"].strftime("%H:%M"),
        date_only=DATE_ONLY_DEFAULT.strftime("%H:%M"),
        pm_until=BARE_HOUR_PM_UNTIL,
        am_from=BARE_HOUR_PM_UNTIL + 1,
        priority_rules=_priority_rules(),
    )
