"""
Rule-based task field extraction.

Used whenever the model path fails. Pure and deterministic: no network, no
clock reads (the TimeContext carries "now"), and it never raises.
"""

import re
import logging

from .datetimes import DateTimeResolver
from .models import ExtractedTaskFields, TaskPriority, TaskStatus, TimeContext

logger = logging.getLogger(__name__)

# Checked in order; the first group with a hit wins
PRIORITY_KEYWORDS = (
    (TaskPriority.URGENT, ("urgent", "critical")),
    (TaskPriority.HIGH, ("high priority", "important")),
    (TaskPriority.LOW, ("low priority",)),
)

_PRIORITY_WORDS = re.compile(
    r"\b(urgent|critical|high priority|low priority|important)\b", re.IGNORECASE
)
# Best effort: "by Friday afternoon", "due next week", "until tomorrow"
_DATE_PHRASE = re.compile(r"\b(by|due|before|until)\s+\w+\s*\w*", re.IGNORECASE)


def detect_priority(transcript: str):
    lowered = transcript.lower()
    for priority, keywords in PRIORITY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return priority
    return None


def clean_title(transcript: str) -> str:
    """Strip priority keywords and simple date phrases from a transcript.

    Falls back to the untouched transcript when nothing is left.
    """
    title = _PRIORITY_WORDS.sub("", transcript)
    title = _DATE_PHRASE.sub("", title)
    title = re.sub(r"\s{2,}", " ", title)
    title = re.sub(r"\s+([,.;:!?])", r"\1", title)
    title = title.strip(" \t\n,;:-")
    return title or transcript


class FallbackExtractor:
    """Keyword priority, regex date resolution and title cleanup."""

    def __init__(self, resolver: DateTimeResolver = None):
        self._resolver = resolver or DateTimeResolver()

    def extract(self, transcript: str, ctx: TimeContext) -> ExtractedTaskFields:
        transcript = transcript or ""
        fields = ExtractedTaskFields(
            title=clean_title(transcript) or None,
            description=None,
            priority=detect_priority(transcript),
            status=TaskStatus.TODO,
            due_date=self._resolver.resolve(transcript, ctx),
        )
        logger.info(
            f"Fallback extraction | priority={fields.priority.value if fields.priority else None} "
            f"| due={fields.due_date.isoformat() if fields.due_date else None}"
        )
        return fields
