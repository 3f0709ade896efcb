"""
Data models for the voice-to-task pipeline.
No external dependencies, pure Python dataclasses.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


class TaskPriority(str, Enum):
    """Closed set of task priorities."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    @classmethod
    def parse(cls, value) -> Optional["TaskPriority"]:
        """Exact match only. Anything else is absent."""
        for member in cls:
            if value == member.value:
                return member
        return None


class TaskStatus(str, Enum):
    """Kanban columns."""
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def parse(cls, value) -> Optional["TaskStatus"]:
        for member in cls:
            if value == member.value:
                return member
        return None


@dataclass(frozen=True)
class TimeContext:
    """The current instant and the user's timezone for one extraction request."""
    now: datetime
    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self):
        if self.now.tzinfo is None:
            raise ValueError("TimeContext.now must be timezone-aware")
        object.__setattr__(self, "now", self.now.astimezone(timezone.utc))

    @classmethod
    def create(cls, tz_name: Optional[str] = None, now: Optional[datetime] = None) -> "TimeContext":
        """Build a context from the wall clock and a client-supplied zone name.

        Missing or unknown zone names fall back to UTC.
        """
        now = now or datetime.now(timezone.utc)
        name = (tz_name or "").strip() or DEFAULT_TIMEZONE
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{name}', using {DEFAULT_TIMEZONE}")
            name = DEFAULT_TIMEZONE
        return cls(now=now, timezone=name)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def local_now(self) -> datetime:
        """Current instant on the user's wall clock."""
        return self.now.astimezone(self.zone)

    @property
    def reference_date(self) -> date:
        """Calendar day that "today" refers to (the UTC date of now)."""
        return self.now.date()


@dataclass(frozen=True)
class ExtractedTaskFields:
    """Structured task fields produced from one transcript."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: TaskStatus = TaskStatus.TODO
    due_date: Optional[datetime] = None  # aware, UTC

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value if self.priority else None,
            "status": self.status.value,
            "due_date": format_utc(self.due_date),
        }


@dataclass(frozen=True)
class ModelDerived:
    """Fields produced by the language model."""
    fields: ExtractedTaskFields


@dataclass(frozen=True)
class FallbackDerived:
    """Fields produced by the rule-based extractor after the model path failed."""
    fields: ExtractedTaskFields
    reason: str = ""


ExtractionOutcome = Union[ModelDerived, FallbackDerived]


@dataclass(frozen=True)
class AudioBlob:
    """One finalized recording."""
    data: bytes
    mime_type: str = "audio/wav"
    filename: str = "recording.wav"
    sample_rate: int = 16000
    duration_seconds: float = 0.0


@dataclass
class VoiceResult:
    """Result of one voice submission."""
    transcript: str
    parsed: ExtractedTaskFields
    model_derived: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "transcript": self.transcript,
            "parsed": self.parsed.to_dict(),
        }


def format_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with a trailing Z, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
