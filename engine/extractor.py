"""
Model-based task field extraction with a deterministic fallback.

Sends the transcript to an OpenAI chat model with a strict JSON contract,
sanitizes the reply, and falls back to FallbackExtractor on any failure:
transport errors, timeouts, non-success statuses, malformed or non-object
JSON. extract() never raises.
"""

import json
import re
import time
import logging
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser
from openai import OpenAI, APIConnectionError, APIStatusError, OpenAIError, RateLimitError

from .datetimes import DATE_ONLY_DEFAULT
from .errors import ExtractionDegraded
from .fallback import FallbackExtractor
from .models import (
    ExtractedTaskFields,
    ExtractionOutcome,
    FallbackDerived,
    ModelDerived,
    TaskPriority,
    TaskStatus,
    TimeContext,
)
from .prompts import get_extraction_prompt

logger = logging.getLogger(__name__)


def _attempt_json_repair(raw: str) -> Optional[dict]:
    """Recover a JSON object from common model formatting slips.

    Handles markdown fences and trailing commas. Returns None when the text
    still doesn't parse.
    """
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned)
    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


def parse_model_reply(raw: Optional[str]) -> dict:
    """Parse the model's reply into a dict or raise ExtractionDegraded."""
    if not raw or not raw.strip():
        raise ExtractionDegraded("Empty reply from model")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = _attempt_json_repair(raw)
        if parsed is None:
            raise ExtractionDegraded(f"Malformed JSON from model: {raw[:120]!r}")
    if not isinstance(parsed, dict):
        raise ExtractionDegraded(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _clean_text(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def parse_due_date(value, ctx: TimeContext) -> Optional[datetime]:
    """ISO 8601 string → aware UTC datetime.

    Naive values are read as the user's local time. Anything unparseable is
    dropped rather than passed through.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = dateutil_parser.isoparse(value.strip())
        if len(value.strip()) == 10:
            # Bare YYYY-MM-DD gets the same default time as the rule-based path
            parsed = datetime.combine(parsed.date(), DATE_ONLY_DEFAULT)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=ctx.zone)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        logger.warning(f"Model returned an unusable dueDate: {value!r}")
        return None


def sanitize_fields(data: dict, ctx: TimeContext) -> ExtractedTaskFields:
    """Apply the output contract to a model reply.

    priority: exact enum value or absent. status: exact enum value or "To Do".
    """
    priority = TaskPriority.parse(data.get("priority"))
    if data.get("priority") is not None and priority is None:
        logger.info(f"Dropping out-of-range priority from model: {data.get('priority')!r}")
    return ExtractedTaskFields(
        title=_clean_text(data.get("title")),
        description=_clean_text(data.get("description")),
        priority=priority,
        status=TaskStatus.parse(data.get("status")) or TaskStatus.TODO,
        due_date=parse_due_date(data.get("dueDate", data.get("due_date")), ctx),
    )


class FieldExtractor:
    """Chat-completion extractor with retry and rule-based fallback."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 200,
        timeout: float = 30.0,
        max_attempts: int = 2,
        backoff_seconds: float = 1.0,
        fallback: FallbackExtractor = None,
        client: OpenAI = None,
    ):
        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._fallback = fallback or FallbackExtractor()
        logger.info(f"Field extractor initialized | model={model} | temperature={temperature}")

    def extract(self, transcript: str, ctx: TimeContext) -> ExtractedTaskFields:
        return self.extract_outcome(transcript, ctx).fields

    def extract_outcome(self, transcript: str, ctx: TimeContext) -> ExtractionOutcome:
        """Like extract(), but reports which path produced the fields."""
        try:
            fields = self._extract_with_model(transcript, ctx)
            logger.info(
                f"Model extraction | title={fields.title!r} | "
                f"priority={fields.priority.value if fields.priority else None} | "
                f"due={fields.due_date.isoformat() if fields.due_date else None}"
            )
            return ModelDerived(fields)
        except ExtractionDegraded as e:
            reason = str(e)
        except Exception as e:
            logger.error(f"Unexpected error during model extraction: {e}", exc_info=True)
            reason = f"Unexpected error: {e}"

        logger.warning(f"Model extraction degraded, using fallback: {reason}")
        return FallbackDerived(self._fallback.extract(transcript, ctx), reason=reason)

    def _extract_with_model(self, transcript: str, ctx: TimeContext) -> ExtractedTaskFields:
        raw = self._complete(get_extraction_prompt(ctx), transcript)
        return sanitize_fields(parse_model_reply(raw), ctx)

    def _complete(self, system_prompt: str, transcript: str) -> Optional[str]:
        """One chat completion, retrying transient transport failures."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._client.chat.completions.create(
                    model=self.model,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": transcript},
                    ],
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            except (RateLimitError, APIConnectionError) as e:
                # APIConnectionError covers timeouts
                if attempt >= self._max_attempts:
                    raise ExtractionDegraded(f"Transport failure: {e}") from e
                wait = self._backoff * (2 ** (attempt - 1))
                logger.warning(f"Extraction call failed (attempt {attempt}/{self._max_attempts}), "
                               f"retrying in {wait:.1f}s: {e}")
                time.sleep(wait)
                continue
            except APIStatusError as e:
                logger.error(f"Extraction model error | status={e.status_code} | "
                             f"body={getattr(e.response, 'text', None)}")
                raise ExtractionDegraded(f"Model endpoint returned status {e.status_code}") from e
            except OpenAIError as e:
                raise ExtractionDegraded(f"Model call failed: {e}") from e

            if not response or not getattr(response, "choices", None):
                raise ExtractionDegraded("No choices in model response")
            return response.choices[0].message.content

        raise ExtractionDegraded("Extraction attempts exhausted")
