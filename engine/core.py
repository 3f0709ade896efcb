"""
Voice-to-task pipeline orchestrator.

This is the main entry point for turning a recording into task fields.
No FastAPI, no ORM. Clients are injected and built once at startup.

Pipeline:
    1. Transcribe the audio (OpenAI or Gemini)
    2. Extract structured fields (language model, rule-based fallback)

Usage:
    from engine import build_pipeline, load_config

    pipeline = build_pipeline(load_config())
    result = pipeline.process(audio_bytes, "note.webm", "America/New_York")
    print(result.transcript, result.parsed.to_dict())
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from .ai import GeminiTranscriber
from .config import EngineConfig, OPENAI_TRANSCRIPTION_ENGINES
from .errors import EmptyTranscript, NoAudioProvided
from .extractor import FieldExtractor
from .models import ExtractedTaskFields, FallbackDerived, TimeContext, VoiceResult
from .whisper import OpenAITranscriber

logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    def transcribe(self, audio_bytes: bytes, filename: str) -> str: ...


class VoicePipeline:
    """Transcribe, then extract. Holds no per-request state."""

    def __init__(
        self,
        transcriber: Transcriber,
        extractor: FieldExtractor,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.transcriber = transcriber
        self.extractor = extractor
        self._clock = clock

    def _context(self, tz_name: Optional[str]) -> TimeContext:
        now = self._clock() if self._clock else None
        return TimeContext.create(tz_name, now=now)

    def process(self, audio_bytes: bytes, filename: Optional[str], tz_name: Optional[str] = None) -> VoiceResult:
        """Process one voice submission.

        Raises:
            NoAudioProvided: audio_bytes is empty.
            EmptyTranscript: Transcription produced no usable text.
            TranscriptionServiceError: The speech-to-text call failed.
        """
        if not audio_bytes:
            raise NoAudioProvided("No audio file provided")
        filename = filename or "audio.webm"

        logger.info(f"Processing voice submission: {filename} ({len(audio_bytes) / 1024:.1f}KB)")

        # ── Step 1: Transcribe ──────────────────────────────────────
        logger.info("Step 1/2: Transcribing")
        transcript = self.transcriber.transcribe(audio_bytes, filename)
        if not transcript or not transcript.strip():
            raise EmptyTranscript("Transcription produced no usable text")
        transcript = transcript.strip()
        logger.info(f"  Transcript length: {len(transcript)} chars")

        # ── Step 2: Extract ─────────────────────────────────────────
        logger.info("Step 2/2: Extracting task fields")
        ctx = self._context(tz_name)
        outcome = self.extractor.extract_outcome(transcript, ctx)
        model_derived = not isinstance(outcome, FallbackDerived)
        logger.info(f"  Fields from {'model' if model_derived else 'fallback'} | "
                    f"title={outcome.fields.title!r}")

        return VoiceResult(transcript=transcript, parsed=outcome.fields, model_derived=model_derived)

    def parse(self, transcript: str, tz_name: Optional[str] = None) -> ExtractedTaskFields:
        """Extraction only, for text that is already transcribed."""
        if not transcript or not transcript.strip():
            raise EmptyTranscript("Transcript is empty")
        return self.extractor.extract(transcript.strip(), self._context(tz_name))


def build_transcriber(config: EngineConfig) -> Transcriber:
    if config.transcription_engine in OPENAI_TRANSCRIPTION_ENGINES:
        return OpenAITranscriber(
            api_key=config.openai_api_key,
            model=config.transcription_engine,
            language=config.transcription_language,
            timeout=config.request_timeout_seconds,
            max_retries=config.transcription_max_retries,
            backoff_seconds=config.retry_backoff_seconds,
        )
    return GeminiTranscriber(
        api_keys=config.gemini_api_keys,
        model_name=config.gemini_model,
        language=config.transcription_language,
        timeout=config.request_timeout_seconds,
        max_retries=config.transcription_max_retries,
        backoff_seconds=config.retry_backoff_seconds,
    )


def build_pipeline(config: EngineConfig) -> VoicePipeline:
    """Construct every network client once from validated configuration."""
    config.validate()
    extractor = FieldExtractor(
        api_key=config.openai_api_key,
        model=config.chat_model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.request_timeout_seconds,
        max_attempts=config.extraction_max_attempts,
        backoff_seconds=config.retry_backoff_seconds,
    )
    return VoicePipeline(build_transcriber(config), extractor)
