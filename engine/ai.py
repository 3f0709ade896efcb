"""
Gemini transcription client with round-robin key rotation and retry logic.

Alternative to the OpenAI transcriber (TRANSCRIPTION_ENGINE=gemini). Same
contract: transcribe(audio_bytes, filename) -> text, failing with
TranscriptionServiceError or EmptyTranscript.

Rate limit handling:
- On 429, the key is put in a short cooldown and the next key is tried
- When every key is cooling down, the call waits for the first one to free up
- A key that reports an exhausted daily quota is dropped for the process lifetime
"""

import time
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from google import genai
from google.genai import types

from .errors import EmptyTranscript, TranscriptionServiceError
from .whisper import guess_content_type

logger = logging.getLogger(__name__)

# Error message markers for classification
_QUOTA_MARKERS = ["429", "quota", "rate limit", "resource exhausted", "too many requests"]
_NETWORK_MARKERS = ["broken pipe", "errno 32", "connection", "reset", "timeout", "timed out"]
_DAILY_QUOTA_MARKERS = ["perday", "daily", "limit:0"]

RATE_LIMIT_COOLDOWN_SECONDS = 15

TRANSCRIPTION_PROMPT = """You are a transcription assistant. Transcribe the spoken audio exactly as spoken.

Rules:
- The working language is {language}. Do not translate.
- Output plain text only: no timestamps, no speaker labels, no preamble or commentary.
- If nothing intelligible is spoken, output nothing."""


class GeminiTranscriber:
    """Gemini speech-to-text client.

    Supports multiple API keys with round-robin selection.
    On network errors, retries with exponential backoff.
    """

    def __init__(
        self,
        api_keys: list[str],
        model_name: str = "gemini-2.0-flash",
        language: str = "en",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
    ):
        if not api_keys:
            raise ValueError("At least one API key is required")
        self._keys = api_keys
        self._model_name = model_name
        self._language = language
        self._timeout_ms = int(timeout * 1000)
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._key_index = 0
        self._exhausted: set[int] = set()
        self._key_cooldowns: dict[int, datetime] = {}  # key_idx -> cooldown_until
        self._clients: dict[int, genai.Client] = {}

    def _get_available_key(self) -> int:
        """Pick the next key that is neither exhausted nor cooling down."""
        now = datetime.now(timezone.utc)
        for idx, until in list(self._key_cooldowns.items()):
            if until <= now:
                del self._key_cooldowns[idx]

        available = [
            i for i in range(len(self._keys))
            if i not in self._exhausted and i not in self._key_cooldowns
        ]
        if not available:
            # Everything cooling down: use the one that frees up first
            cooling = [i for i in self._key_cooldowns if i not in self._exhausted]
            if not cooling:
                raise TranscriptionServiceError(
                    "All Gemini API keys exhausted. Wait for quota reset or add more keys."
                )
            soonest = min(cooling, key=lambda i: self._key_cooldowns[i])
            wait = (self._key_cooldowns[soonest] - now).total_seconds()
            if wait > 0:
                logger.info(f"All keys cooling down, waiting {wait:.1f}s for key {soonest + 1}")
                time.sleep(wait)
            del self._key_cooldowns[soonest]
            available = [soonest]

        idx = available[self._key_index % len(available)]
        self._key_index += 1
        return idx

    def _get_client(self, key_idx: int) -> genai.Client:
        if key_idx not in self._clients:
            self._clients[key_idx] = genai.Client(
                api_key=self._keys[key_idx],
                http_options=types.HttpOptions(timeout=self._timeout_ms),
            )
        return self._clients[key_idx]

    def _handle_rate_limit(self, key_idx: int, error: Exception):
        if self._is_daily_quota_error(error):
            logger.warning(f"Key {key_idx + 1} hit DAILY quota limit, marking exhausted. "
                           f"Error: {str(error)[:120]}")
            self._exhausted.add(key_idx)
            self._key_cooldowns.pop(key_idx, None)
            return
        cooldown_until = datetime.now(timezone.utc) + timedelta(seconds=RATE_LIMIT_COOLDOWN_SECONDS)
        self._key_cooldowns[key_idx] = cooldown_until
        logger.warning(f"Key {key_idx + 1} rate-limited, cooldown until {cooldown_until.strftime('%H:%M:%S')}")

    @staticmethod
    def _is_quota_error(e: Exception) -> bool:
        s = str(e).lower()
        return any(m in s for m in _QUOTA_MARKERS)

    @staticmethod
    def _is_daily_quota_error(e: Exception) -> bool:
        s = str(e).lower().replace(" ", "").replace("_", "")
        return any(m in s for m in _DAILY_QUOTA_MARKERS)

    @staticmethod
    def _is_network_error(e: Exception) -> bool:
        s = str(e).lower()
        return any(m in s for m in _NETWORK_MARKERS)

    def transcribe(self, audio_bytes: bytes, filename: str = "audio.webm") -> str:
        """Transcribe an in-memory audio payload with Gemini."""
        prompt = TRANSCRIPTION_PROMPT.format(language=self._language)
        audio_part = types.Part.from_bytes(data=audio_bytes, mime_type=guess_content_type(filename))
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            key_idx = self._get_available_key()
            client = self._get_client(key_idx)
            try:
                logger.info(
                    f"Transcribing {filename} with Gemini "
                    f"(attempt {attempt + 1}/{self._max_retries}, key {key_idx + 1}/{len(self._keys)})"
                )
                response = client.models.generate_content(
                    model=self._model_name,
                    contents=[prompt, audio_part],
                    config=types.GenerateContentConfig(temperature=0.0),
                )
            except Exception as e:
                last_error = e
                if self._is_quota_error(e):
                    self._handle_rate_limit(key_idx, e)
                    continue
                if self._is_network_error(e):
                    wait = self._backoff * (2 ** attempt)
                    logger.warning(f"Network error, retrying in {wait:.1f}s: {e}")
                    time.sleep(wait)
                    continue
                logger.error(f"Gemini transcription failed (non-retryable): {e}")
                raise TranscriptionServiceError(
                    f"Gemini transcription failed: {e}",
                    status_code=getattr(e, "code", None),
                ) from e

            transcript = (response.text or "").strip() if response else ""
            if not transcript:
                logger.warning(f"Gemini returned an empty transcript for {filename}")
                raise EmptyTranscript("Transcription produced no usable text")
            logger.info(f"Transcription complete: {len(transcript)} chars")
            return transcript

        raise TranscriptionServiceError(
            f"Gemini transcription failed after {self._max_retries} attempts: {last_error}",
            status_code=getattr(last_error, "code", None),
        ) from last_error
