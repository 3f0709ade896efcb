"""
OpenAI transcription client. Supports whisper-1 and gpt-4o-transcribe models.

Takes audio as in-memory bytes (a browser upload or an AudioCapture blob)
and returns plain text in the configured working language.

Models:
    whisper-1          fast and affordable, 25MB limit
    gpt-4o-transcribe  higher quality, 25MB limit
"""

import time
import logging
import mimetypes

from openai import OpenAI, APIError, APIStatusError, RateLimitError, APIConnectionError

from .errors import EmptyTranscript, TranscriptionServiceError

logger = logging.getLogger(__name__)

# OpenAI audio API has a 25MB file size limit
MAX_FILE_SIZE_MB = 25
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

# Retry configuration
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

# Browsers record webm through MediaRecorder
DEFAULT_CONTENT_TYPE = "audio/webm"


def guess_content_type(filename: str) -> str:
    """Best-effort MIME type for an audio filename."""
    # mimetypes maps .webm to video/webm; recordings are audio-only
    if (filename or "").lower().endswith(".webm"):
        return "audio/webm"
    content_type, _ = mimetypes.guess_type(filename or "")
    if content_type and content_type.startswith("audio/"):
        return content_type
    return DEFAULT_CONTENT_TYPE


class OpenAITranscriber:
    """OpenAI audio transcription client with retry logic.

    Retries transient failures (rate limits, connection errors, timeouts, 5xx)
    with exponential backoff. Every failure surfaces as TranscriptionServiceError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "whisper-1",
        language: str = "en",
        timeout: float = 30.0,
        max_retries: int = MAX_RETRIES,
        backoff_seconds: float = INITIAL_BACKOFF_SECONDS,
        client: OpenAI = None,
    ):
        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")
        if model not in ("whisper-1", "gpt-4o-transcribe"):
            raise ValueError(f"Unsupported OpenAI transcription model: {model}. "
                             f"Use 'whisper-1' or 'gpt-4o-transcribe'.")
        # Retries are handled here, not inside the SDK
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model
        self._language = language
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        logger.info(f"OpenAI transcriber initialized | model={model} | language={language}")

    def transcribe(self, audio_bytes: bytes, filename: str = "audio.webm") -> str:
        """Transcribe an in-memory audio payload.

        Args:
            audio_bytes: Encoded audio (webm, wav, mp3, ogg, m4a ...).
            filename: Original filename; the extension tells the API the container.

        Returns:
            Transcribed text, stripped.

        Raises:
            TranscriptionServiceError: The remote call failed or was rejected.
            EmptyTranscript: The service returned blank text.
        """
        size = len(audio_bytes)
        if size > MAX_FILE_SIZE_BYTES:
            raise TranscriptionServiceError(
                f"Audio payload is {size / (1024 * 1024):.1f}MB, exceeds OpenAI's "
                f"{MAX_FILE_SIZE_MB}MB limit ({filename})"
            )

        content_type = guess_content_type(filename)
        logger.info(f"Transcribing with OpenAI {self._model}: {filename} "
                    f"({size / 1024:.1f}KB, {content_type})")

        last_error = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._client.audio.transcriptions.create(
                    file=(filename, audio_bytes, content_type),
                    model=self._model,
                    language=self._language,
                    response_format="text",
                )
                break

            except RateLimitError as e:
                last_error = e
                logger.warning(f"Rate limited (attempt {attempt}/{self._max_retries}): {e}")

            except APIConnectionError as e:
                # Includes APITimeoutError
                last_error = e
                logger.warning(f"Connection error (attempt {attempt}/{self._max_retries}): {e}")

            except APIStatusError as e:
                last_error = e
                body = _response_text(e)
                # Don't retry on 4xx errors (except 429 which is RateLimitError)
                if 400 <= e.status_code < 500:
                    logger.error(f"OpenAI API error (non-retryable) | status={e.status_code} | body={body}")
                    raise TranscriptionServiceError(
                        f"Transcription rejected with status {e.status_code}",
                        status_code=e.status_code,
                        body=body,
                    ) from e
                logger.warning(f"API error (attempt {attempt}/{self._max_retries}) | "
                               f"status={e.status_code} | body={body}")

            except APIError as e:
                last_error = e
                logger.error(f"Unexpected OpenAI error during transcription: {e}")
                raise TranscriptionServiceError(f"Transcription failed: {e}") from e

            if attempt < self._max_retries:
                wait = self._backoff * (2 ** (attempt - 1))
                logger.info(f"Retrying transcription in {wait:.1f}s")
                time.sleep(wait)
        else:
            # All retries exhausted
            status = getattr(last_error, "status_code", None)
            raise TranscriptionServiceError(
                f"OpenAI transcription failed after {self._max_retries} attempts. "
                f"Last error: {last_error}",
                status_code=status,
                body=_response_text(last_error),
            ) from last_error

        # response is a string when response_format="text"
        transcript = response if isinstance(response, str) else getattr(response, "text", "") or ""
        transcript = transcript.strip()
        if not transcript:
            logger.warning(f"OpenAI returned an empty transcript for {filename}")
            raise EmptyTranscript("Transcription produced no usable text")

        logger.info(f"Transcription complete | {len(transcript)} chars | model={self._model}")
        return transcript


def _response_text(error) -> str | None:
    response = getattr(error, "response", None)
    if response is None:
        return None
    return getattr(response, "text", None)
