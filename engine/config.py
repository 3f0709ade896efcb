"""
Environment-driven configuration for the voice-to-task engine.
All credentials and tunables come from environment variables (or a .env file).

Clients are built once from this config at startup, so a missing key fails
the process immediately instead of on the first request.
"""

import os
import logging
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

OPENAI_TRANSCRIPTION_ENGINES = ("whisper-1", "gpt-4o-transcribe")
TRANSCRIPTION_ENGINES = OPENAI_TRANSCRIPTION_ENGINES + ("gemini",)


@dataclass
class EngineConfig:
    """Fully environment-driven engine configuration."""

    # Credentials
    openai_api_key: str = ""
    gemini_api_keys: list[str] = field(default_factory=list)

    # Transcription engine: "whisper-1", "gpt-4o-transcribe", or "gemini"
    transcription_engine: str = "whisper-1"
    transcription_language: str = "en"
    gemini_model: str = "gemini-2.0-flash"

    # Field extraction (chat completion)
    chat_model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 200

    # Outbound call policy
    request_timeout_seconds: float = 30.0
    transcription_max_retries: int = 3
    extraction_max_attempts: int = 2
    retry_backoff_seconds: float = 1.0

    # Uploads
    max_upload_mb: int = 10

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def validate(self):
        """Validate the configuration at startup."""
        # The chat model is always OpenAI, even when Gemini transcribes
        if not self.openai_api_key:
            if os.environ.get("ANTHROPIC_API_KEY"):
                logger.error("ANTHROPIC_API_KEY is set but Anthropic models are not supported")
                raise ValueError(
                    "OPENAI_API_KEY is required; ANTHROPIC_API_KEY is not supported yet"
                )
            logger.error("No OpenAI API key configured")
            raise ValueError("OPENAI_API_KEY is required")
        if self.transcription_engine not in TRANSCRIPTION_ENGINES:
            raise ValueError(
                f"Unsupported TRANSCRIPTION_ENGINE: {self.transcription_engine}. "
                f"Use one of: {', '.join(TRANSCRIPTION_ENGINES)}"
            )
        if self.transcription_engine == "gemini" and not self.gemini_api_keys:
            logger.error("Gemini API key required when using Gemini transcription engine")
            raise ValueError("GEMINI_API_KEYS or GEMINI_API_KEY is required for Gemini transcription")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("LLM_TEMPERATURE must be between 0 and 2")
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be > 0")
        if self.transcription_max_retries < 1 or self.extraction_max_attempts < 1:
            raise ValueError("Retry counts must be >= 1")


def _read_gemini_keys() -> list[str]:
    keys_str = os.environ.get("GEMINI_API_KEYS", "")
    keys = [k.strip() for k in keys_str.split(",") if k.strip()]
    if not keys:
        single = os.environ.get("GEMINI_API_KEY", "").strip()
        if single:
            keys = [single]
    return keys


def load_config(env_file: str = ".env") -> EngineConfig:
    """Load configuration from environment variables.

    Required env vars:
        OPENAI_API_KEY   used for field extraction and OpenAI transcription
        GEMINI_API_KEYS  comma-separated keys, only when TRANSCRIPTION_ENGINE=gemini
                           (or GEMINI_API_KEY for a single key)

    Raises:
        ValueError: If the configuration is incomplete or invalid.
    """
    load_dotenv(env_file)

    config = EngineConfig(
        openai_api_key=os.environ.get("OPENAI_API_KEY", "").strip(),
        gemini_api_keys=_read_gemini_keys(),
        transcription_engine=os.environ.get("TRANSCRIPTION_ENGINE", "whisper-1"),
        transcription_language=os.environ.get("TRANSCRIPTION_LANGUAGE", "en"),
        gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash"),
        chat_model=os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
        temperature=float(os.environ.get("LLM_TEMPERATURE", "0.3")),
        max_tokens=int(os.environ.get("LLM_MAX_TOKENS", "200")),
        request_timeout_seconds=float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "30")),
        transcription_max_retries=int(os.environ.get("TRANSCRIPTION_MAX_RETRIES", "3")),
        extraction_max_attempts=int(os.environ.get("EXTRACTION_MAX_ATTEMPTS", "2")),
        retry_backoff_seconds=float(os.environ.get("RETRY_BACKOFF_SECONDS", "1.0")),
        max_upload_mb=int(os.environ.get("MAX_UPLOAD_MB", "10")),
    )

    config.validate()
    logger.info(
        f"Config loaded | Transcription: {config.transcription_engine} | "
        f"Extraction: {config.chat_model} | Timeout: {config.request_timeout_seconds}s"
    )
    return config
